#!/usr/bin/env python3
"""
Square preview image of a converted video, shown in the completion notification.
"""

import logging
import os
import tempfile

from PIL import Image

from subprocess_utils import execute

logger = logging.getLogger(__name__)

PREVIEW_SIZE = 256


def default_preview_path():
    return os.path.join(tempfile.gettempdir(), 'preview.jpg')


def crop_filter(width, height):
    """ffmpeg crop filter for the largest centred square, or None without dimensions."""
    if width is None or height is None:
        return None
    if width > height:
        indent = (width - height) // 2
        return f"crop={height}:{height}:{indent}:0"
    indent = (height - width) // 2
    return f"crop={width}:{width}:0:{indent}"


def make_preview_command(path, width, height, preview_path, ffmpeg='ffmpeg'):
    """Build the ffmpeg command that writes the first frame of path as a square image."""
    command = [ffmpeg, '-i', str(path), '-f', 'image2']
    crop = crop_filter(width, height)
    if crop:
        command += ['-filter', crop]
    return command + ['-vframes', '1', '-y', str(preview_path)]


def shrink_preview(preview_path, max_size=PREVIEW_SIZE):
    """Downscale the preview in place so it fits in max_size x max_size.

    Returns:
        bool: True if the preview could be read and saved
    """
    try:
        with Image.open(preview_path) as image:
            resized = image.convert('RGB')
        resized.thumbnail((max_size, max_size))
        resized.save(preview_path, format='JPEG')
        return True
    except (OSError, ValueError) as e:
        logger.warning(f"Could not resize preview {preview_path}: {e}")
        return False


def generate_preview(video_path, probe, preview_path=None, ffmpeg='ffmpeg', output_sink=None):
    """Write a square preview of video_path.

    Returns:
        str or None: Path of the preview, None if it could not be generated
    """
    preview_path = preview_path or default_preview_path()
    width, height = probe.dimensions(video_path)
    command = make_preview_command(video_path, width, height, preview_path, ffmpeg)

    result = execute(command, output_sink)
    if not result.succeeded or not os.path.exists(preview_path):
        logger.warning(f"Could not generate preview for {video_path}")
        return None

    shrink_preview(preview_path)
    return preview_path
