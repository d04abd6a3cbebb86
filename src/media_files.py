#!/usr/bin/env python3
"""
Helpers for video file paths: container types and source discovery.
"""

import os
from pathlib import Path

# Suffixes recognised as source videos, matched case-insensitively,
# e.g. myvideo.mov, myvideo.MOV, myvideo.Mov.
VIDEO_SUFFIXES = ('mp4', 'mov', 'avi', 'wmv', 'flv', 'vob')

TARGET_CONTAINER = 'mp4'


def container_type(path):
    """Return the container type of path: its extension, lowercase, without the dot.

    The file does not need to exist.
    """
    return Path(path).suffix.lstrip('.').lower()


def is_mp4(path):
    """Determine whether path names an MP4 file, whether or not it exists."""
    return container_type(path) == TARGET_CONTAINER


def is_source_video(path):
    return container_type(path) in VIDEO_SUFFIXES


def find_source_videos(folder):
    """List the videos directly inside folder, as absolute paths sorted by name."""
    folder = Path(folder).expanduser().resolve()
    videos = [
        entry for entry in folder.iterdir()
        if entry.is_file() and is_source_video(entry)
    ]
    return sorted(videos)


def output_path(path, output_folder):
    """Where the converted MP4 for path is written."""
    return Path(output_folder) / Path(path).with_suffix(f'.{TARGET_CONTAINER}').name


def temp_path(path, scratch_dir):
    """Where the audio-only pass for path is written."""
    return Path(scratch_dir) / Path(path).with_suffix(f'.{TARGET_CONTAINER}').name


def log_path(path, log_folder):
    """Where the encoder output for path is written in background mode."""
    return Path(log_folder) / Path(path).with_suffix('.log').name


class MediaFile:
    """A video file identified by absolute path, container and modification time."""

    def __init__(self, path, container, mtime):
        self.path = path
        self.container = container
        self.mtime = mtime

    @classmethod
    def from_path(cls, path):
        path = Path(path).expanduser().absolute()
        return cls(path, container_type(path), os.stat(path).st_mtime)

    @property
    def is_mp4(self):
        return self.container == TARGET_CONTAINER

    def __eq__(self, other):
        if not isinstance(other, MediaFile):
            return NotImplemented
        return (self.path, self.container, self.mtime) == (other.path, other.container, other.mtime)

    def __hash__(self):
        return hash((self.path, self.container, self.mtime))

    def __repr__(self):
        return f"MediaFile({str(self.path)!r}, container={self.container!r}, mtime={self.mtime!r})"
