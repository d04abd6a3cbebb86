#!/usr/bin/env python3
"""
Convert MP4 sources in two encoder runs: audio first, then video.

The audio-only pass writes a scratch file. Its audio track is only kept if
it is meaningfully smaller than the original's; the video-only pass then
copies whichever audio track won. The result has a re-encoded video track
and the smaller of the two audio tracks, and neither stream is encoded twice.
"""

import logging
from pathlib import Path

from configuration_manager import SAVINGS_THRESHOLD
from conversion_planner import Stream, plan_conversion
from subprocess_utils import execute

logger = logging.getLogger(__name__)


def use_converted_audio(original_bitrate, converted_bitrate, threshold=SAVINGS_THRESHOLD):
    """Whether the re-encoded audio is small enough to replace the original track.

    Unknown bitrates (None) keep the original.
    """
    if original_bitrate is None or converted_bitrate is None:
        return False
    return converted_bitrate < original_bitrate * threshold


def choose_video_pass_input(source_path, scratch_path, probe, threshold=SAVINGS_THRESHOLD):
    """Return the file the video pass should read: the scratch file or the original."""
    original_bitrate = probe.audio_bitrate(source_path)
    converted_bitrate = probe.audio_bitrate(scratch_path)

    if use_converted_audio(original_bitrate, converted_bitrate, threshold):
        logger.info(
            f"Using converted audio for {source_path}: "
            f"{probe.formatted_audio_bitrate(scratch_path)} < {probe.formatted_audio_bitrate(source_path)}")
        return Path(scratch_path)

    logger.info(
        f"Keeping original audio for {source_path}: "
        f"orig {probe.formatted_audio_bitrate(source_path)}, converted {probe.formatted_audio_bitrate(scratch_path)}")
    return Path(source_path)


def convert_single_pass(source_path, output_path, settings, output_sink=None, executor=execute):
    """Re-encode audio and video of source_path into output_path in one run."""
    plan = plan_conversion(source_path, output_path, quality=settings.quality)
    return executor(plan.command(settings.ffmpeg), output_sink, settings.encoder_timeout)


def convert_two_pass(source_path, output_path, scratch_path, probe, settings,
                     output_sink=None, executor=execute):
    """Convert an MP4 with an audio-only pass followed by a video-only pass.

    Args:
        source_path: MP4 to convert
        output_path: Final destination
        scratch_path: Where the audio-only pass writes. Always removed afterwards.
        probe: MediaProbe used to compare audio bitrates
        settings: ConversionSettings
        output_sink: Where encoder output goes (see subprocess_utils.execute)
        executor: Callable with the signature of subprocess_utils.execute

    Returns:
        ExecutionResult of the first failing pass, or of the video pass
    """
    scratch_path = Path(scratch_path)
    try:
        audio_plan = plan_conversion(source_path, scratch_path, {Stream.AUDIO}, settings.quality)
        result = executor(audio_plan.command(settings.ffmpeg), output_sink, settings.encoder_timeout)
        if not result.succeeded:
            logger.error(f"Audio pass failed for {source_path}: {result.describe_failure()}")
            return result

        video_input = choose_video_pass_input(source_path, scratch_path, probe, settings.threshold)

        video_plan = plan_conversion(video_input, output_path, {Stream.VIDEO}, settings.quality)
        result = executor(video_plan.command(settings.ffmpeg), output_sink, settings.encoder_timeout)
        if not result.succeeded:
            logger.error(f"Video pass failed for {source_path}: {result.describe_failure()}")
        return result
    finally:
        try:
            scratch_path.unlink()
        except FileNotFoundError:
            pass
        probe.invalidate(scratch_path)
