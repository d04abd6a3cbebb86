#!/usr/bin/env python3
"""
Check converted videos against their originals after a batch.

Every MP4 in the output folder is matched with its original in the source
folder and the sizes are compared. When an MP4 original was converted and
the result is not at least (1 - threshold) smaller, the converted file is
replaced by a copy of the original, so MP4 to MP4 conversions never leave
a larger file behind.
"""

import filecmp
import logging
import os
import shutil
from pathlib import Path

from configuration_manager import SAVINGS_THRESHOLD
from media_files import VIDEO_SUFFIXES, is_mp4, is_source_video

logger = logging.getLogger(__name__)


def formatted_size(size):
    """Format a byte count with a binary unit: 512 B, 1.50 kB, 2.00 MB, ..."""
    if size < 1024:
        return f"{size} B"
    elif size < 1024 ** 2:
        return f"{size / 1024:.2f} kB"
    elif size < 1024 ** 3:
        return f"{size / 1024 ** 2:.2f} MB"
    else:
        return f"{size / 1024 ** 3:.2f} GB"


def formatted_percent(numerator, denominator):
    return f"{numerator * 100.0 / denominator:.2f}%"


def is_marginal(original_size, converted_size, threshold=SAVINGS_THRESHOLD):
    """True when the converted file is not meaningfully smaller than the original."""
    return converted_size >= original_size * threshold


class ValidationRecord:
    """Size comparison of one converted file with its original."""

    def __init__(self, original_path, converted_path, original_size, converted_size, was_reverted=False,
                 bitrate_regressions=None):
        self.original_path = Path(original_path)
        self.converted_path = Path(converted_path)
        self.original_size = original_size
        self.converted_size = converted_size
        self.was_reverted = was_reverted
        # Stream types ('audio', 'video') whose bitrate the conversion increased
        self.bitrate_regressions = list(bitrate_regressions or [])

    @property
    def saved_bytes(self):
        return self.original_size - self.converted_size

    def __repr__(self):
        return (f"ValidationRecord({str(self.converted_path)!r}, original_size={self.original_size}, "
                f"converted_size={self.converted_size}, was_reverted={self.was_reverted})")


class ValidationReport:
    """All records of one validation run plus the savings totals."""

    def __init__(self):
        self.records = []
        self.skipped = []
        self.failed = []
        self.total_original_bytes = 0
        self.total_saved_bytes = 0

    def add(self, record):
        self.records.append(record)
        self.total_saved_bytes += record.saved_bytes
        self.total_original_bytes += record.original_size

    @property
    def reverted(self):
        return [r for r in self.records if r.was_reverted]

    @property
    def savings_percent(self):
        if self.total_original_bytes <= 0:
            return None
        return self.total_saved_bytes * 100.0 / self.total_original_bytes

    def summary(self):
        percent = self.savings_percent
        if percent is None:
            return None
        return (f"Total savings: {formatted_size(self.total_saved_bytes)}/"
                f"{formatted_size(self.total_original_bytes)} ({percent:.2f}%)")


def videos_to_validate(folder):
    """MP4 files in folder, oldest first."""
    videos = [p for p in Path(folder).glob('*.mp4') if p.is_file()]
    return sorted(videos, key=lambda p: p.stat().st_mtime)


def original_video(converted_path, source_folder):
    """Find the original of a converted file by trying each source suffix.

    Returns:
        Path or None if no original exists
    """
    stem = Path(converted_path).stem
    source_folder = Path(source_folder)
    for suffix in VIDEO_SUFFIXES:
        for candidate_suffix in (suffix, suffix.upper()):
            candidate = source_folder / f"{stem}.{candidate_suffix}"
            if candidate.exists():
                return candidate

    # Mixed case suffixes such as clip.Mov
    if source_folder.is_dir():
        for candidate in sorted(source_folder.iterdir()):
            if candidate.stem == stem and candidate.is_file() and is_source_video(candidate):
                return candidate
    return None


def is_reverted_copy(original_path, converted_path):
    """True if converted_path already holds the same bytes as original_path."""
    return filecmp.cmp(original_path, converted_path, shallow=False)


def revert(original_path, converted_path):
    """Replace the converted file with a copy of the original, keeping its mtime.

    The copy is written next to the converted file and moved into place, so
    a failed copy leaves the converted file untouched.
    """
    converted_path = Path(converted_path)
    partial_path = converted_path.with_name(f".{converted_path.name}.reverting")
    try:
        shutil.copy2(original_path, partial_path)
        original_stat = os.stat(original_path)
        os.utime(partial_path, (original_stat.st_atime, original_stat.st_mtime))
        os.replace(partial_path, converted_path)
    except OSError:
        try:
            partial_path.unlink()
        except FileNotFoundError:
            pass
        raise
    logger.info(f"Copied {original_path} to {converted_path}.")


def report_bitrates(original_path, converted_path, probe):
    if is_mp4(original_path):
        logger.info(
            f"  audio bitrate: orig {probe.formatted_audio_bitrate(original_path)}, "
            f"converted {probe.formatted_audio_bitrate(converted_path)}")
        logger.info(
            f"  video bitrate: orig {probe.formatted_video_bitrate(original_path)}, "
            f"converted {probe.formatted_video_bitrate(converted_path)}")
    else:
        logger.info(f"  audio bitrate: converted {probe.formatted_audio_bitrate(converted_path)}")
        logger.info(f"  video bitrate: converted {probe.formatted_video_bitrate(converted_path)}")


def check_bitrate_regressions(original_path, converted_path, probe):
    """Warn when converting an MP4 increased its audio or video bitrate.

    Returns:
        list: the stream types ('audio', 'video') whose bitrate went up
    """
    regressions = []
    if not is_mp4(original_path):
        return regressions

    checks = (
        ('audio', probe.audio_bitrate, probe.formatted_audio_bitrate),
        ('video', probe.video_bitrate, probe.formatted_video_bitrate),
    )
    for stream_type, bitrate, formatted in checks:
        if (bitrate(converted_path) or 0.0) > (bitrate(original_path) or 0.0):
            logger.warning(
                f"  Conversion increased {stream_type} bitrate from "
                f"{formatted(original_path)} to {formatted(converted_path)}.")
            regressions.append(stream_type)
    return regressions


def check_and_report(original_path, converted_path, threshold=SAVINGS_THRESHOLD):
    """Log the size comparison of one file and return (original_size, converted_size)."""
    converted_size = os.path.getsize(converted_path)
    original_size = os.path.getsize(original_path)

    message = (f"{converted_path}: {converted_size} (compressed)/{original_size} (original) "
               f"{formatted_percent(converted_size, original_size) if original_size else 'n/a'}")
    if is_marginal(original_size, converted_size, threshold):
        logger.warning(message)
    else:
        logger.info(message)
    return original_size, converted_size


def validate_file(converted_path, original_path, probe, threshold=SAVINGS_THRESHOLD, fix=True):
    """Compare one converted file with its original and revert it if it saved too little."""
    original_size, converted_size = check_and_report(original_path, converted_path, threshold)
    report_bitrates(original_path, converted_path, probe)
    regressions = check_bitrate_regressions(original_path, converted_path, probe)

    was_reverted = False
    if fix and is_mp4(original_path) and is_marginal(original_size, converted_size, threshold):
        if is_reverted_copy(original_path, converted_path):
            logger.debug(f"{converted_path} is already a copy of {original_path}")
        else:
            revert(original_path, converted_path)
            probe.invalidate(converted_path)
            was_reverted = True
        converted_size = original_size

    return ValidationRecord(original_path, converted_path, original_size, converted_size, was_reverted,
                            regressions)


def validate(output_folder, source_folder, probe, threshold=SAVINGS_THRESHOLD, fix=True, verbose=False):
    """Validate every converted MP4 in output_folder against its original in source_folder.

    Args:
        output_folder: Folder containing converted MP4 files
        source_folder: Folder containing the originals
        probe: MediaProbe used for bitrate reporting
        threshold: Converted/original size ratio at or above which savings are marginal
        fix: Replace marginal MP4 conversions with a copy of the original
        verbose: Log converted files whose original cannot be found

    Returns:
        ValidationReport. Files that could not be read or reverted are listed
        in its failed attribute and left as they were.
    """
    report = ValidationReport()

    for converted_path in videos_to_validate(output_folder):
        original_path = original_video(converted_path, source_folder)
        if original_path is None:
            if verbose:
                logger.warning(f"original video not found for {converted_path} in {source_folder}")
            report.skipped.append(converted_path)
            continue

        try:
            report.add(validate_file(converted_path, original_path, probe, threshold, fix))
        except OSError as e:
            logger.error(f"Failed to validate {converted_path}: {e}")
            report.failed.append(converted_path)

    summary = report.summary()
    if summary:
        logger.info(summary)
    return report
