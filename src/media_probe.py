#!/usr/bin/env python3
"""
Wrap the mp4info command to extract dimensions and bitrates of MP4 files.

mp4info output looks like:

    mp4info version 2.0.0
    /path/to/video.mp4:
    Track   Type    Info
    1       video   H264 High@4, 10.010 secs, 5123 kbps, 1920x1080 @ 29.970030 fps
    2       audio   MPEG-4 AAC LC, 10.008 secs, 128 kbps, 44100 Hz

Results are cached per MediaProbe instance, keyed by absolute path, and
re-read when the file is modified after the last probe.
"""

import logging
import re
import subprocess
import threading
import time
from pathlib import Path

import subprocess_utils
from media_files import MediaFile, is_mp4

logger = logging.getLogger(__name__)

AUDIO = 'audio'
VIDEO = 'video'
NOT_FOUND = '(not found)'

DIMENSIONS_PATTERN = re.compile(r'video.*\s(\d+)x(\d+)\s')
CANNOT_OPEN_PATTERN = re.compile(r"can't open|unable to open", re.IGNORECASE)


def parse_bitrate(formatted):
    """Convert a formatted bitrate such as '128 kbps' or '1.5M' to bits per second.

    A trailing 'bps' is removed, then an 'M' suffix multiplies by 1,000,000
    and a 'k' suffix by 1,000. Anything unparseable, including the
    '(not found)' sentinel, gives 0.0.
    """
    text = formatted.strip()
    if text.endswith('bps'):
        text = text[:-3]
    text = text.strip()

    multiplier = 1.0
    if text.endswith('M'):
        multiplier = 1000000.0
        text = text[:-1]
    elif text.endswith('k'):
        multiplier = 1000.0
        text = text[:-1]

    try:
        return float(text.strip()) * multiplier
    except ValueError:
        return 0.0


def find_formatted_bitrate(output, stream_type):
    """Return the formatted bitrate of the first stream_type track in mp4info output."""
    track_pattern = re.compile(rf'\d\t{stream_type}')
    for line in output.splitlines():
        if not track_pattern.search(line):
            continue
        fields = line.split(',')
        if len(fields) < 3:
            continue
        return fields[2].strip()
    return NOT_FOUND


def find_dimensions(output):
    """Return (width, height) from the first video line of mp4info output."""
    for line in output.splitlines():
        # Lines are split without their newline, so allow end of line after the height
        match = DIMENSIONS_PATTERN.search(line + '\n')
        if match:
            return int(match.group(1)), int(match.group(2))
    return None, None


class ProbeResult:
    """Dimensions and bitrates of one MP4 file."""

    def __init__(self, raw_output=''):
        self.raw_output = raw_output
        self.width, self.height = find_dimensions(raw_output)
        self.audio_bitrate_text = find_formatted_bitrate(raw_output, AUDIO)
        self.video_bitrate_text = find_formatted_bitrate(raw_output, VIDEO)

    @classmethod
    def empty(cls):
        return cls('')

    @property
    def is_empty(self):
        return not self.raw_output

    @property
    def audio_bitrate(self):
        """Audio bitrate in bits per second, or None when there is no audio track."""
        if self.audio_bitrate_text == NOT_FOUND:
            return None
        return parse_bitrate(self.audio_bitrate_text)

    @property
    def video_bitrate(self):
        """Video bitrate in bits per second, or None when there is no video track."""
        if self.video_bitrate_text == NOT_FOUND:
            return None
        return parse_bitrate(self.video_bitrate_text)

    def formatted_bitrate(self, stream_type):
        return self.audio_bitrate_text if stream_type == AUDIO else self.video_bitrate_text

    def bitrate(self, stream_type):
        return self.audio_bitrate if stream_type == AUDIO else self.video_bitrate

    def __repr__(self):
        return (f"ProbeResult(width={self.width!r}, height={self.height!r}, "
                f"audio={self.audio_bitrate_text!r}, video={self.video_bitrate_text!r})")


class _CacheEntry:
    def __init__(self, result, probed_at):
        self.result = result
        self.probed_at = probed_at


class MediaProbe:
    """Run mp4info on MP4 files and cache the parsed results.

    Args:
        mp4info_path: mp4info executable to run
        clock: Callable returning the current time as a POSIX timestamp.
               Compared against file modification times to decide whether a
               cached result is stale.
        runner: Callable with the signature of subprocess_utils.run_command
    """

    def __init__(self, mp4info_path='mp4info', clock=time.time, runner=None):
        self.mp4info_path = mp4info_path
        self.clock = clock
        self.runner = runner or subprocess_utils.run_command
        self._cache = {}
        self._lock = threading.Lock()

    def probe(self, path):
        """Return the ProbeResult for path, running mp4info only when needed.

        Paths that are not MP4 files or do not exist give an empty result
        without running mp4info.
        """
        if not is_mp4(path) or not Path(path).exists():
            return ProbeResult.empty()

        media_file = MediaFile.from_path(path)
        key = str(media_file.path)

        with self._lock:
            entry = self._cache.get(key)
            if entry is not None and entry.probed_at >= media_file.mtime:
                return entry.result

            result = self._run_mp4info(key)
            self._cache[key] = _CacheEntry(result, self.clock())
            return result

    def _run_mp4info(self, path):
        try:
            completed = self.runner(
                [self.mp4info_path, path],
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
            )
        except OSError as e:
            # A missing mp4info is checked before the batch starts. Here it
            # just means there is nothing to report for this file.
            logger.warning(f"Could not run {self.mp4info_path} on {path}: {e}")
            return ProbeResult.empty()

        output = completed.stdout or ''
        lines = output.splitlines()
        if completed.returncode != 0 or (lines and CANNOT_OPEN_PATTERN.search(lines[0])):
            logger.debug(f"No mp4info output for {path}")
            return ProbeResult.empty()
        return ProbeResult(output)

    def invalidate(self, path=None):
        """Forget the cached result for path, or every cached result if path is None."""
        with self._lock:
            if path is None:
                self._cache.clear()
                return
            self._cache.pop(str(Path(path).expanduser().absolute()), None)

    def is_cached(self, path):
        with self._lock:
            return str(Path(path).expanduser().absolute()) in self._cache

    def dimensions(self, path):
        result = self.probe(path)
        return result.width, result.height

    def formatted_bitrate(self, path, stream_type):
        return self.probe(path).formatted_bitrate(stream_type)

    def bitrate(self, path, stream_type):
        return self.probe(path).bitrate(stream_type)

    def formatted_audio_bitrate(self, path):
        return self.formatted_bitrate(path, AUDIO)

    def formatted_video_bitrate(self, path):
        return self.formatted_bitrate(path, VIDEO)

    def audio_bitrate(self, path):
        return self.bitrate(path, AUDIO)

    def video_bitrate(self, path):
        return self.bitrate(path, VIDEO)
