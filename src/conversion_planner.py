#!/usr/bin/env python3
"""
Decide which streams of a video to re-encode and which to stream-copy,
and build the ffmpeg command that does it.
"""

import enum
from pathlib import Path

from media_files import container_type, is_mp4

DEFAULT_QUALITY = 28


class Stream(enum.Enum):
    AUDIO = 'audio'
    VIDEO = 'video'


ALL_STREAMS = frozenset(Stream)

COPY_FLAGS = {
    Stream.AUDIO: ['-codec:audio', 'copy'],
    Stream.VIDEO: ['-codec:video', 'copy'],
}


def format_quality(quality):
    """Format a CRF value for the command line: 28.0 -> '28', 23.5 -> '23.5'."""
    return f"{float(quality):g}"


class ConversionPlan:
    """Which streams one encoder run re-encodes and which it copies unchanged."""

    def __init__(self, source_path, output_path, requested_streams, streams_to_copy, extra_encoder_args):
        self.source_path = Path(source_path)
        self.output_path = Path(output_path)
        self.requested_streams = frozenset(requested_streams)
        self.streams_to_copy = frozenset(streams_to_copy)
        self.extra_encoder_args = list(extra_encoder_args)

    @property
    def streams_to_encode(self):
        return ALL_STREAMS - self.streams_to_copy

    def command(self, encoder='ffmpeg'):
        """Materialize the plan as an encoder invocation."""
        command = [encoder, '-i', str(self.source_path)]
        command += self.extra_encoder_args
        # Audio copy comes before video copy on the command line
        for stream in (Stream.AUDIO, Stream.VIDEO):
            if stream in self.streams_to_copy:
                command += COPY_FLAGS[stream]
        return command + ['-y', str(self.output_path)]

    def __repr__(self):
        encode = sorted(s.value for s in self.streams_to_encode)
        copy = sorted(s.value for s in self.streams_to_copy)
        return (f"ConversionPlan({str(self.source_path)!r} -> {str(self.output_path)!r}, "
                f"encode={encode}, copy={copy})")


def normalize_streams(requested_streams):
    """Turn None, a Stream or an iterable of Streams into a frozenset of Streams."""
    if requested_streams is None:
        return ALL_STREAMS
    if isinstance(requested_streams, Stream):
        return frozenset([requested_streams])

    streams = frozenset(requested_streams)
    if not streams:
        raise ValueError("At least one stream must be requested")
    unknown = [s for s in streams if not isinstance(s, Stream)]
    if unknown:
        raise ValueError(f"Unknown stream types: {unknown!r}")
    return streams


def plan_conversion(source_path, output_path, requested_streams=None, quality=DEFAULT_QUALITY):
    """Plan the conversion of source_path to output_path.

    Args:
        source_path: Video to convert
        output_path: File to write
        requested_streams: Streams that must be re-encoded. Defaults to both.
        quality: CRF value passed to the encoder when re-encoding video into MP4

    Returns:
        ConversionPlan

    A stream that was not requested is copied unchanged when the source and
    output share a container. Copying across different containers can
    corrupt the output, so in that case the encoder is left to re-encode it.
    """
    requested = normalize_streams(requested_streams)
    same_container = container_type(source_path) == container_type(output_path)

    extra_args = []
    streams_to_copy = set()

    if Stream.VIDEO in requested:
        if is_mp4(output_path):
            extra_args += ['-crf', format_quality(quality)]
        if Stream.AUDIO not in requested and same_container:
            streams_to_copy.add(Stream.AUDIO)

    if Stream.AUDIO in requested:
        if Stream.VIDEO not in requested and same_container:
            streams_to_copy.add(Stream.VIDEO)

    return ConversionPlan(source_path, output_path, requested, streams_to_copy, extra_args)


def conversion_command(source_path, output_path, requested_streams=None,
                       quality=DEFAULT_QUALITY, encoder='ffmpeg'):
    """Shortcut for plan_conversion(...).command(encoder)."""
    return plan_conversion(source_path, output_path, requested_streams, quality).command(encoder)
