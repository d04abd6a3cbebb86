#!/usr/bin/env python3
"""
Exceptions raised by the video converter.
"""


class VideoConverterError(Exception):
    """Base class for errors raised by the video converter."""


class ConfigurationError(VideoConverterError, ValueError):
    """Raised when settings are invalid. Fatal before any file is converted."""


class ExecutionError(VideoConverterError):
    """Raised by ExecutionResult.check() when a command did not succeed."""

    def __init__(self, result):
        super().__init__(result.describe_failure())
        self.result = result
