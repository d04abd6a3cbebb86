#!/usr/bin/env python3
"""
Subprocess utilities for running external commands.

run_command() captures output for tools whose output we parse (mp4info,
dependency checks). execute() runs the encoder, sending its combined
output to a sink and reporting the outcome as an ExecutionResult instead
of raising.
"""

import logging
import subprocess
import sys
from pathlib import Path

from converter_errors import ExecutionError
from logging_utils import format_command

logger = logging.getLogger(__name__)

# Maximum length for logged output to prevent huge log files
MAX_OUTPUT_LENGTH = 2000

# Output sink that throws the command's output away
DISCARD = 'discard'


class ExecutionResult:
    """Outcome of a single external command."""

    def __init__(self, args, returncode=None, timed_out=False, error=None, output=None):
        self.args = list(args)
        self.returncode = returncode
        self.timed_out = timed_out
        self.error = error
        self.output = output

    @property
    def succeeded(self):
        return self.returncode == 0 and not self.timed_out and self.error is None

    def describe_failure(self):
        """Human readable reason for a failed command, None on success."""
        if self.succeeded:
            return None
        if self.timed_out:
            return f"{self.args[0]} timed out"
        if self.error is not None:
            return f"{self.args[0]} could not be run: {self.error}"
        return f"{self.args[0]} exited with status {self.returncode}"

    def check(self):
        """Raise ExecutionError unless the command succeeded."""
        if not self.succeeded:
            raise ExecutionError(self)
        return self

    def __repr__(self):
        return (f"ExecutionResult(args={self.args!r}, returncode={self.returncode!r}, "
                f"timed_out={self.timed_out!r}, error={self.error!r})")


def _log_output(label, text, level=logging.INFO):
    stripped = text.strip()
    if not stripped:
        return
    if len(stripped) > MAX_OUTPUT_LENGTH:
        logger.log(
            level,
            f"Command {label} (truncated to {MAX_OUTPUT_LENGTH} chars): {stripped[:MAX_OUTPUT_LENGTH]}... "
            f"[output truncated, total length: {len(stripped)} chars]")
    else:
        logger.log(level, f"Command {label}: {stripped}")


def _no_window_flags(kwargs):
    # On Windows frozen apps, add CREATE_NO_WINDOW flag to prevent subprocess timeouts
    if sys.platform == 'win32' and getattr(sys, 'frozen', False):
        CREATE_NO_WINDOW = 0x08000000
        kwargs['creationflags'] = kwargs.get('creationflags', 0) | CREATE_NO_WINDOW
    return kwargs


def run_command(command_args, **kwargs):
    """Run a subprocess command and log all details.

    Args:
        command_args: List of command arguments
        **kwargs: Additional arguments to pass to subprocess.run
                 Note: stdout and stderr will be set to PIPE for logging unless
                       explicitly set by the caller

    Returns:
        subprocess.CompletedProcess: Result of the command execution
    """
    logger.debug(format_command(command_args))

    kwargs.setdefault('stdout', subprocess.PIPE)
    kwargs.setdefault('stderr', subprocess.PIPE)
    kwargs.setdefault('text', True)
    _no_window_flags(kwargs)

    try:
        result = subprocess.run(command_args, **kwargs)
    except subprocess.CalledProcessError as e:
        logger.error(f"Command failed with exit code {e.returncode}")
        if e.stdout:
            _log_output('stdout', e.stdout, logging.ERROR)
        if e.stderr:
            _log_output('stderr', e.stderr, logging.ERROR)
        raise
    except Exception as e:
        logger.error(f"Command execution error: {type(e).__name__}: {e}")
        raise

    if isinstance(result.stdout, str):
        _log_output('stdout', result.stdout, logging.DEBUG)
    if isinstance(result.stderr, str):
        # Some tools write normal output to stderr
        _log_output('stderr', result.stderr,
                    logging.DEBUG if result.returncode == 0 else logging.ERROR)

    logger.debug(f"Command exit code: {result.returncode}")
    return result


def execute(command_args, output_sink=None, timeout=None):
    """Run a command, sending its combined stdout/stderr to output_sink.

    Args:
        command_args: List of command arguments
        output_sink: Where the command's output goes. One of:
                     - None: inherit this process's stdout/stderr
                     - DISCARD: throw the output away
                     - a path (str or Path): appended to that file
                     - an open file object with a file descriptor
        timeout: Optional number of seconds after which the command is killed

    Returns:
        ExecutionResult: never raises for a failing or missing command
    """
    logger.info(format_command(command_args))

    kwargs = _no_window_flags({})
    log_file = None
    try:
        if output_sink is None:
            pass
        elif output_sink == DISCARD:
            kwargs['stdout'] = subprocess.DEVNULL
            kwargs['stderr'] = subprocess.DEVNULL
        elif isinstance(output_sink, (str, Path)):
            try:
                Path(output_sink).parent.mkdir(parents=True, exist_ok=True)
                log_file = open(output_sink, 'a', encoding='utf-8')
            except OSError as e:
                logger.error(f"Cannot open command log {output_sink}: {e}")
                return ExecutionResult(command_args, error=str(e))
            kwargs['stdout'] = log_file
            kwargs['stderr'] = subprocess.STDOUT
        else:
            output_sink.flush()
            kwargs['stdout'] = output_sink
            kwargs['stderr'] = subprocess.STDOUT

        try:
            completed = subprocess.run(command_args, timeout=timeout, **kwargs)
        except subprocess.TimeoutExpired:
            logger.error(f"Command timed out after {timeout} seconds: {command_args[0]}")
            return ExecutionResult(command_args, timed_out=True)
        except OSError as e:
            logger.error(f"Command execution error: {type(e).__name__}: {e}")
            return ExecutionResult(command_args, error=str(e))
    finally:
        if log_file is not None:
            log_file.close()

    result = ExecutionResult(command_args, returncode=completed.returncode)
    if not result.succeeded:
        logger.error(f"Command failed with exit code {completed.returncode}: {command_args[0]}")
    else:
        logger.debug(f"Command exit code: {completed.returncode}")
    return result
