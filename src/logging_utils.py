#!/usr/bin/env python3
"""
Manage logging
"""

import logging
import logging.handlers
import os
import shlex
import sys
import tempfile
from pathlib import Path

DEFAULT_LOG_FILE_NAME = 'convert_videos.log'
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def obfuscate(message):
    """Replace the home directory with ~ and the user name with ${USER}."""
    home = os.environ.get('HOME')
    user = os.environ.get('USER')
    if home and home != '/':
        message = message.replace(home, '~')
    if user:
        message = message.replace(user, '${USER}')
    return message


class ObfuscatingFilter(logging.Filter):
    """Keep home directories and user names out of log output."""

    def filter(self, record):
        message = record.getMessage()
        record.msg = obfuscate(message)
        record.args = None
        return True


def format_command(command_args):
    """Format a command for the log the way a shell would accept it."""
    return '$ ' + shlex.join(str(arg) for arg in command_args)


def setup_logging(log_file_path=None, verbose=False):
    """Setup logging with both console and file output.

    Args:
        log_file_path: Path to log file. If None, defaults to temp directory.
        verbose: Log at DEBUG level instead of INFO.

    Returns:
        str: Path to the log file being used

    Note:
        Priority for log file path is handled by the CLI:
        1. Command line argument (--log-file)
        2. Environment variable (VIDEO_CONVERTER_LOG_FILE)
        3. Configuration file (logging.log_file)
        4. Default (temp directory)
    """
    if log_file_path is None:
        log_file_path = os.path.join(tempfile.gettempdir(), DEFAULT_LOG_FILE_NAME)

    try:
        log_file = Path(log_file_path)
        log_file.parent.mkdir(parents=True, exist_ok=True)
    except (OSError, PermissionError) as e:
        print(
            f"Warning: Cannot create log directory at {log_file_path}: {e}", file=sys.stderr)
        print("Falling back to temp directory", file=sys.stderr)
        log_file_path = os.path.join(tempfile.gettempdir(), DEFAULT_LOG_FILE_NAME)
        try:
            Path(log_file_path).parent.mkdir(parents=True, exist_ok=True)
        except (OSError, PermissionError) as e2:
            print(
                f"Error: Cannot create log directory in temp: {e2}", file=sys.stderr)
            print("Logging to console only", file=sys.stderr)
            log_file_path = None

    level = logging.DEBUG if verbose else logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    obfuscating_filter = ObfuscatingFilter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(obfuscating_filter)
    root_logger.addHandler(console_handler)

    # File handler with rotation (10MB max, keep 5 backups)
    if log_file_path:
        try:
            file_handler = logging.handlers.RotatingFileHandler(
                log_file_path,
                maxBytes=10 * 1024 * 1024,
                backupCount=5,
                encoding='utf-8'
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            file_handler.addFilter(obfuscating_filter)
            root_logger.addHandler(file_handler)

            root_logger.info(f"Logging to file: {log_file_path}")
        except (OSError, PermissionError) as e:
            root_logger.warning(
                f"Cannot create log file at {log_file_path}: {e}")
            root_logger.warning("Logging to console only")
            log_file_path = None
    else:
        root_logger.info("Logging to console only (file logging unavailable)")

    return str(log_file_path) if log_file_path else None
