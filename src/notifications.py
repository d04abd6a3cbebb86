#!/usr/bin/env python3
"""
Desktop notification when a background run finishes (macOS only).
"""

import logging
import os
import platform

from subprocess_utils import DISCARD, execute

logger = logging.getLogger(__name__)

NOTIFIER = 'terminal-notifier'
NOTIFICATION_TITLE = 'Video Conversion Complete'


def is_mac():
    return platform.system() == 'Darwin'


def notification_message(count):
    return f"Converted {count} video{'s' if count != 1 else ''}."


def notification_command(count, preview_path=None):
    command = [
        NOTIFIER,
        '-title', NOTIFICATION_TITLE,
        '-message', notification_message(count),
        '-sound', 'default',
        '-activate', 'com.apple.Photos',
    ]
    if count > 0 and preview_path:
        command += ['-contentImage', str(preview_path)]
    return command


def notify_user(count, preview_path=None):
    """Log the number of converted videos and post a notification.

    A missing or failing terminal-notifier is ignored. The preview image is
    removed afterwards.
    """
    logger.info(notification_message(count))

    result = execute(notification_command(count, preview_path), DISCARD)
    if not result.succeeded:
        logger.debug(f"Notification not shown: {result.describe_failure()}")

    if preview_path:
        try:
            os.remove(preview_path)
        except FileNotFoundError:
            pass
    return result.succeeded
