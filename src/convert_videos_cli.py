#!/usr/bin/env python3
"""
Command line entry point for convert_videos.

By default the conversion runs in a forked background process with the
lowest scheduling priority, logging to the log folder. Use --foreground to
run in the terminal.
"""

import argparse
import logging
import os
import shutil
import sys
from pathlib import Path

import configuration_manager
import dependencies_utils
import logging_utils
import notifications
import preview
from converter_errors import ConfigurationError
from convert_videos import VideoConverter

logger = logging.getLogger(__name__)

BACKGROUND_PRIORITY = 19


def build_parser():
    parser = argparse.ArgumentParser(
        description='Convert a folder of videos to size-reduced MP4 files',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  convert_videos                                   # ~/Downloads -> ~/Desktop in the background
  convert_videos --foreground --folder ~/Movies
  convert_videos --quality 23 --output-folder /tmp/converted --clean
        """
    )
    parser.add_argument('--config',
                        help='Path to configuration file (default: config.yaml)')
    parser.add_argument('--folder',
                        help='Folder containing videos to convert (default: ~/Downloads)')
    parser.add_argument('--output-folder',
                        help='Folder for converted videos (default: ~/Desktop)')
    parser.add_argument('--log-folder',
                        help='Folder for background logs (default: ~/logs/convert_videos)')
    parser.add_argument('--quality', type=float,
                        help='CRF value for video encoding, 0-51 (default: 28)')
    parser.add_argument('--timeout', type=float,
                        help='Kill an encoder run after this many seconds (default: no limit)')
    parser.add_argument('--verbose', action=argparse.BooleanOptionalAction, default=None,
                        help='Generate verbose output')
    parser.add_argument('--foreground', action='store_true', default=None,
                        help='Run in the foreground instead of a background process')
    parser.add_argument('--clean', action='store_true', default=None,
                        help='Remove originals after successful conversion')
    parser.add_argument('--log-file',
                        help='Path to log file (can be set via VIDEO_CONVERTER_LOG_FILE env var)')
    return parser


def background_log_file(settings):
    return settings.log_file or str(Path(settings.log_folder) / logging_utils.DEFAULT_LOG_FILE_NAME)


def notify(converter, result):
    """Show a notification with a preview of the first converted video."""
    succeeded = result.succeeded
    preview_path = None
    if succeeded:
        preview_path = preview.generate_preview(
            succeeded[0].output_path,
            converter.probe,
            ffmpeg=converter.settings.ffmpeg,
            output_sink=Path(converter.settings.log_folder) / 'preview.log',
        )
    notifications.notify_user(len(succeeded), preview_path)


def run_batch(settings, background=False):
    """Convert, validate and clean up. Returns the BatchResult."""
    converter = VideoConverter(settings)
    result = converter.convert_all()
    converter.clean_sources(result.outcomes)

    if background and notifications.is_mac():
        notify(converter, result)
    return result


def run_in_background(settings):
    """Fork a low-priority child that runs the batch. Returns the child's PID in the parent."""
    log_file = background_log_file(settings)

    pid = os.fork()
    if pid:
        print(f"Child process is {pid}. Output in {logging_utils.obfuscate(log_file)}.")
        return pid

    exit_code = 0
    try:
        try:
            os.nice(BACKGROUND_PRIORITY)
        except OSError as e:
            logger.warning(f"Could not lower process priority: {e}")

        # Detach from the terminal's stdin to avoid SIGHUP
        devnull = os.open(os.devnull, os.O_RDONLY)
        os.dup2(devnull, sys.stdin.fileno())
        os.close(devnull)

        shutil.rmtree(settings.log_folder, ignore_errors=True)
        Path(settings.log_folder).mkdir(parents=True, exist_ok=True)
        logging_utils.setup_logging(log_file, settings.verbose)
        logger.info(
            f"Process priority is {os.getpriority(os.PRIO_PROCESS, 0)} for PID {os.getpid()}.")

        run_batch(settings, background=True)
    except Exception:
        logger.exception("Background conversion failed")
        exit_code = 1
    finally:
        logging.shutdown()
        os._exit(exit_code)


def main():
    """Main entry point for the script."""
    parser = build_parser()
    args = parser.parse_args()

    # First we init logging - first log of init will go to temp location
    logging_utils.setup_logging()

    config, validation_errors = configuration_manager.load_config(args.config, args)
    if validation_errors:
        for err in validation_errors:
            logger.error(err)
        parser.print_help()
        sys.exit(1)

    try:
        settings = configuration_manager.ConversionSettings.from_config(config)
    except ConfigurationError as e:
        logger.error(str(e))
        sys.exit(1)

    if not dependencies_utils.validate_dependencies(config['dependencies']):
        sys.exit(1)

    if settings.foreground or not hasattr(os, 'fork'):
        logging_utils.setup_logging(settings.log_file, settings.verbose)
        run_batch(settings)
        return

    run_in_background(settings)


if __name__ == '__main__':
    main()
