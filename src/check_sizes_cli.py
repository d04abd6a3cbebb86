#!/usr/bin/env python3
"""
Command line entry point that validates converted videos on their own.

Compares every MP4 in the output folder with its original and, with --fix,
replaces MP4 conversions that saved too little by a copy of the original.
"""

import argparse
import logging
import sys

import configuration_manager
import dependencies_utils
import logging_utils
import validation
from converter_errors import ConfigurationError
from media_probe import MediaProbe

logger = logging.getLogger(__name__)


def build_parser():
    parser = argparse.ArgumentParser(
        description='Compare converted MP4 files with their originals and report savings')
    parser.add_argument('--config',
                        help='Path to configuration file (default: config.yaml)')
    parser.add_argument('--folder',
                        help='Folder containing the original videos')
    parser.add_argument('--output-folder',
                        help='Folder containing the converted videos')
    parser.add_argument('--threshold', type=float,
                        help='Converted/original size ratio considered marginal (default: 0.9)')
    parser.add_argument('--fix', action=argparse.BooleanOptionalAction, default=None,
                        help='Replace marginal MP4 conversions with the original')
    parser.add_argument('--verbose', action=argparse.BooleanOptionalAction, default=None,
                        help='Report converted files without an original')
    return parser


def check_sizes(settings, probe=None):
    """Validate the output folder of settings. Returns the ValidationReport."""
    return validation.validate(
        settings.output_folder,
        settings.folder,
        probe or MediaProbe(settings.mp4info),
        threshold=settings.threshold,
        fix=settings.fix,
        verbose=settings.verbose,
    )


def main():
    parser = build_parser()
    args = parser.parse_args()

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

    logging_utils.setup_logging(settings.log_file, settings.verbose)

    if not dependencies_utils.check_commands(settings.mp4info):
        logger.error("Please install mp4info (package mp4v2) in order to use this script.")
        sys.exit(1)

    check_sizes(settings)


if __name__ == '__main__':
    main()
