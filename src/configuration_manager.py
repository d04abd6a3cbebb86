#!/usr/bin/env python3
"""
Configuration manager

Settings are resolved in this order, later sources winning:
defaults, config.yaml, environment variables, command line arguments.
The result is frozen into a ConversionSettings that every component receives.
"""

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

import dependencies_utils
from converter_errors import ConfigurationError

# Constants
DEFAULT_FOLDER = '~/Downloads'
DEFAULT_OUTPUT_FOLDER = '~/Desktop'
DEFAULT_LOG_FOLDER = '~/logs/convert_videos'
DEFAULT_QUALITY = 28
MIN_QUALITY = 0
MAX_QUALITY = 51
# CRF values outside this range are allowed but rarely what anyone wants
RECOMMENDED_QUALITY_RANGE = (18, 28)
# Converted/original size ratio at or above which a conversion saved too little
SAVINGS_THRESHOLD = 0.9

ENV_PREFIX = 'CONVERT_VIDEOS_'
TRUE_PATTERN = re.compile(r'^(y|t)', re.IGNORECASE)

logger = logging.getLogger(__name__)


def validate_quality(quality):
    """Validate that the quality value is a number in the valid range (0-51)."""
    if isinstance(quality, bool):
        return False
    try:
        quality_float = float(quality)
    except (TypeError, ValueError):
        return False
    return MIN_QUALITY <= quality_float <= MAX_QUALITY


def is_recommended_quality(quality):
    low, high = RECOMMENDED_QUALITY_RANGE
    return low <= float(quality) <= high


def validate_threshold(threshold):
    """Validate that the savings threshold is a ratio in (0, 1]."""
    if isinstance(threshold, bool):
        return False
    try:
        threshold_float = float(threshold)
    except (TypeError, ValueError):
        return False
    return 0 < threshold_float <= 1


def validate_timeout(timeout):
    """Validate an encoder timeout: None (no limit) or a positive number of seconds."""
    if timeout is None:
        return True
    if isinstance(timeout, bool):
        return False
    try:
        return float(timeout) > 0
    except (TypeError, ValueError):
        return False


def boolean_env_var(name, default_value=False):
    """Return True if the environment variable starts with y or t (case-insensitive).

    Returns default_value when the variable is not set.
    """
    value = os.environ.get(name)
    if value is None:
        return default_value
    return bool(TRUE_PATTERN.match(value))


def float_env_var(name, default_value=0.0):
    """Return the environment variable as a float, default_value when it is not set."""
    value = os.environ.get(name)
    if value is None:
        return default_value
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Ignoring non-numeric {name}={value!r}")
        return default_value


def prepare_default_config():
    return {
        'folder': DEFAULT_FOLDER,
        'output_folder': DEFAULT_OUTPUT_FOLDER,
        'log_folder': DEFAULT_LOG_FOLDER,
        'output': {
            'quality': DEFAULT_QUALITY,
        },
        'validation': {
            'threshold': SAVINGS_THRESHOLD,
            'fix': True,
        },
        'dependencies': {
            'ffmpeg': 'ffmpeg',
            'mp4info': 'mp4info',
        },
        'logging': {
            'log_file': None  # None means default to the log folder or temp directory
        },
        'encoder_timeout': None,
        'verbose': False,
        'foreground': False,
        'clean': False,
    }


NESTED_SECTIONS = ('output', 'validation', 'dependencies', 'logging')


def merge_user_config(default_config, user_config):
    """Merge a user config over the defaults, one level deep for nested sections."""
    config = {**default_config, **user_config}
    for section in NESTED_SECTIONS:
        if section not in user_config:
            continue
        if isinstance(user_config[section], dict):
            config[section] = {**default_config[section], **user_config[section]}
        else:
            # None or an invalid type; fall back to defaults to avoid runtime errors
            config[section] = default_config[section]
    return config


def apply_environment(config):
    """Override config values from CONVERT_VIDEOS_* environment variables."""
    for key in ('folder', 'output_folder', 'log_folder'):
        value = os.environ.get(ENV_PREFIX + key.upper())
        if value:
            config[key] = value

    for key in ('verbose', 'foreground', 'clean'):
        config[key] = boolean_env_var(ENV_PREFIX + key.upper(), config[key])

    if os.environ.get(ENV_PREFIX + 'CRF') is not None:
        config['output']['quality'] = float_env_var(
            ENV_PREFIX + 'CRF', config['output']['quality'])

    log_file = os.environ.get('VIDEO_CONVERTER_LOG_FILE')
    if log_file:
        config['logging']['log_file'] = log_file
    return config


def apply_arguments(config, args):
    """Override config values with command line arguments that were given."""
    if args is None:
        return config

    for key in ('folder', 'output_folder', 'log_folder'):
        value = getattr(args, key, None)
        if value:
            config[key] = value

    for key in ('verbose', 'foreground', 'clean'):
        value = getattr(args, key, None)
        if value is not None:
            config[key] = value

    quality = getattr(args, 'quality', None)
    if quality is not None:
        config['output']['quality'] = quality

    threshold = getattr(args, 'threshold', None)
    if threshold is not None:
        config['validation']['threshold'] = threshold

    fix = getattr(args, 'fix', None)
    if fix is not None:
        config['validation']['fix'] = fix

    timeout = getattr(args, 'timeout', None)
    if timeout is not None:
        config['encoder_timeout'] = timeout

    log_file = getattr(args, 'log_file', None)
    if log_file:
        config['logging']['log_file'] = log_file
    return config


def post_process_configuration(config, args):
    config = apply_arguments(apply_environment(config), args)

    config['dependencies']['ffmpeg'] = dependencies_utils.find_dependency_path(
        'ffmpeg', config['dependencies'].get('ffmpeg'))
    config['dependencies']['mp4info'] = dependencies_utils.find_dependency_path(
        'mp4info', config['dependencies'].get('mp4info'))

    validation_issues = []

    quality = config['output'].get('quality')
    if not validate_quality(quality):
        validation_issues.append(
            f"Invalid quality value: {quality!r}. Must be a number between {MIN_QUALITY} and {MAX_QUALITY}.")

    threshold = config['validation'].get('threshold')
    if not validate_threshold(threshold):
        validation_issues.append(
            f"Invalid savings threshold: {threshold!r}. Must be greater than 0 and at most 1.")

    if not validate_timeout(config.get('encoder_timeout')):
        validation_issues.append(
            f"Invalid encoder_timeout: {config.get('encoder_timeout')!r}. Must be a positive number of seconds.")

    folder = config.get('folder')
    if not folder:
        validation_issues.append(
            "Error: No folder specified. Provide via command line, environment or config file.")
    elif not os.path.isdir(os.path.expanduser(str(folder))):
        validation_issues.append(
            f"Error: '{folder}' is not a valid directory.")

    return config, validation_issues


def load_config(config_path=None, args=None):
    """Load configuration from a YAML file and resolve it against env and args.

    Returns:
        tuple: (config dict, list of validation issue strings)
    """
    default_config = prepare_default_config()

    if config_path is None:
        config_path = Path('config.yaml')
    else:
        config_path = Path(config_path)

    if not config_path.exists():
        logger.debug(f"Config file not found: {config_path}, using defaults")
        config = default_config
    else:
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                user_config = yaml.safe_load(f)
            # Handle None, False, or other falsy/invalid values
            if not isinstance(user_config, dict):
                user_config = {}

            config = merge_user_config(default_config, user_config)
            logger.info(f"Loaded configuration from {config_path}")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Error loading config file {config_path}: {e}")
            config = prepare_default_config()

    return post_process_configuration(config, args)


def _as_number(value):
    """Convert numeric strings from YAML or the environment; leave anything else for validation."""
    if isinstance(value, bool):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return value


@dataclass(frozen=True)
class ConversionSettings:
    """Immutable settings shared by every part of a run."""
    folder: Path
    output_folder: Path
    log_folder: Path
    quality: float = DEFAULT_QUALITY
    threshold: float = SAVINGS_THRESHOLD
    fix: bool = True
    ffmpeg: str = 'ffmpeg'
    mp4info: str = 'mp4info'
    encoder_timeout: Optional[float] = None
    verbose: bool = False
    foreground: bool = False
    clean: bool = False
    log_file: Optional[str] = None

    def __post_init__(self):
        if not validate_quality(self.quality):
            raise ConfigurationError(
                f"Invalid quality value: {self.quality!r}. Must be a number between {MIN_QUALITY} and {MAX_QUALITY}.")
        if not validate_threshold(self.threshold):
            raise ConfigurationError(
                f"Invalid savings threshold: {self.threshold!r}. Must be greater than 0 and at most 1.")
        if not validate_timeout(self.encoder_timeout):
            raise ConfigurationError(
                f"Invalid encoder timeout: {self.encoder_timeout!r}. Must be a positive number of seconds.")
        if not is_recommended_quality(self.quality):
            low, high = RECOMMENDED_QUALITY_RANGE
            logger.warning(
                f"Quality {self.quality} is outside the recommended range {low}-{high}")

    @classmethod
    def from_config(cls, config):
        """Build settings from a dict returned by load_config()."""
        timeout = config.get('encoder_timeout')
        return cls(
            folder=Path(str(config['folder'])).expanduser(),
            output_folder=Path(str(config['output_folder'])).expanduser(),
            log_folder=Path(str(config['log_folder'])).expanduser(),
            quality=_as_number(config['output']['quality']),
            threshold=_as_number(config['validation']['threshold']),
            fix=bool(config['validation'].get('fix', True)),
            ffmpeg=config['dependencies']['ffmpeg'],
            mp4info=config['dependencies']['mp4info'],
            encoder_timeout=None if timeout is None else _as_number(timeout),
            verbose=bool(config.get('verbose')),
            foreground=bool(config.get('foreground')),
            clean=bool(config.get('clean')),
            log_file=config['logging'].get('log_file'),
        )
