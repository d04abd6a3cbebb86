#!/usr/bin/env python3
"""
Locate and install the external tools the converter runs.
"""
import logging
import os
import shutil
import subprocess
from pathlib import Path

import subprocess_utils

logger = logging.getLogger(__name__)

REQUIRED_COMMANDS = ('ffmpeg', 'mp4info')

# Commands whose package names differ from the command
PACKAGE_EXCEPTIONS = {
    'mp4info': 'mp4v2',
}


def find_dependency_path(dependency_name, config_path=None):
    """Find the path to a dependency executable.

    Searches in this order:
    1. If config_path is provided and is an absolute path that exists, use it directly
    2. Use config_path if provided (for PATH resolution), otherwise use dependency_name

    Args:
        dependency_name: Name of the dependency (e.g., 'ffmpeg', 'mp4info')
        config_path: Optional path from configuration

    Returns:
        str: Path to the dependency executable
    """
    if config_path:
        config_path_obj = Path(config_path).expanduser()
        if config_path_obj.is_absolute() and config_path_obj.exists():
            logger.debug(
                f"Using absolute config path for {dependency_name}: {config_path_obj}")
            return str(config_path_obj)

    result = config_path if config_path else dependency_name
    logger.debug(f"Using PATH lookup for {dependency_name}: {result}")
    return result


def have_command(command):
    """Determine if a command is available, by name on PATH or by path."""
    return shutil.which(str(command)) is not None


def have_brew():
    return have_command('brew')


def package_for_command(command):
    """Get the package that provides a required command."""
    command = Path(str(command)).name
    return PACKAGE_EXCEPTIONS.get(command, command)


def install(packages):
    """Install packages using Homebrew.

    Args:
        packages: A package name or a list of package names

    Returns:
        bool: True if brew reported success
    """
    if isinstance(packages, str):
        packages = [packages]
    command_args = ['brew', 'install', *packages]
    try:
        subprocess_utils.run_command(command_args, check=True)
        return True
    except (subprocess.CalledProcessError, OSError) as e:
        logger.error(f"Failed to install {', '.join(packages)}: {e}")
        return False


def check_commands(commands):
    """Check for commands, installing any missing ones with Homebrew.

    Args:
        commands: A command name or a list of command names/paths

    Returns:
        bool: True if all commands are available (possibly after installing)
    """
    if isinstance(commands, str):
        commands = [commands]

    missing = [c for c in commands if not have_command(c)]
    if not missing:
        return True

    packages = [package_for_command(c) for c in missing]

    if not have_brew():
        logger.warning(
            f"brew command not found. Cannot install packages: {', '.join(packages)}.")
        logger.warning(f"PATH={os.environ.get('PATH', '')}")
        return False

    logger.info(f"Installing missing packages: {', '.join(packages)}")
    return install(packages)


def validate_dependencies(dependency_paths=None):
    """Check that ffmpeg and mp4info are available, installing them if possible.

    Args:
        dependency_paths: Optional dict with 'ffmpeg' and 'mp4info' keys
                          specifying paths to executables.
    """
    if dependency_paths is None:
        dependency_paths = {}

    commands = [dependency_paths.get(name, name) for name in REQUIRED_COMMANDS]
    if check_commands(commands):
        return True

    logger.error(
        f"Missing dependencies: {', '.join(c for c in commands if not have_command(c))}")
    logger.error("Please install these packages in order to use this script.")
    return False
