#!/usr/bin/env python3
"""
Unit tests for dependencies_utils.py
"""

import os
import subprocess
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import dependencies_utils


class TestFindDependencyPath(unittest.TestCase):
    """Test resolution of configured executables."""

    def test_defaults_to_name(self):
        self.assertEqual(dependencies_utils.find_dependency_path('ffmpeg'), 'ffmpeg')

    def test_existing_absolute_path(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            tool = Path(temp_dir) / 'mp4info'
            tool.write_text('')

            self.assertEqual(dependencies_utils.find_dependency_path('mp4info', str(tool)), str(tool))

    def test_missing_absolute_path_is_kept_for_path_lookup(self):
        self.assertEqual(dependencies_utils.find_dependency_path('ffmpeg', '/nonexistent/ffmpeg'),
                         '/nonexistent/ffmpeg')


class TestPackages(unittest.TestCase):
    """Test mapping of commands to Homebrew packages."""

    def test_package_for_command(self):
        self.assertEqual(dependencies_utils.package_for_command('ffmpeg'), 'ffmpeg')
        self.assertEqual(dependencies_utils.package_for_command('mp4info'), 'mp4v2')
        self.assertEqual(dependencies_utils.package_for_command('/usr/local/bin/mp4info'), 'mp4v2')

    @patch('dependencies_utils.subprocess_utils.run_command')
    def test_install(self, mock_run):
        self.assertTrue(dependencies_utils.install('mp4v2'))

        mock_run.assert_called_once_with(['brew', 'install', 'mp4v2'], check=True)

    @patch('dependencies_utils.subprocess_utils.run_command')
    def test_install_failure(self, mock_run):
        mock_run.side_effect = subprocess.CalledProcessError(1, ['brew'])

        with self.assertLogs('dependencies_utils', 'ERROR'):
            self.assertFalse(dependencies_utils.install(['ffmpeg', 'mp4v2']))


class TestCheckCommands(unittest.TestCase):
    """Test checking and installing required commands."""

    @patch('dependencies_utils.install')
    @patch('dependencies_utils.have_command', return_value=True)
    def test_all_present(self, mock_have, mock_install):
        self.assertTrue(dependencies_utils.check_commands(['ffmpeg', 'mp4info']))
        mock_install.assert_not_called()

    @patch('dependencies_utils.install', return_value=True)
    @patch('dependencies_utils.have_command')
    def test_missing_installed_with_brew(self, mock_have, mock_install):
        mock_have.side_effect = lambda command: command != 'mp4info'

        self.assertTrue(dependencies_utils.check_commands(['ffmpeg', 'mp4info']))
        mock_install.assert_called_once_with(['mp4v2'])

    @patch('dependencies_utils.install')
    @patch('dependencies_utils.have_command')
    def test_missing_without_brew(self, mock_have, mock_install):
        mock_have.side_effect = lambda command: command == 'ffmpeg'

        with patch.dict(os.environ, {'PATH': '/usr/bin'}):
            with self.assertLogs('dependencies_utils', 'WARNING') as logs:
                self.assertFalse(dependencies_utils.check_commands('mp4info'))

        mock_install.assert_not_called()
        self.assertIn('mp4v2', logs.output[0])
        self.assertIn('PATH=/usr/bin', logs.output[1])

    @patch('dependencies_utils.check_commands', return_value=True)
    def test_validate_dependencies_uses_configured_paths(self, mock_check):
        self.assertTrue(dependencies_utils.validate_dependencies({'ffmpeg': '/opt/ffmpeg/bin/ffmpeg'}))

        mock_check.assert_called_once_with(['/opt/ffmpeg/bin/ffmpeg', 'mp4info'])

    @patch('dependencies_utils.have_command', return_value=False)
    @patch('dependencies_utils.check_commands', return_value=False)
    def test_validate_dependencies_reports_missing(self, mock_check, mock_have):
        with self.assertLogs('dependencies_utils', 'ERROR') as logs:
            self.assertFalse(dependencies_utils.validate_dependencies())

        self.assertIn('ffmpeg, mp4info', logs.output[0])


if __name__ == '__main__':
    unittest.main()
