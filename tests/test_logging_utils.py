#!/usr/bin/env python3
"""
Unit tests for logging_utils.py
"""

import logging
import os
import tempfile
import unittest
from unittest.mock import patch, MagicMock

import logging_utils


def close_root_handlers():
    # Close file handles to avoid Windows file locking issues
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)


class TestObfuscate(unittest.TestCase):
    """Test removal of personal details from log messages."""

    @patch.dict(os.environ, {'HOME': '/Users/alice', 'USER': 'alice'})
    def test_home_and_user_replaced(self):
        message = logging_utils.obfuscate('Copied /Users/alice/Downloads/a.mp4 for alice')

        self.assertEqual(message, 'Copied ~/Downloads/a.mp4 for ${USER}')

    @patch.dict(os.environ, {'HOME': '/', 'USER': 'root'})
    def test_root_home_is_not_replaced(self):
        message = logging_utils.obfuscate('/tmp/clip.mp4')

        self.assertEqual(message, '/tmp/clip.mp4')

    def test_unset_variables(self):
        env = {k: v for k, v in os.environ.items() if k not in ('HOME', 'USER')}
        with patch.dict(os.environ, env, clear=True):
            self.assertEqual(logging_utils.obfuscate('/home/x/clip.mp4'), '/home/x/clip.mp4')

    @patch.dict(os.environ, {'HOME': '/home/bob', 'USER': 'bob'})
    def test_filter_rewrites_formatted_message(self):
        record = logging.LogRecord('test', logging.INFO, __file__, 1,
                                   'Converting %s', ('/home/bob/clip.mov',), None)

        self.assertTrue(logging_utils.ObfuscatingFilter().filter(record))
        self.assertEqual(record.getMessage(), 'Converting ~/clip.mov')


class TestFormatCommand(unittest.TestCase):
    """Test shell-style command formatting."""

    def test_plain_arguments(self):
        self.assertEqual(logging_utils.format_command(['ffmpeg', '-i', 'a.mov', '-y', 'a.mp4']),
                         '$ ffmpeg -i a.mov -y a.mp4')

    def test_arguments_with_spaces_are_quoted(self):
        self.assertEqual(logging_utils.format_command(['mp4info', '/videos/my clip.mp4']),
                         "$ mp4info '/videos/my clip.mp4'")


class TestSetupLogging(unittest.TestCase):
    """Test logging setup functionality."""

    def setUp(self):
        """Set up test fixtures."""
        logging.getLogger().handlers.clear()

    def tearDown(self):
        """Clean up after tests."""
        close_root_handlers()

    def test_setup_logging_default_path(self):
        """Test logging setup with default temp directory path."""
        log_path = logging_utils.setup_logging()

        self.assertIsNotNone(log_path)
        self.assertIn(tempfile.gettempdir(), log_path)
        self.assertIn('convert_videos.log', log_path)

        # Should have both console and file handlers
        handler_types = [type(h).__name__ for h in logging.getLogger().handlers]
        self.assertIn('StreamHandler', handler_types)
        self.assertIn('RotatingFileHandler', handler_types)

    def test_setup_logging_creates_directory(self):
        """Test that logging setup creates missing directories."""
        with tempfile.TemporaryDirectory() as temp_dir:
            nested_path = os.path.join(temp_dir, 'subdir', 'logs', 'app.log')
            log_path = logging_utils.setup_logging(nested_path)

            self.assertEqual(log_path, nested_path)
            self.assertTrue(os.path.exists(nested_path))
            close_root_handlers()

    def test_setup_logging_console_only(self):
        """Test logging works with console only when the directory cannot be created."""
        with patch('logging_utils.Path.mkdir', side_effect=PermissionError("No permission")):
            with patch('sys.stderr', new=MagicMock()):
                log_path = logging_utils.setup_logging('/invalid/path.log')

        self.assertIsNone(log_path)
        handler_types = [type(h).__name__ for h in logging.getLogger().handlers]
        self.assertEqual(handler_types, ['StreamHandler'])

    def test_setup_logging_clears_existing_handlers(self):
        """Test that setup_logging replaces existing handlers."""
        root_logger = logging.getLogger()
        dummy_handler = logging.StreamHandler()
        root_logger.addHandler(dummy_handler)

        logging_utils.setup_logging()

        self.assertNotIn(dummy_handler, root_logger.handlers)

    def test_setup_logging_levels(self):
        """Test INFO by default and DEBUG when verbose."""
        logging_utils.setup_logging()
        self.assertEqual(logging.getLogger().level, logging.INFO)

        logging_utils.setup_logging(verbose=True)
        root_logger = logging.getLogger()
        self.assertEqual(root_logger.level, logging.DEBUG)
        for handler in root_logger.handlers:
            self.assertEqual(handler.level, logging.DEBUG)

    def test_handlers_obfuscate(self):
        """Test that every handler carries the obfuscating filter."""
        logging_utils.setup_logging()

        for handler in logging.getLogger().handlers:
            self.assertTrue(any(isinstance(f, logging_utils.ObfuscatingFilter) for f in handler.filters))

    def test_setup_logging_file_handler_rotation(self):
        """Test that file handler has rotation configured."""
        with tempfile.TemporaryDirectory() as temp_dir:
            logging_utils.setup_logging(os.path.join(temp_dir, 'test.log'))

            file_handlers = [h for h in logging.getLogger().handlers
                             if isinstance(h, logging.handlers.RotatingFileHandler)]
            self.assertEqual(len(file_handlers), 1)
            # 10MB max, 5 backups
            self.assertEqual(file_handlers[0].maxBytes, 10 * 1024 * 1024)
            self.assertEqual(file_handlers[0].backupCount, 5)
            close_root_handlers()

    @patch.dict(os.environ, {'HOME': '/home/carol', 'USER': 'carol'})
    def test_setup_logging_writes_obfuscated_messages(self):
        """Test that the log file receives messages without the home directory."""
        with tempfile.TemporaryDirectory() as temp_dir:
            log_path = os.path.join(temp_dir, 'test.log')
            logging_utils.setup_logging(log_path)

            logger = logging.getLogger('convert_videos')
            logger.info("Converting /home/carol/Downloads/clip.mov")
            for handler in logging.getLogger().handlers:
                handler.flush()

            with open(log_path, 'r', encoding='utf-8') as f:
                content = f.read()
            self.assertIn('Converting ~/Downloads/clip.mov', content)
            self.assertNotIn('/home/carol', content)
            close_root_handlers()

    def test_setup_logging_file_permission_error(self):
        """Test handling of permission errors when creating log file."""
        with tempfile.TemporaryDirectory() as temp_dir:
            log_path = os.path.join(temp_dir, 'test.log')

            with patch('logging_utils.logging.handlers.RotatingFileHandler',
                       side_effect=PermissionError("Permission denied")):
                result = logging_utils.setup_logging(log_path)

            self.assertIsNone(result)
            self.assertGreater(len(logging.getLogger().handlers), 0)


if __name__ == '__main__':
    unittest.main()
