#!/usr/bin/env python3
"""
Unit tests for preview.py and notifications.py
"""

import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch, MagicMock

from PIL import Image

import notifications
import preview
from subprocess_utils import DISCARD, ExecutionResult


class TestCropFilter(unittest.TestCase):
    """Test the centred square crop."""

    def test_landscape(self):
        self.assertEqual(preview.crop_filter(1920, 1080), 'crop=1080:1080:420:0')

    def test_portrait(self):
        self.assertEqual(preview.crop_filter(720, 1280), 'crop=720:720:0:280')

    def test_square(self):
        self.assertEqual(preview.crop_filter(500, 500), 'crop=500:500:0:0')

    def test_unknown_dimensions(self):
        self.assertIsNone(preview.crop_filter(None, None))


class TestPreviewCommand(unittest.TestCase):
    """Test the ffmpeg command that grabs the first frame."""

    def test_with_dimensions(self):
        command = preview.make_preview_command('/out/clip.mp4', 1920, 1080, '/tmp/preview.jpg')

        self.assertEqual(command, [
            'ffmpeg', '-i', '/out/clip.mp4', '-f', 'image2', '-filter', 'crop=1080:1080:420:0',
            '-vframes', '1', '-y', '/tmp/preview.jpg'
        ])

    def test_without_dimensions(self):
        command = preview.make_preview_command('/out/clip.mp4', None, None, '/tmp/preview.jpg', '/opt/ffmpeg')

        self.assertEqual(command, [
            '/opt/ffmpeg', '-i', '/out/clip.mp4', '-f', 'image2', '-vframes', '1', '-y', '/tmp/preview.jpg'
        ])


class TestShrinkPreview(unittest.TestCase):
    """Test downscaling of the preview image."""

    def test_large_image_is_downscaled(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / 'preview.jpg'
            Image.new('RGB', (800, 600), color=(200, 30, 30)).save(path, format='JPEG')

            self.assertTrue(preview.shrink_preview(path))

            with Image.open(path) as image:
                self.assertEqual(image.size, (256, 192))

    def test_small_image_keeps_its_size(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / 'preview.jpg'
            Image.new('RGB', (100, 100)).save(path, format='JPEG')

            self.assertTrue(preview.shrink_preview(path))

            with Image.open(path) as image:
                self.assertEqual(image.size, (100, 100))

    def test_unreadable_image(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / 'preview.jpg'
            path.write_bytes(b'not an image')

            with self.assertLogs('preview', 'WARNING'):
                self.assertFalse(preview.shrink_preview(path))


class TestGeneratePreview(unittest.TestCase):
    """Test generating a preview from a video."""

    @patch('preview.shrink_preview')
    @patch('preview.execute')
    def test_generate_preview(self, mock_execute, mock_shrink):
        with tempfile.TemporaryDirectory() as temp_dir:
            preview_path = str(Path(temp_dir) / 'preview.jpg')

            def fake_ffmpeg(command, output_sink=None):
                Path(command[-1]).write_bytes(b'jpeg')
                return ExecutionResult(command, returncode=0)

            mock_execute.side_effect = fake_ffmpeg
            probe = MagicMock()
            probe.dimensions.return_value = (1280, 720)

            result = preview.generate_preview('/out/clip.mp4', probe, preview_path)

            self.assertEqual(result, preview_path)
            self.assertIn('crop=720:720:280:0', mock_execute.call_args[0][0])
            mock_shrink.assert_called_once_with(preview_path)

    @patch('preview.execute')
    def test_failed_ffmpeg(self, mock_execute):
        mock_execute.return_value = ExecutionResult(['ffmpeg'], returncode=1)
        probe = MagicMock()
        probe.dimensions.return_value = (None, None)

        with self.assertLogs('preview', 'WARNING'):
            self.assertIsNone(preview.generate_preview('/out/clip.mp4', probe, '/nonexistent/preview.jpg'))


class TestNotifications(unittest.TestCase):
    """Test the completion notification."""

    def test_message(self):
        self.assertEqual(notifications.notification_message(0), 'Converted 0 videos.')
        self.assertEqual(notifications.notification_message(1), 'Converted 1 video.')
        self.assertEqual(notifications.notification_message(3), 'Converted 3 videos.')

    def test_command_with_preview(self):
        command = notifications.notification_command(2, '/tmp/preview.jpg')

        self.assertEqual(command[0], 'terminal-notifier')
        self.assertIn('Converted 2 videos.', command)
        self.assertEqual(command[-2:], ['-contentImage', '/tmp/preview.jpg'])

    def test_command_without_conversions_has_no_image(self):
        command = notifications.notification_command(0, '/tmp/preview.jpg')

        self.assertNotIn('-contentImage', command)

    @patch('notifications.execute')
    def test_notify_user_removes_preview(self, mock_execute):
        mock_execute.return_value = ExecutionResult(['terminal-notifier'], returncode=0)
        with tempfile.TemporaryDirectory() as temp_dir:
            preview_path = Path(temp_dir) / 'preview.jpg'
            preview_path.write_bytes(b'jpeg')

            self.assertTrue(notifications.notify_user(1, str(preview_path)))

            self.assertFalse(preview_path.exists())
            self.assertEqual(mock_execute.call_args[0][1], DISCARD)

    @patch('notifications.execute')
    def test_missing_notifier_is_ignored(self, mock_execute):
        mock_execute.return_value = ExecutionResult(['terminal-notifier'], error='No such file or directory')

        self.assertFalse(notifications.notify_user(0))

    @patch('notifications.platform.system', return_value='Darwin')
    def test_is_mac(self, mock_system):
        self.assertTrue(notifications.is_mac())


if __name__ == '__main__':
    unittest.main()
