"""
Tests for the mirrored on-disk thumbnail cache.
"""
import os
import shutil
import tempfile
import threading
import time
import unittest
from unittest import mock

from filebrowser.cache import ThumbnailCache
from filebrowser.thumbnails import MimeKind, NonZeroExit, ToolMissing
from tests.helpers import FakeMediaTools, create_test_image


class TestThumbnailCache(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp(prefix='test_thumbnail_cache_')
        self.serve_dir = os.path.join(self.temp_dir, 'served')
        self.cache_dir = os.path.join(self.temp_dir, 'cache')
        os.makedirs(os.path.join(self.serve_dir, 'sub', 'dir'))

        self.image = os.path.join(self.serve_dir, 'sub', 'dir', 'pic.png')
        create_test_image(self.image, 400, 300)

        self.generator = mock.Mock(return_value=b'\x89PNG fake thumbnail')
        self.cache = ThumbnailCache(self.cache_dir, self.serve_dir, generator=self.generator)

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_cache_path_mirrors_served_tree(self):
        expected = os.path.join(self.cache_dir, 'sub', 'dir', 'pic.png')
        self.assertEqual(self.cache.cache_path(self.image), expected)
        self.assertEqual(self.cache.cache_path('sub/dir/pic.png'), expected)
        self.assertEqual(self.cache.cache_path('sub/./other/../dir/pic.png'), expected)

    def test_miss_generates_and_writes_through(self):
        data = self.cache.get_or_create(self.image, MimeKind.IMAGE)
        self.assertEqual(data, b'\x89PNG fake thumbnail')
        self.generator.assert_called_once_with(self.image, MimeKind.IMAGE, timeout=None)

        location = os.path.join(self.cache_dir, 'sub', 'dir', 'pic.png')
        with open(location, 'rb') as f:
            self.assertEqual(f.read(), data)
        # Only the published entry remains, no temporary files
        self.assertEqual(os.listdir(os.path.dirname(location)), ['pic.png'])

    def test_second_call_is_a_hit(self):
        first = self.cache.get_or_create(self.image, MimeKind.IMAGE)
        second = self.cache.get_or_create(self.image, MimeKind.IMAGE)
        self.assertEqual(first, second)
        self.assertEqual(self.generator.call_count, 1)

    def test_hit_ignores_source_changes(self):
        location = self.cache.cache_path(self.image)
        os.makedirs(os.path.dirname(location))
        with open(location, 'wb') as f:
            f.write(b'stale but kept')
        create_test_image(self.image, 10, 10, color=(255, 0, 0))

        self.assertEqual(self.cache.get_or_create(self.image, MimeKind.IMAGE), b'stale but kept')
        self.generator.assert_not_called()

    def test_directories_are_never_generated(self):
        folder = os.path.join(self.serve_dir, 'album.jpg')
        os.mkdir(folder)
        self.assertIsNone(self.cache.get_or_create(folder, MimeKind.IMAGE))
        self.generator.assert_not_called()

    def test_missing_source(self):
        missing = os.path.join(self.serve_dir, 'gone.png')
        self.assertIsNone(self.cache.get_or_create(missing, MimeKind.IMAGE))
        self.generator.assert_not_called()

    def test_failures_are_not_cached(self):
        self.generator.side_effect = NonZeroExit('ffmpeg', 1)
        self.assertIsNone(self.cache.get_or_create(self.image, MimeKind.VIDEO))
        self.assertIsNone(self.cache.get_or_create(self.image, MimeKind.VIDEO))
        self.assertEqual(self.generator.call_count, 2)
        self.assertFalse(os.path.exists(self.cache.cache_path(self.image)))

        self.generator.side_effect = None
        self.assertEqual(self.cache.get_or_create(self.image, MimeKind.VIDEO), b'\x89PNG fake thumbnail')

    def test_unsupported_kind_degrades_to_none(self):
        cache = ThumbnailCache(self.cache_dir, self.serve_dir)
        notes = os.path.join(self.serve_dir, 'notes.txt')
        with open(notes, 'w') as f:
            f.write('hello')
        self.assertIsNone(cache.get_or_create(notes, MimeKind.OTHER))

    def test_store_failure_still_returns_thumbnail(self):
        blocker = os.path.join(self.temp_dir, 'not_a_dir')
        with open(blocker, 'w') as f:
            f.write('x')
        cache = ThumbnailCache(blocker, self.serve_dir, generator=self.generator)
        self.assertEqual(cache.get_or_create(self.image, MimeKind.IMAGE), b'\x89PNG fake thumbnail')

    def test_tool_timeout_is_forwarded(self):
        cache = ThumbnailCache(self.cache_dir, self.serve_dir, generator=self.generator, tool_timeout=7)
        cache.get_or_create(self.image, MimeKind.IMAGE)
        self.generator.assert_called_once_with(self.image, MimeKind.IMAGE, timeout=7)

    def test_failed_rename_leaves_no_temporary_file(self):
        with mock.patch('filebrowser.cache.os.replace', side_effect=PermissionError(13, 'denied')):
            data = self.cache.get_or_create(self.image, MimeKind.IMAGE)
        self.assertEqual(data, b'\x89PNG fake thumbnail')
        self.assertEqual(os.listdir(os.path.join(self.cache_dir, 'sub', 'dir')), [])

    def test_concurrent_misses_publish_one_complete_entry(self):
        def slow_generator(path, kind, timeout=None):
            time.sleep(0.05)
            return b'x' * 100000

        cache = ThumbnailCache(self.cache_dir, self.serve_dir, generator=slow_generator)
        results = []
        threads = [threading.Thread(target=lambda: results.append(cache.get_or_create(self.image, MimeKind.IMAGE)))
                   for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(results, [b'x' * 100000] * 8)
        location = cache.cache_path(self.image)
        with open(location, 'rb') as f:
            self.assertEqual(f.read(), b'x' * 100000)
        self.assertEqual(os.listdir(os.path.dirname(location)), ['pic.png'])


class TestCacheTraversal(unittest.TestCase):
    """Cache keys are confined to the served root.

    The lookup refuses paths that normalize outside of it instead of
    mirroring them somewhere outside the cache root.
    """

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp(prefix='test_cache_traversal_')
        self.serve_dir = os.path.join(self.temp_dir, 'served')
        self.cache_dir = os.path.join(self.temp_dir, 'cache')
        os.makedirs(self.serve_dir)
        self.outside = os.path.join(self.temp_dir, 'outside.png')
        create_test_image(self.outside, 20, 20)
        self.generator = mock.Mock(return_value=b'png')
        self.cache = ThumbnailCache(self.cache_dir, self.serve_dir, generator=self.generator)

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_dotdot_is_rejected(self):
        with self.assertRaises(ValueError):
            self.cache.cache_path('../outside.png')
        with self.assertRaises(ValueError):
            self.cache.cache_path('a/../../outside.png')

    def test_absolute_path_outside_root_is_rejected(self):
        with self.assertRaises(ValueError):
            self.cache.cache_path(self.outside)

    def test_root_itself_is_not_a_key(self):
        with self.assertRaises(ValueError):
            self.cache.cache_path(self.serve_dir)

    def test_sibling_with_common_prefix_is_rejected(self):
        sibling = self.serve_dir + '-other'
        with self.assertRaises(ValueError):
            self.cache.cache_path(os.path.join(sibling, 'x.png'))

    def test_lookup_outside_root_returns_none(self):
        self.assertIsNone(self.cache.get_or_create('../outside.png', MimeKind.IMAGE))
        self.assertIsNone(self.cache.get_or_create(self.outside, MimeKind.IMAGE))
        self.generator.assert_not_called()
        self.assertFalse(os.path.exists(self.cache_dir))


class TestVideoCacheIdempotence(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp(prefix='test_video_cache_')
        self.video = os.path.join(self.temp_dir, 'clip.mp4')
        with open(self.video, 'wb') as f:
            f.write(b'\x00' * 128)
        self.cache = ThumbnailCache(os.path.join(self.temp_dir, '.cache'), self.temp_dir)

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_hit_runs_no_external_process(self):
        tools = FakeMediaTools()
        with mock.patch('filebrowser.thumbnails.subprocess.run', side_effect=tools) as run:
            first = self.cache.get_or_create(self.video, MimeKind.VIDEO)
            self.assertEqual(run.call_count, 2)
            second = self.cache.get_or_create(self.video, MimeKind.VIDEO)
            self.assertEqual(run.call_count, 2)
        self.assertIsNotNone(first)
        self.assertEqual(first, second)

    def test_missing_tools_give_no_thumbnail(self):
        with mock.patch('filebrowser.thumbnails.subprocess.run', side_effect=FileNotFoundError):
            self.assertIsNone(self.cache.get_or_create(self.video, MimeKind.VIDEO))

    def test_missing_tool_error_names_the_tool(self):
        self.assertIn('ffprobe', str(ToolMissing('ffprobe')))


if __name__ == '__main__':
    unittest.main()
