"""
On-disk thumbnail cache mirroring the served directory tree.

A source file ``<serve_root>/a/b.jpg`` has its thumbnail stored as raw PNG
bytes in ``<cache_root>/a/b.jpg``. Entries are written once and never
refreshed, even when the source changes.
"""
import os
import tempfile

from .logger import logger
from .thumbnails import ThumbnailError, generate_thumbnail


class ThumbnailCache:
    """Read-through, write-once cache of generated thumbnails."""

    def __init__(self, cache_root, serve_root, generator=generate_thumbnail, tool_timeout=None):
        self.cache_root = os.path.abspath(cache_root)
        self.serve_root = os.path.abspath(serve_root)
        self.generator = generator
        self.tool_timeout = tool_timeout

    def cache_path(self, source_path):
        """Map source_path to its location under the cache root.

        Relative paths are taken from the served root. Raises ValueError when
        the normalized path falls outside of it.
        """
        full = os.path.normpath(os.path.join(self.serve_root, source_path))
        rel = os.path.relpath(full, self.serve_root)
        if rel == os.curdir or rel == os.pardir or rel.startswith(os.pardir + os.sep):
            raise ValueError(f'{source_path!r} is outside of {self.serve_root}')
        return os.path.join(self.cache_root, rel)

    def get_or_create(self, source_path, kind):
        """Return thumbnail bytes for source_path, generating them on a miss.

        Generation failures are logged and reported as None; nothing is
        recorded for them, so the next call tries again.
        """
        try:
            location = self.cache_path(source_path)
        except ValueError as e:
            logger.warning('Refusing thumbnail lookup: %s', e)
            return None

        source = os.path.normpath(os.path.join(self.serve_root, source_path))
        if not os.path.isfile(source):
            return None

        try:
            with open(location, 'rb') as f:
                data = f.read()
            logger.debug('Thumbnail cache hit for %s', source)
            return data
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning('Unreadable cache entry %s, regenerating: %s', location, e)

        try:
            data = self.generator(source, kind, timeout=self.tool_timeout)
        except ThumbnailError as e:
            logger.warning('No thumbnail for %s: %s', source, e)
            return None

        try:
            self._publish(location, data)
        except OSError as e:
            logger.warning('Could not store thumbnail %s: %s', location, e)
        return data

    def _publish(self, location, data):
        """Write data next to location, then rename it into place."""
        directory = os.path.dirname(location)
        os.makedirs(directory, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=directory, prefix='.thumb-')
        try:
            with os.fdopen(fd, 'wb') as tmp:
                tmp.write(data)
            os.replace(tmp_name, location)
        except OSError:
            os.remove(tmp_name)
            raise
        logger.debug('Stored thumbnail %s (%d bytes)', location, len(data))
