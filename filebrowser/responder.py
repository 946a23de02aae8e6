"""
Full and partial (206) file responses.
"""
import mimetypes
import os

from .logger import logger

DEFAULT_MIME_TYPE = 'application/octet-stream'


class FileResponse:
    """Status, headers and body ready to be written by the HTTP layer."""

    def __init__(self, status, headers, body):
        self.status = status
        self.headers = headers
        self.body = body

    def __repr__(self):
        return f'FileResponse(status={self.status}, length={len(self.body)})'


def guess_mime(path):
    """Guess a MIME type from the file extension."""
    mime_type, _ = mimetypes.guess_type(path)
    return mime_type or DEFAULT_MIME_TYPE


def respond_file(path, byte_range=None):
    """Read path and build a 200 response, or a 206 one when byte_range is given.

    The range must already be validated against the file size. Open and read
    errors propagate as OSError.
    """
    mime_type = guess_mime(path)

    with open(path, 'rb') as f:
        file_size = os.fstat(f.fileno()).st_size

        if byte_range is None:
            body = f.read()
            headers = {
                'Content-Type': mime_type,
                'Content-Length': str(len(body)),
                'Accept-Ranges': 'bytes',
            }
            return FileResponse(200, headers, body)

        f.seek(byte_range.start)
        body = f.read(byte_range.length)

    if len(body) != byte_range.length:
        # File shrank between stat and read
        raise OSError(f'short read on {path}: expected {byte_range.length} bytes, got {len(body)}')

    logger.debug('Serving %s of %s', byte_range.content_range(file_size), path)
    headers = {
        'Content-Type': mime_type,
        'Content-Length': str(len(body)),
        'Content-Range': byte_range.content_range(file_size),
        'Accept-Ranges': 'bytes',
    }
    return FileResponse(206, headers, body)
