"""
Thumbnail generation for images and videos.

Images are decoded with Pillow. Videos go through ffprobe (duration) and
ffmpeg (one PNG frame at the midpoint, capped at 15s) before taking the same
resize path. Every failure is raised as a ThumbnailError subclass.
"""
import enum
import io
import math
import mimetypes
import subprocess

from PIL import Image

from .logger import logger

THUMBNAIL_SIZE = (200, 1080)
MAX_SEEK_SECONDS = 15.0

# Modes Pillow can write to PNG as-is
PNG_MODES = {'1', 'L', 'LA', 'I', 'I;16', 'P', 'RGB', 'RGBA'}


class MimeKind(enum.Enum):
    IMAGE = 'image'
    VIDEO = 'video'
    OTHER = 'other'


def classify(path):
    """Classify a file name as image, video or other by its extension."""
    mime_type, _ = mimetypes.guess_type(path)
    if mime_type:
        if mime_type.startswith('image/'):
            return MimeKind.IMAGE
        if mime_type.startswith('video/'):
            return MimeKind.VIDEO
    return MimeKind.OTHER


class ThumbnailError(Exception):
    """Base class for every thumbnail generation failure."""


class UnsupportedKind(ThumbnailError):
    pass


class ImageDecodeError(ThumbnailError):
    pass


class ParseError(ThumbnailError):
    """The media probe printed something that is not a usable duration."""


class ExternalToolError(ThumbnailError):
    """An external process could not produce its output."""

    def __init__(self, tool, message):
        super().__init__(f'{tool}: {message}')
        self.tool = tool


class ToolMissing(ExternalToolError):
    def __init__(self, tool):
        super().__init__(tool, 'executable not found')


class NonZeroExit(ExternalToolError):
    def __init__(self, tool, returncode, stderr=b''):
        detail = stderr.decode('utf-8', errors='replace').strip().splitlines()
        tail = detail[-1] if detail else ''
        super().__init__(tool, f'exited with status {returncode}' + (f' ({tail})' if tail else ''))
        self.returncode = returncode
        self.stderr = stderr


class ToolTimeout(ExternalToolError):
    def __init__(self, tool, timeout):
        super().__init__(tool, f'timed out after {timeout}s')
        self.timeout = timeout


def run_tool(args, timeout=None):
    """Run an external command and return its stdout bytes.

    Raises ToolMissing, NonZeroExit or ToolTimeout instead of exposing raw
    process results.
    """
    tool = args[0]
    try:
        result = subprocess.run(args, stdin=subprocess.DEVNULL, stdout=subprocess.PIPE,
                                stderr=subprocess.PIPE, timeout=timeout)
    except FileNotFoundError:
        raise ToolMissing(tool)
    except subprocess.TimeoutExpired:
        raise ToolTimeout(tool, timeout)

    if result.returncode != 0:
        raise NonZeroExit(tool, result.returncode, result.stderr)
    return result.stdout


def probe_duration(path, timeout=None):
    """Return the duration of a media file in seconds, as reported by ffprobe."""
    output = run_tool([
        'ffprobe',
        '-v', 'error',
        '-show_entries', 'format=duration',
        '-of', 'default=noprint_wrappers=1:nokey=1',
        path,
    ], timeout=timeout)

    text = output.decode('utf-8', errors='replace').strip()
    try:
        duration = float(text)
    except ValueError:
        raise ParseError(f'failed to parse video duration {text!r} for {path}')
    if not math.isfinite(duration) or duration < 0:
        raise ParseError(f'unusable video duration {text!r} for {path}')
    return duration


def seek_point(duration):
    return min(duration / 2.0, MAX_SEEK_SECONDS)


def extract_frame(path, seconds, timeout=None):
    """Return one PNG-encoded frame of the video at the given offset."""
    return run_tool([
        'ffmpeg',
        '-i', path,
        '-ss', f'{seconds:.3f}',
        '-vframes', '1',
        '-f', 'image2',
        '-c:v', 'png',
        '-',
    ], timeout=timeout)


def make_thumbnail(image):
    """Shrink image to fit THUMBNAIL_SIZE and encode it as PNG bytes."""
    image.thumbnail(THUMBNAIL_SIZE, Image.Resampling.LANCZOS)
    if image.mode not in PNG_MODES:
        image = image.convert('RGBA' if 'A' in image.getbands() else 'RGB')
    buffered = io.BytesIO()
    image.save(buffered, format='PNG')
    return buffered.getvalue()


def _thumbnail_from(source, name):
    try:
        with Image.open(source) as img:
            img.load()
            return make_thumbnail(img)
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise ImageDecodeError(f'cannot build thumbnail for {name}: {e}')


def generate_image_thumbnail(path):
    logger.debug('generate_image_thumbnail for %s', path)
    return _thumbnail_from(path, path)


def generate_video_thumbnail(path, timeout=None):
    logger.debug('generate_video_thumbnail for %s', path)
    duration = probe_duration(path, timeout=timeout)
    frame = extract_frame(path, seek_point(duration), timeout=timeout)
    if not frame:
        raise ImageDecodeError(f'ffmpeg produced no frame for {path}')
    return _thumbnail_from(io.BytesIO(frame), path)


def generate_thumbnail(path, kind, timeout=None):
    """Build PNG thumbnail bytes for path according to its MimeKind."""
    if kind is MimeKind.IMAGE:
        return generate_image_thumbnail(path)
    if kind is MimeKind.VIDEO:
        return generate_video_thumbnail(path, timeout=timeout)
    raise UnsupportedKind(f'no thumbnail for {kind.value} file {path}')
