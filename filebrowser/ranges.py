"""
Parsing of single-range HTTP ``Range`` headers.

Only ``bytes=<start>-<end>`` (end optional) is understood. Anything else,
including multi-range and suffix forms, yields ``None`` so the caller sends
the whole file instead of an error.
"""
import re
from typing import NamedTuple, Optional

MAX_OFFSET = 2 ** 64 - 1
MAX_DIGITS = len(str(MAX_OFFSET))

_DIGITS = re.compile(r'[0-9]+\Z')


class RangeSpec(NamedTuple):
    """Inclusive byte interval ``[start, end]`` into a file."""
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def content_range(self, file_size: int) -> str:
        return f'bytes {self.start}-{self.end}/{file_size}'


def _offset(text: str) -> Optional[int]:
    if not _DIGITS.match(text):
        return None
    # int() refuses digit strings past the interpreter's conversion limit
    digits = text.lstrip('0') or '0'
    if len(digits) > MAX_DIGITS:
        return None
    value = int(digits)
    return value if value <= MAX_OFFSET else None


def parse_range(header_value: str, file_size: int) -> Optional[RangeSpec]:
    """Parse a Range header value against a file of file_size bytes.

    Returns None for malformed or unsatisfiable ranges.
    """
    if not header_value or not header_value.startswith('bytes='):
        return None

    parts = header_value[len('bytes='):].split('-')
    if len(parts) != 2:
        return None

    start = _offset(parts[0])
    if start is None:
        return None

    if parts[1] == '':
        # Open-ended range runs to the last byte
        if file_size <= 0:
            return None
        end = file_size - 1
    else:
        end = _offset(parts[1])
        if end is None:
            return None

    if start > end or end >= file_size:
        return None

    return RangeSpec(start, end)
