"""
Shared fixtures: test images and fake ffprobe/ffmpeg processes.
"""
import io
import subprocess

from PIL import Image


def create_test_image(path, width, height, color=(187, 187, 187), mode='RGB', format=None):
    """Create a plain single-colour image on disk."""
    Image.new(mode, (width, height), color).save(path, format=format)


def png_bytes(width, height, color=(10, 120, 200)):
    buffered = io.BytesIO()
    Image.new('RGB', (width, height), color).save(buffered, format='PNG')
    return buffered.getvalue()


class FakeMediaTools:
    """Stand-in for subprocess.run answering ffprobe and ffmpeg calls."""

    def __init__(self, duration=b'40.000000\n', frame=None, returncode=0):
        self.duration = duration
        self.frame = png_bytes(640, 320) if frame is None else frame
        self.returncode = returncode
        self.calls = []

    def __call__(self, args, **kwargs):
        self.calls.append(list(args))
        stdout = self.duration if args[0] == 'ffprobe' else self.frame
        if self.returncode:
            return subprocess.CompletedProcess(args, self.returncode, b'', b'boom\n')
        return subprocess.CompletedProcess(args, 0, stdout, b'')

    def calls_to(self, tool):
        return [call for call in self.calls if call[0] == tool]
