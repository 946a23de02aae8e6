"""
filebrowser - HTTP directory browser with byte-range file serving and
cached image/video thumbnails.
"""

__version__ = "0.1.0"
