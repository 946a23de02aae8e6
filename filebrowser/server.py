#!/usr/bin/env python3
"""
HTTP file browser with byte-range support and thumbnail listings.

Routes:
  /            hello
  /hey         hello, again
  /ip          the peer address as seen by the server
  /file/<path> a file (200, or 206 with a Range header) or a directory listing
"""
import http.server
import os
import socketserver
import sys
from urllib.parse import unquote, urlsplit

from .cache import ThumbnailCache
from .config import parse_args
from .listing import render_directory, scan_directory
from .logger import enable_debug_logging, initialize_file_logging, logger
from .ranges import parse_range
from .responder import FileResponse, respond_file

FILE_PREFIX = '/file/'


class FileBrowserRequestHandler(http.server.BaseHTTPRequestHandler):
    """Routes GET requests to the file responder and the directory renderer."""

    server_version = 'filebrowser'

    def log_message(self, format, *args):
        logger.info('%s - %s', self.address_string(), format % args)

    def send_text(self, code, text):
        body = text.encode('utf-8')
        self.send_response(code)
        self.send_header('Content-Type', 'text/plain; charset=utf-8')
        self.send_header('Content-Length', str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def send_file_response(self, response):
        self.send_response(response.status)
        for name, value in response.headers.items():
            self.send_header(name, value)
        self.end_headers()
        self.wfile.write(response.body)

    def do_GET(self):
        """Handle GET requests."""
        path = urlsplit(self.path).path

        if path == '/':
            self.send_text(200, 'Hello world!')
        elif path == '/hey':
            self.send_text(200, 'Hey there!')
        elif path == '/ip':
            self.send_text(200, f'Find you at {self.client_address}')
        elif path == '/file' or path.startswith(FILE_PREFIX):
            # surrogateescape keeps non-UTF-8 filename bytes intact
            self.handle_file_request(unquote(path[len(FILE_PREFIX):], errors='surrogateescape'))
        else:
            self.send_error(404, 'Not found')

    def handle_file_request(self, rel_path):
        serve_path = self.server.serve_path
        fs_path = os.path.normpath(os.path.join(serve_path, rel_path.lstrip('/')))

        # Security check: ensure path is within serve directory
        if fs_path != serve_path and not fs_path.startswith(serve_path.rstrip(os.sep) + os.sep):
            logger.warning('%s tried to leave the served root: %r', self.address_string(), rel_path)
            self.send_error(403, 'Access denied')
            return

        if not os.path.exists(fs_path):
            self.send_text(404, 'File or directory not found')
            return

        try:
            if os.path.isfile(fs_path):
                response = self.file_response(fs_path)
            elif os.path.isdir(fs_path):
                response = self.directory_response(fs_path)
            else:
                response = None
        except OSError as e:
            logger.exception('Error serving %s', fs_path)
            self.send_error(500, f'Error serving file: {e.strerror or e}')
            return

        if response is None:
            self.send_text(500, 'Unknown file type')
        else:
            self.send_file_response(response)

    def file_response(self, file_path):
        """Full or partial content for a file, depending on the Range header."""
        byte_range = None
        range_header = self.headers.get('Range')
        if range_header:
            byte_range = parse_range(range_header, os.path.getsize(file_path))
            if byte_range is None:
                logger.debug('Ignoring Range %r for %s', range_header, file_path)
        return respond_file(file_path, byte_range)

    def directory_response(self, path):
        """HTML listing of a directory."""
        rel_path = os.path.relpath(path, self.server.serve_path).replace(os.sep, '/')
        if rel_path == '.':
            rel_path = ''
        logger.info('%s asking for dir %s (%s)', self.address_string(), path, rel_path)

        entries = scan_directory(path)
        html = render_directory(entries, rel_path, path, self.server.cache).encode('utf-8')
        headers = {
            'Content-Type': 'text/html; charset=utf-8',
            'Content-Length': str(len(html)),
        }
        return FileResponse(200, headers, html)


class FileBrowserServer(socketserver.ThreadingTCPServer):
    """One thread per request; thumbnail subprocesses only block their own request."""

    allow_reuse_address = True
    daemon_threads = True

    def __init__(self, server_address, serve_path, cache, handler=FileBrowserRequestHandler):
        self.serve_path = os.path.abspath(serve_path)
        self.cache = cache
        super().__init__(server_address, handler)


def make_server(config):
    cache = ThumbnailCache(config.cache_dir, config.serve_path, tool_timeout=config.tool_timeout)
    return FileBrowserServer((config.bind_address, config.port), config.serve_path, cache)


def main(argv=None):
    config = parse_args(argv)
    if config.debug:
        enable_debug_logging()
    if config.log_dir:
        initialize_file_logging(config.log_dir)

    with make_server(config) as httpd:
        host, port = httpd.server_address[:2]
        print(f"🚀 Server running on http://{host}:{port}/file/")
        print(f"📂 Serving files from: {config.serve_path}")
        print(f"🖼️  Thumbnail cache: {config.cache_dir}")
        print(f"⏹️  Press Ctrl+C to stop")
        try:
            httpd.serve_forever()
        except KeyboardInterrupt:
            print("\n✋ Server stopped")
    return 0


if __name__ == '__main__':
    sys.exit(main())
