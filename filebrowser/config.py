"""
Command line and environment configuration.

Usage: filebrowser [folder_path] [port] [bind_address] [options]
Examples:
  filebrowser                               # Current directory, 127.0.0.1:8080
  filebrowser ~/Videos                      # Specific folder
  filebrowser ~/Videos 8000 0.0.0.0         # All positional parameters
  filebrowser ~/Videos --cache-dir /tmp/thumbs --tool-timeout 30
"""
import argparse
import os

DEFAULT_PORT = 8080
DEFAULT_BIND_ADDRESS = "127.0.0.1"
CACHE_DIRNAME = ".cache"


class Config:
    """Runtime settings for one server instance."""

    def __init__(self, serve_path=".", port=DEFAULT_PORT, bind_address=DEFAULT_BIND_ADDRESS,
                 cache_dir=None, tool_timeout=None, debug=False, log_dir=None):
        self.serve_path = os.path.abspath(serve_path)
        self.port = port
        self.bind_address = bind_address
        self.cache_dir = os.path.abspath(cache_dir) if cache_dir else os.path.join(self.serve_path, CACHE_DIRNAME)
        self.tool_timeout = tool_timeout
        self.debug = debug
        self.log_dir = log_dir

    def __repr__(self):
        return (f"Config(serve_path={self.serve_path!r}, port={self.port}, "
                f"bind_address={self.bind_address!r}, cache_dir={self.cache_dir!r})")


def _port(value):
    try:
        port = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port: {value!r}")
    if not 0 <= port <= 65535:
        raise argparse.ArgumentTypeError(f"port out of range: {port}")
    return port


def _timeout(value):
    try:
        seconds = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid timeout: {value!r}")
    if seconds <= 0:
        raise argparse.ArgumentTypeError("timeout must be positive")
    return seconds


def build_parser(environ=None):
    environ = os.environ if environ is None else environ
    parser = argparse.ArgumentParser(
        prog="filebrowser",
        description="Browse a directory over HTTP with image and video thumbnails.")
    parser.add_argument("folder_path", nargs="?", default=".",
                        help="directory to serve (default: current directory)")
    parser.add_argument("port", nargs="?", type=_port,
                        default=environ.get("PORT", str(DEFAULT_PORT)),
                        help="port to listen on (default: $PORT or %d)" % DEFAULT_PORT)
    parser.add_argument("bind_address", nargs="?",
                        default=environ.get("HOST", DEFAULT_BIND_ADDRESS),
                        help="address to bind (default: $HOST or %s)" % DEFAULT_BIND_ADDRESS)
    parser.add_argument("--cache-dir", default=None,
                        help="thumbnail cache root (default: <folder_path>/%s)" % CACHE_DIRNAME)
    parser.add_argument("--tool-timeout", type=_timeout, default=None, metavar="SECONDS",
                        help="timeout for ffprobe/ffmpeg calls (default: none)")
    parser.add_argument("--debug", action="store_true", help="enable debug logging")
    parser.add_argument("--log-dir", default=None, help="also write rotating logs to this directory")
    return parser


def parse_args(argv=None, environ=None):
    """Parse argv into a Config, exiting with status 2 on invalid input."""
    parser = build_parser(environ)
    args = parser.parse_args(argv)

    serve_path = os.path.abspath(args.folder_path)
    if not os.path.exists(serve_path):
        parser.error(f"path does not exist: {serve_path}")
    if not os.path.isdir(serve_path):
        parser.error(f"path is not a directory: {serve_path}")

    return Config(
        serve_path=serve_path,
        port=args.port,
        bind_address=args.bind_address,
        cache_dir=args.cache_dir,
        tool_timeout=args.tool_timeout,
        debug=args.debug,
        log_dir=args.log_dir,
    )
