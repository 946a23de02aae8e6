"""
Logging utilities shared by the whole package.
"""
import os
import logging
import sys
from logging.handlers import RotatingFileHandler

logger = logging.getLogger('filebrowser')
logger.setLevel(logging.INFO)

formatter = logging.Formatter(
    '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S')

console_handler = logging.StreamHandler(sys.stdout)
console_handler.setLevel(logging.INFO)
console_handler.setFormatter(formatter)
logger.addHandler(console_handler)


def initialize_file_logging(log_dir):
    """Add a rotating log file under log_dir (1MB per file, 5 backups)."""
    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.join(log_dir, "filebrowser.log")

    file_handler = RotatingFileHandler(
        log_file, maxBytes=1024*1024, backupCount=5)
    file_handler.setLevel(logger.level)
    file_handler.setFormatter(formatter)

    # Drop a previous file handler when re-initialized
    for handler in logger.handlers[:]:
        if isinstance(handler, RotatingFileHandler):
            logger.removeHandler(handler)
            handler.close()

    logger.addHandler(file_handler)
    logger.info("File logging initialized: %s", log_file)
    return log_file


def set_log_level(level):
    """Set the level of the package logger and its handlers."""
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)
    logger.debug("Log level set to %s", logging.getLevelName(level))


def enable_debug_logging():
    set_log_level(logging.DEBUG)


__all__ = ['logger', 'initialize_file_logging', 'set_log_level', 'enable_debug_logging']
