"""
Logging setup for eventdj.

Console logging always; a rotation-tolerant file handler when the log
directory is writable. Log write failures never reach the session.
"""

import logging
import logging.handlers
import os
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
QUIET_LOGGERS = ("httpx", "httpcore")


def _file_handler(log_path: str) -> Optional[logging.Handler]:
    log_dir = os.path.dirname(log_path) or "."
    if not os.path.isdir(log_dir) or not os.access(log_dir, os.W_OK):
        return None
    try:
        handler = logging.handlers.WatchedFileHandler(log_path, mode="a")
    except OSError:
        return None
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    original_emit = handler.emit

    def safe_emit(record):
        try:
            original_emit(record)
        except OSError:
            pass

    handler.emit = safe_emit
    return handler


def configure_logging(level: str = "INFO", log_path: Optional[str] = None) -> Optional[logging.Handler]:
    """
    Configure root logging.

    Args:
        level: Root level name
        log_path: Log file path (skipped when None or not writable)

    Returns:
        The attached file handler, or None
    """
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if not log_path:
        return None
    root = logging.getLogger()
    for existing in root.handlers:
        if isinstance(existing, logging.handlers.WatchedFileHandler) and \
                getattr(existing, "baseFilename", None) == os.path.abspath(log_path):
            return existing
    handler = _file_handler(log_path)
    if handler is not None:
        root.addHandler(handler)
    return handler
