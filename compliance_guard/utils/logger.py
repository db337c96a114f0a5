"""
Logging setup for the screening engine.

Module loggers come from ``get_logger(__name__)``. Screening verdicts and
sync cycles are additionally written to the ``audit`` logger, which
``setup_logging`` routes to its own file and keeps out of the console.
"""

import logging
import logging.handlers
import sys
import time
from functools import wraps
from pathlib import Path
from typing import Optional

AUDIT_LOGGER_NAME = 'compliance_guard.audit'

LOG_FORMAT = '[%(asctime)s] %(levelname)-8s [%(name)s:%(lineno)d] %(message)s'
AUDIT_FORMAT = '%(asctime)s %(message)s'

# file name -> minimum level, for handlers on the root logger
ROOT_LOG_FILES = {
    'compliance_guard.log': None,
    'errors.log': logging.ERROR,
}


def _rotating_handler(path: Path, level: int, fmt: str, max_bytes: int, backups: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backups, encoding='utf-8')
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def setup_logging(
    log_level: str = "INFO",
    log_dir: Optional[Path] = None,
    console: bool = True,
    max_file_size: int = 5 * 1024 * 1024,
    backup_count: int = 3
) -> None:
    """
    Install console and rotating file handlers.

    Args:
        log_level: Level name for the root logger, e.g. "DEBUG"
        log_dir: Directory for compliance_guard.log, errors.log and audit.log;
            no files are written when omitted
        console: Whether to log to stderr
        max_file_size: Bytes per file before rotation
        backup_count: Rotated files kept per log
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    cleanup_logging()
    root = logging.getLogger()
    root.setLevel(level)

    if console:
        # stdout carries command output
        stream = logging.StreamHandler(sys.stderr)
        stream.setLevel(level)
        stream.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(stream)

    audit = get_audit_logger()
    audit.setLevel(logging.INFO)
    audit.propagate = False

    if log_dir is None:
        return

    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    for filename, minimum in ROOT_LOG_FILES.items():
        root.addHandler(_rotating_handler(log_dir / filename, minimum or level, LOG_FORMAT,
                                          max_file_size, backup_count))
    audit.addHandler(_rotating_handler(log_dir / 'audit.log', logging.INFO, AUDIT_FORMAT,
                                       max_file_size, backup_count))


def cleanup_logging() -> None:
    """Close and detach every handler installed by setup_logging."""
    for target in (logging.getLogger(), get_audit_logger()):
        for handler in list(target.handlers):
            target.removeHandler(handler)
            handler.close()


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def get_audit_logger() -> logging.Logger:
    """Logger for the compliance audit trail."""
    return logging.getLogger(AUDIT_LOGGER_NAME)


def log_performance(logger: logging.Logger, operation_name: str):
    """Decorator logging how long each call of the wrapped function took."""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.error(f"{operation_name} failed after {time.perf_counter() - started:.3f}s: {e}")
                raise
            logger.info(f"{operation_name} took {time.perf_counter() - started:.3f}s")
            return result
        return wrapper
    return decorator
