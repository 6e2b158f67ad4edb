"""
Logging for the precise-varcall engine.

Every module logs through a child of the ``precise_varcall`` logger.
Indel error model construction and basecall error export are timed with
``time_it``; per-site calling logs only at DEBUG level.
"""

import functools
import logging
import sys
import time
from pathlib import Path
from typing import Callable, Optional


LOGGER_NAME = "precise_varcall"
DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class PerformanceLogger:
    """Time a block and report it on the given logger.

    The elapsed seconds are kept on ``duration`` once the block exits.
    Exceptions are logged and re-raised.
    """

    def __init__(self, logger: logging.Logger, operation: str):
        self.logger = logger
        self.operation = operation
        self.start_time: Optional[float] = None
        self.duration: Optional[float] = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        self.logger.debug(f"Starting {self.operation}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration = time.perf_counter() - self.start_time
        if exc_type is None:
            self.logger.info(f"Completed {self.operation} in {self.duration:.3f}s")
        else:
            self.logger.error(f"Failed {self.operation} after {self.duration:.3f}s: {exc_val}")
        return False


def time_it(operation: Optional[str] = None):
    """Wrap a function in a PerformanceLogger on its module's logger."""
    def decorator(func: Callable) -> Callable:
        op_name = operation or func.__qualname__
        logger = logging.getLogger(func.__module__)

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            with PerformanceLogger(logger, op_name):
                return func(*args, **kwargs)
        return wrapper
    return decorator


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    console_output: bool = True,
    format_string: Optional[str] = None
) -> logging.Logger:
    """Configure the package logger.

    Calling this again replaces the handlers from the previous call. Records
    stop at the package logger, so an application root handler does not
    print them a second time.

    Args:
        level: Level name; unknown names fall back to INFO
        log_file: Also write records to this file, creating its directory
        console_output: Write records to stderr
        format_string: ``logging.Formatter`` format, DEFAULT_FORMAT if None

    Returns:
        The ``precise_varcall`` logger
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    formatter = logging.Formatter(format_string or DEFAULT_FORMAT)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(numeric_level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handlers = []
    if console_output:
        handlers.append(logging.StreamHandler(sys.stderr))
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    for handler in handlers:
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.propagate = False
    return logger


def get_logger(name: str = LOGGER_NAME) -> logging.Logger:
    """Return the package logger, or a named child of it."""
    if name != LOGGER_NAME and not name.startswith(f"{LOGGER_NAME}."):
        name = f"{LOGGER_NAME}.{name}"
    return logging.getLogger(name)
