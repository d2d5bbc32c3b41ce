"""
Centralized logging configuration for the feasibility engine.
"""
import logging
import os
import time
from datetime import datetime

LOG_LEVEL_ENV = "FEASIBILITY_LOG_LEVEL"
LOG_DIR_ENV = "FEASIBILITY_LOG_DIR"


def _resolve_level(default: int) -> int:
    name = os.environ.get(LOG_LEVEL_ENV)
    if not name:
        return default
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else default


def setup_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """
    Create a configured logger instance.

    Args:
        name: Logger name (typically __name__ from calling module)
        level: Fallback logging level when FEASIBILITY_LOG_LEVEL is unset

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    level = _resolve_level(level)
    logger.setLevel(level)

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)

    # Format: timestamp - module - level - message
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # Optional file handler for debugging
    log_dir = os.environ.get(LOG_DIR_ENV)
    if log_dir and os.path.isdir(log_dir):
        file_handler = logging.FileHandler(
            os.path.join(log_dir, f'feasibility_{datetime.now().strftime("%Y%m%d")}.log')
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


class LogContext:
    """
    Time a block of work and log its start and outcome.

    The elapsed wall time (seconds, from `time.perf_counter`) is kept on
    `elapsed` once the block exits. Failures are logged at ERROR whatever
    `level` is and the exception propagates.
    """

    def __init__(self, logger: logging.Logger, operation: str, level: int = logging.INFO):
        self.logger = logger
        self.operation = operation
        self.level = level
        self.elapsed = None
        self._start = None

    def __enter__(self):
        self._start = time.perf_counter()
        self.logger.log(self.level, "Starting: %s", self.operation)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed = time.perf_counter() - self._start
        if exc_type:
            self.logger.error("Failed: %s after %.3fs - %s", self.operation, self.elapsed, exc_val)
        else:
            self.logger.log(self.level, "Completed: %s in %.3fs", self.operation, self.elapsed)
        return False
