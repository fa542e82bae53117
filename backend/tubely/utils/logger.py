"""
Centralized logging configuration for the application
"""

import copy
import logging
import sys
from typing import Optional
from datetime import datetime


class ColoredFormatter(logging.Formatter):
    """Custom formatter with color support for different log levels"""

    # ANSI color codes
    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'        # Reset
    }

    def format(self, record):
        # Records are shared between handlers, so colour a copy
        if record.levelname in self.COLORS:
            record = copy.copy(record)
            record.levelname = f"{self.COLORS[record.levelname]}{record.levelname}{self.COLORS['RESET']}"

        return super().format(record)


CONSOLE_FORMAT = '%(asctime)s | %(levelname)s | %(name)s | %(message)s'
FILE_FORMAT = '%(asctime)s | %(levelname)s | %(name)s | %(funcName)s:%(lineno)d | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Get a logger for a module

    Handlers are attached once by setup_logging() on the root logger, so module
    loggers only carry an optional level override and propagate upwards.

    Args:
        name: Logger name (usually __name__)
        level: Optional log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        Logger instance
    """
    logger = logging.getLogger(name)
    if level:
        logger.setLevel(getattr(logging, level.upper()))
    return logger


def setup_logging(level: str = "INFO", log_file: Optional[str] = None):
    """
    Setup global logging configuration

    Args:
        level: Default log level
        log_file: Optional log file path
    """
    # Root logger configuration
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    # Clear existing handlers
    root_logger.handlers.clear()

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(ColoredFormatter(fmt=CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(console_handler)

    # File handler if specified
    if log_file:
        try:
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(logging.Formatter(fmt=FILE_FORMAT, datefmt=DATE_FORMAT))
            root_logger.addHandler(file_handler)
        except OSError as e:
            root_logger.warning(f"Could not create file handler for {log_file}: {e}")


# Performance monitoring
class PerformanceLogger:
    """Logger for timing pipeline stages"""

    def __init__(self, name: str):
        self.logger = get_logger(f"perf.{name}")
        self.operation = None
        self.start_time = None

    def start(self, operation: str):
        """Start timing an operation"""
        self.operation = operation
        self.start_time = datetime.now()
        self.logger.debug(f"Starting {operation}")

    def end(self, additional_info: Optional[str] = None) -> float:
        """End timing, log the result and return the duration in seconds"""
        if self.start_time is None:
            self.logger.warning("end() called without start()")
            return 0.0

        duration = (datetime.now() - self.start_time).total_seconds()
        info_str = f" - {additional_info}" if additional_info else ""
        self.logger.info(f"Completed {self.operation} in {duration:.3f}s{info_str}")
        self.start_time = None
        return duration

    def metric(self, name: str, value: float, unit: str = ""):
        """Log a performance metric"""
        unit_str = f" {unit}" if unit else ""
        self.logger.info(f"METRIC | {name}: {value}{unit_str}")
