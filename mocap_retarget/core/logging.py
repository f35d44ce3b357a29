"""Logging system with colored output and file logging"""

import copy
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Set


ROOT_LOGGER_NAME = "retarget"


class ColoredFormatter(logging.Formatter):
    """Colored log output for terminal."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        # Other handlers share the record, so color a copy
        record = copy.copy(record)
        color = self.COLORS.get(record.levelname, self.RESET)
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        record.name = f"\033[34m{record.name}{self.RESET}"
        return super().format(record)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    log_dir: str = "logs",
    use_color: bool = True
) -> logging.Logger:
    """
    Setup application-wide logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional log file name, a timestamp is appended
        log_dir: Directory for log files
        use_color: Colorize console output

    Returns:
        Root logger of the retarget namespace
    """
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(getattr(logging, level.upper()))

    if root_logger.handlers:
        return root_logger

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG)
    fmt = "%(asctime)s │ %(levelname)-8s │ %(name)-24s │ %(message)s"
    if use_color and sys.stdout.isatty():
        console_format = ColoredFormatter(fmt, datefmt="%H:%M:%S")
    else:
        console_format = logging.Formatter(fmt, datefmt="%H:%M:%S")
    console_handler.setFormatter(console_format)
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        file_path = log_path / f"{log_file}_{timestamp}.log"

        file_handler = logging.FileHandler(file_path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_format = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)-24s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        file_handler.setFormatter(file_format)
        root_logger.addHandler(file_handler)

        root_logger.info(f"Logging to file: {file_path}")

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a named logger under the retarget namespace.

    Args:
        name: Module name (e.g., "motion.body", "pose.face", "export.vmd")

    Returns:
        Logger instance
    """
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


class OnceLogger:
    """
    Emits each distinct message key only once.

    Solvers run every frame; a malformed landmark set would otherwise
    repeat the same diagnostic at capture rate.
    """

    def __init__(self, logger: logging.Logger):
        self._logger = logger
        self._seen: Set[str] = set()

    def log(self, level: int, key: str, message: str) -> bool:
        """Log message under key unless already logged. Returns True if emitted."""
        if key in self._seen:
            return False
        self._seen.add(key)
        self._logger.log(level, message)
        return True

    def debug(self, key: str, message: str) -> bool:
        return self.log(logging.DEBUG, key, message)

    def warning(self, key: str, message: str) -> bool:
        return self.log(logging.WARNING, key, message)

    def clear(self) -> None:
        self._seen.clear()
