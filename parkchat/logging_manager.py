"""Logging configuration for ParkChat."""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path


class LogManager:
    """Manages logging configuration for the application.

    File logging is the default because console output would land in the
    middle of the user's prompt line.
    """

    def __init__(self, log_dir: Path | None = None):
        self.log_dir = log_dir or Path.home() / ".parkchat" / "logs"
        self.log_file = self.log_dir / "parkchat.log"

    def setup_logging(
        self,
        level: str = "INFO",
        log_to_file: bool = True,
        log_to_console: bool = False,
        max_bytes: int = 10 * 1024 * 1024,
        backup_count: int = 5,
    ) -> None:
        """Set up logging configuration.

        Args:
            level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_to_file: Whether to log to the rotating log file
            log_to_console: Whether to log to stderr
            max_bytes: Maximum log file size before rotation
            backup_count: Number of backup files to keep
        """
        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
            handler.close()

        formatter = logging.Formatter(
            "%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        if log_to_file:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                self.log_file,
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

        if log_to_console:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setFormatter(formatter)
            root_logger.addHandler(console_handler)

        if not root_logger.handlers:
            root_logger.addHandler(logging.NullHandler())

        # websockets logs every frame at DEBUG
        logging.getLogger("websockets").setLevel(
            max(root_logger.level, logging.INFO)
        )
