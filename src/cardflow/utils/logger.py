"""Logging infrastructure with import context."""
import logging
import os
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Optional


def get_home_dir() -> Path:
    """Return the CardFlow data directory (logs, default database)."""
    return Path(os.getenv("CARDFLOW_HOME", str(Path.home() / ".cardflow")))


class ImportContextFilter(logging.Filter):
    """Add import context to log records."""

    def __init__(self):
        super().__init__()
        self.import_id: Optional[str] = None

    def filter(self, record):
        """Add import_id to record."""
        record.import_id = self.import_id or "-"
        return True


class CardFlowLogger:
    """Centralized logging manager."""

    def __init__(self, log_level: str = "INFO"):
        self.log_dir = get_home_dir() / "logs"
        self.log_file = self.log_dir / "cardflow.log"
        self.import_filter = ImportContextFilter()

        self.logger = logging.getLogger("cardflow")
        self.logger.setLevel(getattr(logging, log_level.upper()))
        self.logger.handlers.clear()

        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] [import:%(import_id)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(formatter)
        console_handler.addFilter(self.import_filter)
        self.logger.addHandler(console_handler)

        # File handler with rotation (10MB per file); skipped on read-only homes
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                self.log_file,
                maxBytes=10 * 1024 * 1024,
                backupCount=30,
                encoding="utf-8"
            )
        except OSError as e:
            self.logger.warning(f"File logging disabled ({self.log_dir}): {e}")
            return

        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(self.import_filter)
        self.logger.addHandler(file_handler)

    def set_import_context(self, import_id: Optional[str]):
        """Set current import context for logging."""
        self.import_filter.import_id = import_id

    def get_logger(self) -> logging.Logger:
        """Get the configured logger."""
        return self.logger


# Global logger instance
_logger_instance: Optional[CardFlowLogger] = None


def get_logger(log_level: str = "INFO") -> logging.Logger:
    """Get or create global logger instance."""
    global _logger_instance
    if _logger_instance is None:
        _logger_instance = CardFlowLogger(log_level)
    return _logger_instance.get_logger()


def set_import_context(import_id: Optional[str]):
    """Set import context for logging."""
    if _logger_instance:
        _logger_instance.set_import_context(import_id)
