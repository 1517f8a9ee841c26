"""
Logging setup for the tmplstack package and its command line.
"""
import json
import logging
import logging.handlers
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from ..error.exceptions import TmplstackError

PACKAGE_LOGGER = "tmplstack"
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class LogConfig:
    """Configures the ``tmplstack`` logger (or the root logger) in one call."""

    def __init__(
        self,
        log_level: str = "INFO",
        log_file: Optional[Union[str, Path]] = None,
        log_format: Optional[str] = None,
        max_bytes: int = 10 * 1024 * 1024,  # 10MB
        backup_count: int = 5,
        json_logging: bool = False,
        handler: Optional[logging.Handler] = None,
        logger_name: Optional[str] = PACKAGE_LOGGER,
    ):
        """
        Initialize the logging configuration.

        Args:
            log_level: Level name such as ``DEBUG`` or ``warning``
            log_file: Optional rotating log file
            log_format: Format string for plain text output
            max_bytes: Maximum size of the log file before rotation
            backup_count: Number of rotated files to keep
            json_logging: Emit one JSON object per record
            handler: Console handler to use instead of a plain StreamHandler
            logger_name: Logger to configure; None for the root logger
        """
        level = logging.getLevelName(log_level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Invalid log level: {log_level}")
        self.log_level = level
        self.log_file = Path(log_file) if log_file else None
        self.log_format = log_format or DEFAULT_FORMAT
        self.max_bytes = max_bytes
        self.backup_count = backup_count
        self.json_logging = json_logging
        self.handler = handler
        self.logger_name = logger_name

    def _formatter(self) -> logging.Formatter:
        if self.json_logging:
            return JsonFormatter()
        return logging.Formatter(self.log_format)

    def configure(self) -> logging.Logger:
        """Replace the target logger's handlers and return the logger."""
        formatter = self._formatter()

        console_handler = self.handler or logging.StreamHandler()
        # RichHandler renders its own layout unless JSON was asked for.
        if self.handler is None or self.json_logging:
            console_handler.setFormatter(formatter)
        handlers = [console_handler]

        if self.log_file:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                self.log_file,
                maxBytes=self.max_bytes,
                backupCount=self.backup_count,
                encoding="utf-8",
            )
            file_handler.setFormatter(formatter)
            handlers.append(file_handler)

        logger = logging.getLogger(self.logger_name)
        logger.setLevel(self.log_level)
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
        for handler in handlers:
            handler.setLevel(self.log_level)
            logger.addHandler(handler)
        return logger


class JsonFormatter(logging.Formatter):
    """Structured formatter; tmplstack errors contribute their component and operation."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            error = record.exc_info[1]
            log_data["exception"] = self.formatException(record.exc_info)
            if isinstance(error, TmplstackError):
                log_data["error_type"] = type(error).__name__
                if error.context.component:
                    log_data["component"] = error.context.component
                if error.context.operation:
                    log_data["operation"] = error.context.operation

        return json.dumps(log_data)
