# Copyright 2024, Manifesto Contributors, All rights reserved.

"""
Logging setup for Manifesto.

Every component logs through a child of the main logger, obtained
with set_base_logger()/getChild(). LogManager configures that main
logger once per run: its level, where records go (stdout or a rotating
file) and whether they are written as text lines or JSON objects.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any

from .constants import Constants


class LogLevel:
    """Level names accepted in the config."""

    LEVELS = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }

    @classmethod
    def from_string(cls, level_str: str) -> int:
        """
        Raises:
            ValueError: If the level name is not recognized
        """
        level_upper = level_str.upper().strip()
        if level_upper not in cls.LEVELS:
            raise ValueError("Invalid log level '{}'. Valid levels: {}".format(level_str, ", ".join(cls.LEVELS)))
        return cls.LEVELS[level_upper]

    @classmethod
    def to_string(cls, level: int) -> str:
        for name, value in cls.LEVELS.items():
            if value == level:
                return name
        return "UNKNOWN"


class JsonFormatter(logging.Formatter):
    """
    One JSON object per line, for runs whose output is collected by a machine
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        # Set by log_with_context()
        if hasattr(record, "manifest_data"):
            log_data["extra"] = record.manifest_data
        return json.dumps(log_data, default=str)


class StandardFormatter(logging.Formatter):
    """
    TIMESTAMP - LEVEL - LOGGER (THREAD) - MESSAGE
    """

    FORMAT = "%(asctime)s - %(levelname)s - %(name)s (%(threadName)s) - %(message)s"
    DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

    def __init__(self):
        super().__init__(fmt=self.FORMAT, datefmt=self.DATE_FORMAT)


class LogManager:
    _main_logger: logging.Logger | None = None

    _log_dir: str | None = None
    _log_level: int = logging.INFO
    _use_json: bool = False

    @classmethod
    def initialize(
        cls,
        log_dir: str | None = None,
        log_level: str | int = logging.INFO,
        use_json: bool = False,
        debug: bool = False,
    ) -> None:
        """
        Configure the main logger.

        Args:
            log_dir: Directory for the rotating log file, None for stdout
            log_level: Level name or logging constant, ignored if debug is set
            use_json: Write records as JSON objects
            debug: Force the DEBUG level
        """
        if debug:
            cls._log_level = logging.DEBUG
        elif isinstance(log_level, str):
            cls._log_level = LogLevel.from_string(log_level)
        else:
            cls._log_level = log_level
        cls._log_dir = log_dir
        cls._use_json = use_json

        logger = logging.getLogger(Constants.SERVICE_NAME)
        cls._clear_handlers(logger)
        logger.setLevel(cls._log_level)
        handler = cls._create_handler(log_dir)
        handler.setFormatter(JsonFormatter() if use_json else StandardFormatter())
        logger.addHandler(handler)
        # Handlers live here, don't duplicate records through root
        logger.propagate = False
        cls._main_logger = logger

        logger.debug(
            "Logging initialized: level={}, output={}, format={}".format(
                LogLevel.to_string(cls._log_level), log_dir or "stdout", "json" if use_json else "standard"
            )
        )

    @classmethod
    def get_main_logger(cls) -> logging.Logger:
        if cls._main_logger is None:
            raise RuntimeError("LogManager not initialized. Call LogManager.initialize() first.")
        return cls._main_logger

    @classmethod
    def _clear_handlers(cls, logger: logging.Logger) -> None:
        for handler in logger.handlers[:]:
            handler.close()
            logger.removeHandler(handler)

    @classmethod
    def _create_handler(cls, log_dir: str | None) -> logging.Handler:
        if log_dir is None:
            return logging.StreamHandler(sys.stdout)
        return RotatingFileHandler(
            "{}/{}.log".format(log_dir, Constants.SERVICE_NAME),
            maxBytes=Constants.MAX_LOG_SIZE_IN_BYTES,
            backupCount=Constants.LOG_BACKUP_COUNT,
        )


def log_with_context(logger: logging.Logger, level: int, message: str, **context: Any) -> None:
    """
    Log a message with structured fields.
    The fields are written as the "extra" object when logging as JSON.
    """
    extra = {"manifest_data": context} if context else {}
    logger.log(level, message, extra=extra)
