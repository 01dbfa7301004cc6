"""
JSON logging for the sync engine.

All engine modules log below the ``storysync.sync`` logger, one JSON object
per line. Context such as story ids, slugs and page numbers is passed as
``extra={'details': {...}}`` and kept as a ``details`` object in the record.

Modules create their loggers at import time, before any configuration is
loaded, so the manager starts at INFO on stdout. ``LoggingManager.configure``
later applies the level and log file of a StorySyncConfig, and can be called
again when the configuration changes.
"""

import json
import logging
import sys
from typing import Optional

LOGGER_NAME = "storysync.sync"


class JsonFormatter(logging.Formatter):
    def format(self, record):
        log_record = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        details = getattr(record, 'details', None)
        if details:
            log_record['details'] = details
        if record.exc_info:
            log_record['exc_info'] = self.formatException(record.exc_info)
        # details may hold ids, enums or exceptions
        return json.dumps(log_record, default=str, ensure_ascii=False)


class LoggingManager:
    """Owns the handlers of the ``storysync.sync`` logger."""
    _instance: Optional['LoggingManager'] = None

    def __init__(self):
        self.logger = logging.getLogger(LOGGER_NAME)
        self.logger.propagate = False
        self.logger.handlers.clear()

        self.console_handler = logging.StreamHandler(sys.stdout)
        self.console_handler.setFormatter(JsonFormatter())
        self.logger.addHandler(self.console_handler)

        self.file_handler: Optional[logging.FileHandler] = None
        self.log_file: Optional[str] = None
        self.set_level("INFO")

    @classmethod
    def instance(cls) -> 'LoggingManager':
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def configure(cls, log_level: str = "INFO", log_file: Optional[str] = None) -> 'LoggingManager':
        manager = cls.instance()
        manager.set_level(log_level)
        manager.set_log_file(log_file)
        return manager

    def set_level(self, log_level: str) -> None:
        self.log_level = log_level.upper()
        self.logger.setLevel(self.log_level)

    def set_log_file(self, log_file: Optional[str]) -> None:
        if log_file == self.log_file:
            return
        if self.file_handler is not None:
            self.logger.removeHandler(self.file_handler)
            self.file_handler.close()
            self.file_handler = None
        if log_file:
            self.file_handler = logging.FileHandler(log_file, encoding='utf-8')
            self.file_handler.setFormatter(JsonFormatter())
            self.logger.addHandler(self.file_handler)
        self.log_file = log_file


def get_logger(name: str) -> logging.Logger:
    LoggingManager.instance()
    return logging.getLogger(name)
