from __future__ import annotations

import json
import logging
import os
from contextlib import contextmanager
from contextvars import ContextVar
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from flask import Flask, current_app

# Attributes every LogRecord carries; anything else was passed via ``extra``.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}

_context: ContextVar[Dict[str, Any]] = ContextVar("abstract_portal_log_context", default={})

# category -> file name under LOGGING_BASE_DIR
CATEGORY_FILES: Dict[str, str] = {
    "app": "application.log",
    "auth": "auth.log",
    "route": "route.log",
    "submission": "submission.log",
    "review": "review.log",
    "bulk": "bulk_update.log",
    "notification": "notification.log",
    "mail": "mail.log",
    "statistics": "statistics.log",
}


@contextmanager
def log_context(**fields: Any):
    """Attach ``fields`` to every record logged inside the block; ``None`` values are skipped."""

    merged = {**_context.get(), **{k: v for k, v in fields.items() if v is not None}}
    token = _context.set(merged)
    try:
        yield
    finally:
        _context.reset(token)


class ContextAwareFormatter(logging.Formatter):
    """Text or JSON lines, with the active ``log_context`` fields appended."""

    def __init__(self, *, json_format: bool = False, static_fields: Optional[Dict[str, Any]] = None) -> None:
        super().__init__("[%(asctime)s] %(levelname)s %(name)s - %(message)s")
        self.json_format = json_format
        self.static_fields = {k: v for k, v in (static_fields or {}).items() if v is not None}

    def format(self, record: logging.LogRecord) -> str:
        context = _context.get()
        if not self.json_format:
            line = super().format(record)
            if context:
                line += " | " + " ".join(f"{key}={context[key]}" for key in sorted(context))
            return line

        entry: Dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **self.static_fields,
        }
        entry.update({k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS and not k.startswith("_")})
        if context:
            entry["context"] = dict(context)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class LoggerManager:
    """
    One ``abstract_portal.<category>`` logger per category, each with its own
    midnight-rotated file, an optional shared console handler, and the Flask
    app's handlers mirrored in when an app is active.
    """

    def __init__(
        self,
        *,
        base_dir: Optional[str] = None,
        backup_count: int = 7,
        level: int = logging.INFO,
        category_files: bool = True,
        console: bool = True,
        mirror_app_handlers: bool = True,
        json_format: bool = False,
        static_fields: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.base_dir = Path(base_dir or os.getenv("LOGGING_BASE_DIR", "/tmp/abstract_portal_logs"))
        self.backup_count = backup_count
        self.level = level
        self.category_files = category_files
        self.console = console
        self.mirror_app_handlers = mirror_app_handlers
        self.formatter = ContextAwareFormatter(json_format=json_format, static_fields=static_fields)
        self._loggers: Dict[str, logging.Logger] = {}
        self._console_handler: Optional[logging.Handler] = None

    def get_logger(self, category: str) -> logging.Logger:
        key = category.strip().lower()
        if key in self._loggers:
            return self._loggers[key]

        logger = logging.getLogger(f"abstract_portal.{key}")
        logger.propagate = False
        logger.setLevel(self.level)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)

        if self.category_files:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            file_handler = TimedRotatingFileHandler(
                self.base_dir / CATEGORY_FILES.get(key, f"{key}.log"),
                when="midnight",
                backupCount=self.backup_count,
                encoding="utf-8",
                utc=True,
            )
            file_handler.setFormatter(self.formatter)
            logger.addHandler(file_handler)

        if self.console:
            if self._console_handler is None:
                self._console_handler = logging.StreamHandler()
                self._console_handler.setFormatter(self.formatter)
            logger.addHandler(self._console_handler)

        if self.mirror_app_handlers:
            try:
                app_handlers = list(current_app.logger.handlers)
            except RuntimeError:
                app_handlers = []
            for handler in app_handlers:
                logger.addHandler(handler)

        self._loggers[key] = logger
        return logger

    def shutdown(self) -> list:
        """Detach every handler; close only the files this manager opened. Returns the released categories."""

        released = list(self._loggers)
        for logger in self._loggers.values():
            for handler in list(logger.handlers):
                if isinstance(handler, TimedRotatingFileHandler):
                    handler.close()
                logger.removeHandler(handler)
        self._loggers.clear()
        self._console_handler = None
        return released


def _flag(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _level(value: Any) -> int:
    if isinstance(value, int):
        return value
    return getattr(logging, str(value or "INFO").strip().upper(), logging.INFO)


_manager: Optional[LoggerManager] = None


def init_logger(app: Flask) -> LoggerManager:
    """Rebuild the shared manager from ``app.config``."""

    global _manager

    manager = LoggerManager(
        base_dir=app.config.get("LOGGING_BASE_DIR"),
        level=_level(app.config.get("LOG_LEVEL")),
        category_files=_flag(app.config.get("LOGGING_ENABLE_CATEGORY_FILES"), True),
        console=_flag(app.config.get("LOGGING_CONSOLE_ENABLED"), True),
        mirror_app_handlers=_flag(app.config.get("LOGGING_MIRROR_APP_HANDLERS"), True),
        json_format=_flag(app.config.get("LOGGING_JSON_FORMAT"), False),
        static_fields={"app": app.config.get("APP_NAME"), "env": app.config.get("MY_ENVIRONMENT")},
    )
    released = shutdown_logger()
    _manager = manager
    # Module-level loggers are created at import time; give them the new handlers.
    with app.app_context():
        for category in released:
            manager.get_logger(category)
    return manager


def logger_manager() -> LoggerManager:
    global _manager
    if _manager is None:
        _manager = LoggerManager(
            level=_level(os.getenv("LOG_LEVEL")),
            console=_flag(os.getenv("LOGGING_CONSOLE_ENABLED"), True),
            json_format=_flag(os.getenv("LOGGING_JSON_FORMAT"), False),
        )
    return _manager


def shutdown_logger() -> list:
    global _manager
    if _manager is None:
        return []
    released = _manager.shutdown()
    _manager = None
    return released


def get_logger(category: str) -> logging.Logger:
    return logger_manager().get_logger(category)
