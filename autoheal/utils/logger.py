# autoheal/utils/logger.py
from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, List, MutableMapping, Optional, Tuple

from rich.console import Console
from rich.logging import RichHandler

from autoheal.utils.config import LogLevel, Settings, get_settings


__all__ = [
    "ContextLogger",
    "JsonFormatter",
    "get_logger",
    "set_log_level",
    "log_with_context",
]

ROOT_LOGGER = "autoheal"
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUPS = 5

_config_lock = threading.Lock()
_configured = False


# ------------- Formatters -------------

class JsonFormatter(logging.Formatter):
    """One JSON object per line; a record's scoped context is merged into it."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            # flush worker vs caller threads
            "thread": record.threadName,
            "msg": record.getMessage(),
        }
        context = getattr(record, "context", None)
        if isinstance(context, dict):
            payload.update(context)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """Message text followed by `key=value` pairs of the scoped context."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = getattr(record, "context", None)
        if context:
            message += "  " + " ".join(f"{k}={v}" for k, v in context.items())
        return message


# ------------- Adapter -------------

class ContextLogger(logging.LoggerAdapter):
    """
    LoggerAdapter carrying a fixed context (e.g. cache_key) that lands on
    every record as `record.context`.
    """

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        if not self.extra:
            return msg, kwargs
        extra = dict(kwargs.get("extra") or {})
        extra["context"] = dict(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs


# ------------- Setup -------------

def _py_level(level: LogLevel | str) -> int:
    name = level.value if isinstance(level, LogLevel) else str(level)
    return getattr(logging, name.upper(), logging.INFO)


def _build_handlers(settings: Settings, level: int) -> List[logging.Handler]:
    console = Console(
        stderr=True,
        force_jupyter=False,
        color_system="auto" if settings.COLORIZED_OUTPUT else None,
    )
    rich_handler = RichHandler(
        console=console,
        show_time=True,
        show_path=False,
        rich_tracebacks=True,
        markup=False,
        omit_repeated_times=False,
    )
    rich_handler.setFormatter(ConsoleFormatter("%(message)s"))
    handlers: List[logging.Handler] = [rich_handler]

    if settings.LOG_TO_FILE:
        settings.LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            filename=str(settings.LOG_FILE),
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS,
            encoding="utf-8",
            delay=True,
        )
        file_handler.setFormatter(JsonFormatter())
        handlers.append(file_handler)

    for h in handlers:
        h.setLevel(level)
    return handlers


def _ensure_configured() -> None:
    """Attach handlers to the `autoheal` logger once, from settings."""
    global _configured
    if _configured:
        return

    with _config_lock:
        if _configured:
            return

        settings = get_settings()
        level = _py_level(settings.LOG_LEVEL)

        root = logging.getLogger(ROOT_LOGGER)
        root.setLevel(level)
        for h in list(root.handlers):
            root.removeHandler(h)
        for h in _build_handlers(settings, level):
            root.addHandler(h)

        _configured = True


# ------------- Public API -------------

def get_logger(name: Optional[str] = None) -> ContextLogger:
    _ensure_configured()
    return ContextLogger(logging.getLogger(name or ROOT_LOGGER), {})


def set_log_level(level: LogLevel | str) -> None:
    """Adjust the package log level (and its handlers) at runtime."""
    _ensure_configured()
    py_level = _py_level(level)
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(py_level)
    for h in root.handlers:
        h.setLevel(py_level)


def log_with_context(logger: logging.LoggerAdapter, **kwargs: Any) -> ContextLogger:
    """
    Derive a logger whose records carry `kwargs` on top of the parent's context.

        scoped = log_with_context(log, cache_key=key)
        scoped.info("healed")   # console: "healed  cache_key=..."
    """
    merged = dict(logger.extra or {})
    merged.update(kwargs)
    return ContextLogger(logger.logger, merged)
