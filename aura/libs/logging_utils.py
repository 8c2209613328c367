"""Logging configuration for Aura.

Journal code binds the entry it is working on with ``log_context(report_id=...)``;
the handler filter copies those fields onto every record emitted inside the block,
including records from enrichment tasks gathered there (tasks inherit the context).
"""

from __future__ import annotations

import json
import logging
import os
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.config import dictConfig
from typing import Any, Dict, Iterator, Mapping

# Fields journal code attaches, either bound via ``log_context`` or passed as ``extra``.
JOURNAL_FIELDS = ("user_id", "report_id", "feature", "mode")

_BOUND: ContextVar[Mapping[str, Any]] = ContextVar("aura_log_context", default={})

_LEVEL_COLORS = {
    logging.ERROR: "\033[31m",
    logging.WARNING: "\033[33m",
}


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Bind journal fields for every log record emitted inside the block."""

    token = _BOUND.set({**_BOUND.get(), **{k: v for k, v in fields.items() if v is not None}})
    try:
        yield
    finally:
        _BOUND.reset(token)


class JournalContextFilter(logging.Filter):
    """Copies bound journal fields onto records and renders them as ``record.journal``."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _BOUND.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        parts = [f"{key}={getattr(record, key)}" for key in JOURNAL_FIELDS if getattr(record, key, None)]
        record.journal = f" ({' '.join(parts)})" if parts else ""
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record; journal fields become top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in JOURNAL_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class ColorTextFormatter(logging.Formatter):
    """Console formatter; warnings and errors are coloured when ``color`` is on."""

    def __init__(self, fmt: str | None = None, datefmt: str | None = None, color: bool = False) -> None:
        super().__init__(fmt, datefmt)
        self._color = color

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "journal"):
            record.journal = ""
        formatted = super().format(record)
        prefix = next((code for level, code in _LEVEL_COLORS.items() if record.levelno >= level), "")
        if not self._color or not prefix:
            return formatted
        return f"{prefix}{formatted}\033[0m"


def _dev_environment() -> bool:
    return os.getenv("AURA_ENVIRONMENT", "dev").lower() in {"local", "dev", "test"}


def configure_logging() -> None:
    """Configure root logging from ``AURA_LOG_LEVEL``, ``AURA_LOG_FORMAT`` and ``AURA_LOG_COLOR``."""

    log_level = os.getenv("AURA_LOG_LEVEL", "DEBUG" if _dev_environment() else "INFO").upper()
    log_format = os.getenv("AURA_LOG_FORMAT", "json").lower()
    color = os.getenv("AURA_LOG_COLOR", "1" if _dev_environment() else "0") == "1"

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {"journal": {"()": JournalContextFilter}},
            "formatters": {
                "json": {"()": JsonFormatter},
                "text": {
                    "()": ColorTextFormatter,
                    "fmt": "%(asctime)s [%(levelname)s] %(name)s: %(message)s%(journal)s",
                    "color": color,
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "json" if log_format == "json" else "text",
                    "filters": ["journal"],
                    "level": log_level,
                }
            },
            "root": {"handlers": ["console"], "level": log_level},
            # httpx logs every request at INFO.
            "loggers": {"httpx": {"level": "WARNING"}},
        }
    )


__all__ = [
    "ColorTextFormatter",
    "JOURNAL_FIELDS",
    "JournalContextFilter",
    "JsonFormatter",
    "configure_logging",
    "log_context",
]
