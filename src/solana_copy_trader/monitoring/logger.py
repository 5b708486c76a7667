"""Logging setup: JSON or console output, tagged with the current pass context."""

from __future__ import annotations

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Mapping, Optional

from ..config.settings import MonitoringConfig, get_app_config

_LOGGER_CACHE: Dict[str, logging.Logger] = {}
_CONTEXT: ContextVar[Mapping[str, str]] = ContextVar("log_context", default={})
_LOGGING_CONFIGURED = False

_RECORD_ATTRS = set(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {
    "correlation_id",
    "context",
}
_NOISY_LOGGERS = ("websockets", "urllib3", "httpx", "solana")
TEXT_FORMAT = "%(asctime)s %(levelname)-7s [%(correlation_id)s] %(name)s: %(message)s"


class _ContextFilter(logging.Filter):
    """Copies the active log context onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = _CONTEXT.get()
        record.correlation_id = context.get("correlation_id", "-")
        record.context = {k: v for k, v in context.items() if k != "correlation_id"}
        return True


class StructuredFormatter(logging.Formatter):
    """Emits one JSON object per line with context and ``extra=`` fields merged in."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", "-"),
        }
        context = getattr(record, "context", None)
        if context:
            payload["context"] = dict(context)
        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        }
        if extras:
            payload["extra"] = extras
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(config: Optional[MonitoringConfig] = None, *, force: bool = False) -> None:
    """Install a single stdout handler on the root logger."""

    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED and not force:
        return
    cfg = config or get_app_config().monitoring
    handler = logging.StreamHandler(sys.stdout)
    if cfg.log_format == "text":
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    else:
        handler.setFormatter(StructuredFormatter())
    handler.addFilter(_ContextFilter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, cfg.log_level.upper(), logging.INFO))
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.captureWarnings(True)
    _LOGGING_CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    if name not in _LOGGER_CACHE:
        _LOGGER_CACHE[name] = logging.getLogger(name)
    return _LOGGER_CACHE[name]


def current_correlation_id() -> str:
    return _CONTEXT.get().get("correlation_id", "-")


@contextmanager
def correlation_scope(correlation_id: Optional[str], **fields: Any) -> Iterator[None]:
    """Tag every record logged inside the block with ``correlation_id`` and ``fields``.

    Nested scopes inherit the outer fields and may override them.
    """

    context = {**_CONTEXT.get(), **{key: str(value) for key, value in fields.items()}}
    context["correlation_id"] = correlation_id or "-"
    token = _CONTEXT.set(context)
    try:
        yield
    finally:
        _CONTEXT.reset(token)


__all__ = [
    "StructuredFormatter",
    "TEXT_FORMAT",
    "configure_logging",
    "correlation_scope",
    "current_correlation_id",
    "get_logger",
]
