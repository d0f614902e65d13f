"""Logging setup; every record carries the event it was emitted for."""

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
_CORRELATION_ID: ContextVar[str] = ContextVar("correlation_id", default="-")
_EVENT_FIELDS: ContextVar[Mapping[str, Any]] = ContextVar("event_fields", default={})
_LOGGING_CONFIGURED = False

# Per-request chatter from the RPC stack.
NOISY_LOGGERS = ("web3", "urllib3")
_INJECTED_ATTRS = {"correlation_id", "event_fields"}
_STANDARD_ATTRS = set(logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys())


class _EventContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = _CORRELATION_ID.get()
        record.event_fields = dict(_EVENT_FIELDS.get())
        return True


class StructuredFormatter(logging.Formatter):
    """One JSON object per line: message, level, event fields and extras."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", "-"),
        }
        event_fields = getattr(record, "event_fields", None)
        if event_fields:
            payload["event"] = event_fields
        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _STANDARD_ATTRS and key not in _INJECTED_ATTRS and not key.startswith("_")
        }
        if extras:
            payload["extra"] = extras
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(config: Optional[MonitoringConfig] = None, *, force: bool = False) -> None:
    """Install a single stdout handler on the root logger (once per process)."""

    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED and not force:
        return
    cfg = config or get_app_config().monitoring
    handler = logging.StreamHandler(sys.stdout)
    if cfg.structured:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s [%(correlation_id)s] %(message)s")
        )
    handler.addFilter(_EventContextFilter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    level = getattr(logging, cfg.log_level.upper(), logging.INFO)
    root.setLevel(level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
    logging.captureWarnings(True)
    _LOGGING_CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    if name not in _LOGGER_CACHE:
        _LOGGER_CACHE[name] = logging.getLogger(name)
    return _LOGGER_CACHE[name]


def current_correlation_id() -> str:
    return _CORRELATION_ID.get()


@contextmanager
def correlation_scope(correlation_id: Optional[str], **event_fields: Any) -> Iterator[None]:
    """Tag log records emitted inside the block with an id and event fields."""

    id_token = _CORRELATION_ID.set(correlation_id or "-")
    fields_token = _EVENT_FIELDS.set(event_fields)
    try:
        yield
    finally:
        _EVENT_FIELDS.reset(fields_token)
        _CORRELATION_ID.reset(id_token)


__all__ = [
    "NOISY_LOGGERS",
    "StructuredFormatter",
    "configure_logging",
    "correlation_scope",
    "current_correlation_id",
    "get_logger",
]
