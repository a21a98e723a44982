"""Logging setup for the backend: one JSON line per record on stdout."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

# Context the backend attaches with `extra=`; copied onto the JSON line when present.
CONTEXT_FIELDS = ("workflow_id", "path", "storage_dir", "connections")


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            if hasattr(record, name):
                payload[name] = getattr(record, name)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class _BackendHandler(logging.StreamHandler):
    """Marks the handler installed here so reconfiguring replaces only it."""


def configure_logging(level: str) -> None:
    """Install the JSON stdout handler on the root logger (idempotent)."""
    root = logging.getLogger()
    for handler in [h for h in root.handlers if isinstance(h, _BackendHandler)]:
        root.removeHandler(handler)

    handler = _BackendHandler(stream=sys.stdout)
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)
    root.setLevel(level.upper())
