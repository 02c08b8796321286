"""
JSONL logging bootstrap.
Initializes a single canonical JSONL sink early in CLI startup, plus a filter
for the console handler.

Resolution fields passed as ``extra`` (specifier, platform, environment,
strategy, origin) are grouped under a ``resolution`` key so log consumers can
filter on them without knowing every logger's message format.
"""

import json
import logging
import os
from datetime import UTC
from datetime import datetime
from pathlib import Path
from typing import Any

DEFAULT_PATH = os.environ.get("PLATFORM_RESOLVER_LOG_PATH", "./platform-resolver.log.jsonl")
DEFAULT_LEVEL = os.environ.get("PLATFORM_RESOLVER_LOG_LEVEL", "INFO").upper()

SCHEMA = {"name": "platform-resolver.log", "ver": "1.0.0"}

RESOLUTION_FIELDS = ("specifier", "origin", "platform", "environment", "strategy")

_RESERVED_RECORD_KEYS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime", "event"}


class JsonlHandler(logging.Handler):
    """Appends one JSON object per record to ``path``."""

    def __init__(self, path: str | Path):
        super().__init__()
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def to_payload(self, record: logging.LogRecord) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(timespec="milliseconds"),
            "lvl": record.levelname,
            "schema": SCHEMA,
            "logger": record.name,
            "event": getattr(record, "event", None),
            "message": record.getMessage(),
        }
        if isinstance(record.msg, dict):
            payload.update(record.msg)

        extras = {k: v for k, v in record.__dict__.items() if k not in _RESERVED_RECORD_KEYS}
        resolution = {k: extras.pop(k) for k in RESOLUTION_FIELDS if k in extras}
        if resolution:
            payload["resolution"] = resolution
        for k, v in extras.items():
            payload.setdefault(k, v)

        if record.exc_info:
            payload["exc"] = logging.Formatter().formatException(record.exc_info)
        return payload

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = json.dumps(self.to_payload(record), ensure_ascii=False, default=str)
            with self.path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")
        except Exception:
            self.handleError(record)

    def __repr__(self) -> str:
        return f"JsonlHandler({self.path})"


class ResolveTraceFilter(logging.Filter):
    """Keep per-specifier ``[resolve...]`` trace lines out of the console.

    They are DEBUG-level and very frequent; the JSONL sink still gets them.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno > logging.DEBUG:
            return True
        return not record.getMessage().startswith("[resolve")


def init_json_logging(path: str | None = None, level: str | None = None) -> JsonlHandler:
    """Install the JSONL sink on the root logger, replacing any earlier one."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, (level or DEFAULT_LEVEL).upper(), logging.INFO))
    for h in list(root.handlers):
        if isinstance(h, JsonlHandler):
            root.removeHandler(h)
            h.close()
    handler = JsonlHandler(path or DEFAULT_PATH)
    root.addHandler(handler)
    return handler
