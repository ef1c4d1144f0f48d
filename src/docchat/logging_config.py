"""JSON log records for the API, the lifecycle events and the audit trail."""

from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

AUDIT_LOGGER_NAME = "docchat.audit"

# Correlation keys lifted to the top level of every record, in this order.
CORRELATION_KEYS: tuple[str, ...] = ("event", "step", "req_id", "document_id", "duration_ms")

_LOG_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


class DocChatJSONFormatter(logging.Formatter):
    """Render a record as one JSON object per line.

    Records look like ``{"ts", "level", "logger", <correlation keys>, ...}``.
    Dict messages (telemetry events, audit entries) contribute their keys
    directly; string messages land under ``message``. Values passed through
    ``extra=`` that are not correlation keys are grouped under ``context``.
    """

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - inherited
        body: dict[str, Any] = (
            dict(record.msg) if isinstance(record.msg, dict) else {"message": record.getMessage()}
        )
        context = {
            key: value
            for key, value in vars(record).items()
            if key not in _LOG_RECORD_ATTRS and not key.startswith("_")
        }

        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
        }
        for key in CORRELATION_KEYS:
            if key in body:
                entry[key] = body.pop(key)
            elif key in context:
                entry[key] = context.pop(key)
        entry.update(body)
        if context:
            entry["context"] = context
        if record.exc_info and "exc" not in entry:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def build_logging_config(level: str, audit_file: Path) -> dict[str, Any]:
    """Return the ``dictConfig`` mapping: JSON on stderr, audit also on disk."""

    json_handler = {"formatter": "json", "level": "NOTSET"}
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"json": {"()": DocChatJSONFormatter}},
        "handlers": {
            "console": {"class": "logging.StreamHandler", **json_handler},
            "audit_file": {
                "class": "logging.FileHandler",
                "filename": str(audit_file),
                "encoding": "utf-8",
                "delay": True,
                **json_handler,
            },
        },
        "root": {"level": level.upper(), "handlers": ["console"]},
        "loggers": {
            AUDIT_LOGGER_NAME: {"level": "INFO", "handlers": ["audit_file", "console"], "propagate": False},
            # uvicorn runs with log_config=None; keep its access log quiet.
            "uvicorn.access": {"level": "WARNING"},
        },
    }


def configure_logging(level: str = "INFO", log_dir: str | Path = "logs") -> None:
    """Install JSON logging; audit entries are appended to ``<log_dir>/audit.log``."""

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(build_logging_config(level, log_path / "audit.log"))


__all__ = ["AUDIT_LOGGER_NAME", "DocChatJSONFormatter", "build_logging_config", "configure_logging"]
