"""Structured JSON logging for the webhook gateway.

Every record is one JSON object. Structured fields travel in
``extra={"context": {...}}``; the identifiers used to follow one event across
the pipeline are lifted out of ``context`` to the top level so log queries
can filter on them directly.
"""

import json
import logging
import logging.config
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .config import GatewayConfig

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DEFAULT_LOG_PATH = PROJECT_ROOT / "04_logs" / "gateway.log"

# context key -> top-level field
PROMOTED_FIELDS = {
    "internal_event_id": "internal_event_id",
    "event_id": "internal_event_id",
    "correlation_id": "correlation_id",
}


class JSONFormatter(logging.Formatter):
    """One JSON object per record, event identifiers at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        context = getattr(record, "context", None)
        if isinstance(context, dict):
            remaining = dict(context)
            for key, field in PROMOTED_FIELDS.items():
                if key in remaining:
                    value = remaining.pop(key)
                    if value is not None:
                        entry.setdefault(field, value)
            if remaining:
                entry["context"] = remaining
        elif context is not None:
            entry["context"] = context

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str, ensure_ascii=False)


def build_logging_config(log_level: str, log_file: Path) -> dict[str, Any]:
    """dictConfig mapping: rotating JSON file plus JSON on stdout."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": JSONFormatter},
        },
        "handlers": {
            "file": {
                "class": "logging.handlers.RotatingFileHandler",
                "filename": str(log_file),
                "maxBytes": 10 * 1024 * 1024,
                "backupCount": 5,
                "formatter": "json",
                "encoding": "utf-8",
            },
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            # request lines are already covered by the gateway's own records
            "uvicorn.access": {"level": "WARNING"},
            "httpx": {"level": "WARNING"},
        },
        "root": {
            "level": log_level.upper(),
            "handlers": ["file", "console"],
        },
    }


def setup_logging(config: "GatewayConfig") -> None:
    """Install JSON logging at ``config.log_level`` writing to ``config.log_file``."""
    log_file = Path(config.log_file) if config.log_file else DEFAULT_LOG_PATH
    if not log_file.is_absolute():
        log_file = PROJECT_ROOT / log_file
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(build_logging_config(config.log_level, log_file))


def get_logger(name: str) -> logging.Logger:
    """Module logger; use ``get_logger(__name__)``."""
    return logging.getLogger(name)
