"""
Logging configuration.

- Development: human-readable colored lines on stderr
- Production: one JSON object per line (log aggregator compatible)
- Level: LOG_LEVEL setting
"""

import json
import logging
import sys
from datetime import datetime, timezone

from app.core.config import settings

# Extra attributes copied from ``logger.info(..., extra={...})`` into JSON output
_EXTRA_KEYS = (
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
    "issue_id",
    "actor_id",
    "action",
)


class JSONFormatter(logging.Formatter):
    """JSON log formatter for production."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        for key in _EXTRA_KEYS:
            val = getattr(record, key, None)
            if val is not None:
                entry[key] = val
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Colored formatter for development."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        ts = datetime.now().strftime("%H:%M:%S")
        duration = getattr(record, "duration_ms", None)
        dur_str = f" [{duration:.0f}ms]" if duration is not None else ""
        base = f"{color}{ts} {record.levelname:<8}{self.RESET} {record.name}: {record.getMessage()}{dur_str}"
        if record.exc_info and record.exc_info[0] is not None:
            base += "\n" + self.formatException(record.exc_info)
        return base


def configure_logging() -> None:
    """Install a single stderr handler on the root logger.

    Safe to call more than once; the handler is replaced, not duplicated.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if settings.is_production else ReadableFormatter())

    root = logging.getLogger()
    for h in list(root.handlers):
        if getattr(h, "_urban_handler", False):
            root.removeHandler(h)
    handler._urban_handler = True
    root.addHandler(handler)
    root.setLevel(settings.log_level.upper())

    # uvicorn access lines duplicate the request middleware
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
