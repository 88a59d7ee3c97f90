"""
Logging setup for CCA Memory

Structured logging with JSON or text format. Library modules log through
``logging.getLogger(__name__)``; front ends call ``setup_logging`` once.
"""

import json
import logging
import sys
from datetime import datetime, timezone

from .config.settings import LoggingSettings


# Extra fields copied into JSON records when present
EXTRA_FIELDS = (
    "scope_name",
    "artifact_id",
    "task_id",
    "issue_id",
    "query",
    "count",
    "total_tokens",
    "path",
)


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for name in EXTRA_FIELDS:
            if hasattr(record, name):
                log_data[name] = getattr(record, name)

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        return json.dumps(log_data)


def setup_logging(settings: LoggingSettings | None = None) -> logging.Logger:
    """Setup structured logging for the ``cca_memory`` logger tree."""
    settings = settings or LoggingSettings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logger = logging.getLogger("cca_memory")
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # stdout belongs to CLI output
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    if settings.log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        ))

    logger.addHandler(handler)
    return logger
