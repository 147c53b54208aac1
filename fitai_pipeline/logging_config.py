# fitai_pipeline/logging_config.py
"""
Stderr-only JSON logging configuration.

MCP uses stdio transport, so ALL logging must go to stderr.
No print() statements, no stdout handlers.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

# LogRecord attributes promoted into the JSON line when passed via extra=
_CONTEXT_FIELDS = ("job_id", "fingerprint", "owner_id", "attempt")


class JsonFormatter(logging.Formatter):
    """Formats log records as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON line."""
        log_data: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        for field in _CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_data[field] = value

        if record.exc_info:
            log_data["exc"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def configure_logging(level: int = logging.INFO) -> None:
    """
    Configure logging to output JSON to stderr only.

    MUST be called before any imports that might create loggers.
    Clears existing handlers to prevent stdout pollution.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for logger_name in ["fastmcp", "httpx"]:
        logger = logging.getLogger(logger_name)
        logger.handlers.clear()
        logger.addHandler(handler)
        logger.setLevel(logging.WARNING if logger_name == "httpx" else level)
        logger.propagate = False
