"""
Structured JSON logging for the diaryx tools.

Call sites attach structured fields with `extra={"extra_payload": {...}}`; the
formatter merges them into the emitted JSON object.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO

QUIET_LIBRARY_LOGGERS = ("asyncio",)
RESERVED_KEYS = {"timestamp", "level", "logger", "message"}


class JsonLogFormatter(logging.Formatter):
    """Render each record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_payload["exc_info"] = self.formatException(record.exc_info)

        extra_payload = getattr(record, "extra_payload", None)
        if isinstance(extra_payload, dict):
            for key, value in extra_payload.items():
                # Payload fields never shadow the envelope.
                log_payload[f"extra_{key}" if key in RESERVED_KEYS else key] = value

        return json.dumps(log_payload, ensure_ascii=False, default=str)


def configure_logging(log_level: str, stream: Optional[TextIO] = None) -> logging.Handler:
    """Install a single JSON handler on the root logger and return it."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)

    # stderr keeps stdout free for command output.
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JsonLogFormatter())

    root_logger.setLevel(level)
    root_logger.addHandler(handler)

    library_level = os.environ.get("LIB_LOG_LEVEL", "WARNING").upper()
    for name in QUIET_LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)
    return handler
