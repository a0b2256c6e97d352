"""
============================================================================
FILE: logging_config.py
LOCATION: api/logging_config.py
============================================================================

PURPOSE:
    Logging setup for the SemNotes API, the Streamlit apps and the tools.
    One "semnotes" logger tree, printed either as readable console lines
    or as one JSON object per line (LOG_JSON=true).

ROLE IN PROJECT:
    Every module calls get_logger("<area>") and logs through the shared
    handler. Moderation and PDF retrieval attach note_id / strategy /
    uid context with `extra=`, which the JSON formatter lifts into
    top-level fields for log search.

KEY COMPONENTS:
    - StructuredFormatter: JSON lines with the known context fields
    - DevelopmentFormatter: "HH:MM:SS LEVEL semnotes.area: message [k=v]"
    - setup_logging(): attach the handler to the "semnotes" logger
    - get_logger(): child logger of "semnotes"

DEPENDENCIES:
    - External: logging (Python standard library)
    - Internal: config (LOG_LEVEL, LOG_JSON)

USAGE:
    from api.logging_config import get_logger

    logger = get_logger("approval")
    logger.warning("Direct update failed", extra={"note_id": note_id})
============================================================================
"""
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from api.config import LOG_JSON, LOG_LEVEL

BASE_LOGGER_NAME = "semnotes"

# Attributes passed through `extra=` that are worth a field of their own
CONTEXT_FIELDS = ("note_id", "uid", "subject_id", "strategy", "function_name")


def _context(record: logging.LogRecord) -> Dict[str, Any]:
    return {name: getattr(record, name) for name in CONTEXT_FIELDS if getattr(record, name, None) is not None}


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context(record),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Console lines with any context appended as key=value pairs."""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)-7s %(name)s: %(message)s", datefmt="%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _context(record)
        if context:
            line += " [" + " ".join(f"{key}={value}" for key, value in context.items()) + "]"
        return line


def setup_logging(level: str = LOG_LEVEL, json_lines: bool = LOG_JSON) -> logging.Logger:
    """
    Point the "semnotes" logger at stdout.

    Safe to call again (Streamlit re-runs scripts); the previous handler
    is replaced rather than duplicated.
    """
    logger = logging.getLogger(BASE_LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter() if json_lines else DevelopmentFormatter())
    logger.handlers = [handler]

    # uvicorn configures the root logger with its own handlers
    logger.propagate = False
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    base = logging.getLogger(BASE_LOGGER_NAME)
    return base.getChild(name) if name else base


setup_logging()
