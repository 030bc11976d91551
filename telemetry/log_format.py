"""
Structured JSON logging for the session store.

Every module logs through ``logging.getLogger(__name__)`` and attaches
context as ``extra={"extra_data": {...}}``; this module renders those
records as single-line JSON documents.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class JSONFormatter(logging.Formatter):
    """
    Log formatter that outputs records in JSON format.

    Each log entry contains:
    - timestamp: ISO 8601 formatted UTC timestamp
    - level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - message: The log message
    - logger: Name of the logger that produced the entry

    Additional fields can be included via the 'extra_data' attribute
    on the log record.
    """

    def format(self, record: logging.LogRecord) -> str:
        """
        Format a log record as a JSON string.

        Args:
            record: The log record to format

        Returns:
            JSON-formatted string containing the log entry
        """
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        if record.module:
            log_data["module"] = record.module
        if record.funcName and record.funcName != "<module>":
            log_data["function"] = record.funcName
        if record.lineno:
            log_data["line"] = record.lineno

        if hasattr(record, "extra_data") and record.extra_data:
            log_data.update(record.extra_data)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            log_data["stack_trace"] = record.stack_info

        return json.dumps(log_data, default=str)


def setup_logging(log_level: Optional[str] = None) -> logging.Logger:
    """
    Configure structured JSON logging on the root logger.

    Existing root handlers are replaced by a single stdout handler using
    JSONFormatter.

    Args:
        log_level: Level name such as "DEBUG" or "INFO". Defaults to INFO.

    Returns:
        The "telemetry" logger, already configured.
    """
    log_level_str = (log_level or "INFO").upper()
    level = getattr(logging, log_level_str, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicate logs
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(level)
    stdout_handler.setFormatter(JSONFormatter())
    root_logger.addHandler(stdout_handler)

    logger = logging.getLogger("telemetry")
    logger.info("Logging configured", extra={
        "extra_data": {"log_level": log_level_str}
    })
    return logger


def redact_session_id(session_id: Optional[str]) -> str:
    """
    Shorten a session identifier for log output.

    Identifiers are bearer tokens, so only the first four characters are
    ever written to logs.
    """
    if not session_id:
        return ""
    return session_id[:4] + "..."
