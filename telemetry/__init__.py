"""
Telemetry module for structured logging.

This module provides:
- JSONFormatter for structured JSON log output
- setup_logging to install it on the root logger
- redact_session_id for logging identifiers safely
"""

from telemetry.log_format import (
    JSONFormatter,
    setup_logging,
    redact_session_id,
)

__all__ = [
    "JSONFormatter",
    "setup_logging",
    "redact_session_id",
]
