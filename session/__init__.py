"""
Session management module.

This module provides the header-based session lifecycle built on the
Redis key-value store: session model, per-request context and the
SessionStore that loads, saves and deletes sessions.
"""

from session.models import Session, SessionOptions, DEFAULT_MAX_AGE
from session.context import SessionContext
from session.session_store import (
    SessionStore,
    SESSION_HEADER,
    SESSION_PREFIX,
    generate_session_id,
)

__all__ = [
    "Session",
    "SessionOptions",
    "DEFAULT_MAX_AGE",
    "SessionContext",
    "SessionStore",
    "SESSION_HEADER",
    "SESSION_PREFIX",
    "generate_session_id",
]
