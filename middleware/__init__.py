"""
Middleware components for applications using the session store.

This module contains the Starlette/FastAPI middleware that carries the
session identifier header in and out of each request.
"""

from middleware.session_header import (
    SessionHeaderMiddleware,
    get_session,
    DEFAULT_SESSION_NAME,
)

__all__ = [
    "SessionHeaderMiddleware",
    "get_session",
    "DEFAULT_SESSION_NAME",
]
