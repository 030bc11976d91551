"""
Error handling module for the session store.

This module provides structured error handling with:
- ErrorCode enum for standardized error codes
- AppException and SessionDecodeError exception classes
- Error response models for consistent HTTP responses
- Exception handlers for FastAPI integration
"""

from errors.codes import ErrorCode
from errors.exceptions import AppException, SessionDecodeError
from errors.handlers import (
    ErrorResponse,
    build_error_response,
    handle_app_exception,
    handle_unexpected_exception,
    register_exception_handlers,
)

__all__ = [
    "ErrorCode",
    "AppException",
    "SessionDecodeError",
    "ErrorResponse",
    "build_error_response",
    "handle_app_exception",
    "handle_unexpected_exception",
    "register_exception_handlers",
]
