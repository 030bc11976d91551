"""
Exception classes for the session store.

This module provides the AppException class, the SessionDecodeError
subclass raised when a stored session cannot be rebuilt, and factory
functions for the failures raised by the store layers.
"""

from typing import Any, Optional

from errors.codes import ErrorCode, get_default_status_code


class AppException(Exception):
    """
    Base exception class for all application-specific errors.

    This exception provides structured error information including:
    - error_code: A standardized error code from the ErrorCode enum
    - message: A human-readable error message
    - status_code: The HTTP status code to return
    - details: Optional additional context (e.g., the affected key)

    Example:
        raise AppException(
            error_code=ErrorCode.SESSION_STORE_UNAVAILABLE,
            message="Session store unavailable",
            details={"reason": "Connection refused"}
        )
    """

    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None
    ):
        """
        Initialize an AppException.

        Args:
            error_code: The error code from the ErrorCode enum
            message: A human-readable error message
            status_code: The HTTP status code (defaults to the error code's default)
            details: Optional dictionary with additional error context
        """
        self.error_code = error_code
        self.message = message
        self.status_code = status_code or get_default_status_code(error_code)
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the exception to a dictionary for JSON serialization.

        Returns:
            Dictionary containing error_code, message, and details
        """
        result = {
            "error_code": self.error_code.value,
            "message": self.message,
        }
        if self.details is not None:
            result["details"] = self.details
        return result

    def __repr__(self) -> str:
        return (
            f"AppException(error_code={self.error_code.value!r}, "
            f"message={self.message!r}, status_code={self.status_code}, "
            f"details={self.details!r})"
        )


class SessionDecodeError(AppException):
    """
    Raised when stored session bytes cannot be decoded.

    The session that was being rebuilt is attached so the caller can decide
    whether to continue with it as a fresh session or abort the request.
    Its values are left untouched by the failed decode.
    """

    def __init__(
        self,
        message: str,
        session: Any = None,
        details: Optional[dict[str, Any]] = None
    ):
        super().__init__(
            error_code=ErrorCode.SESSION_DECODE_FAILED,
            message=message,
            details=details
        )
        self.session = session


# Convenience factory functions for common error types

def session_store_unavailable(
    message: str = "Session store unavailable",
    details: Optional[dict[str, Any]] = None
) -> AppException:
    """Create a session store unavailable exception."""
    return AppException(
        error_code=ErrorCode.SESSION_STORE_UNAVAILABLE,
        message=message,
        details=details
    )


def session_store_error(
    message: str = "Session store rejected the command",
    details: Optional[dict[str, Any]] = None
) -> AppException:
    """Create a session store error-reply exception."""
    return AppException(
        error_code=ErrorCode.SESSION_STORE_ERROR,
        message=message,
        details=details
    )


def session_store_closed(
    message: str = "Session store is closed",
    details: Optional[dict[str, Any]] = None
) -> AppException:
    """Create a closed session store exception."""
    return AppException(
        error_code=ErrorCode.SESSION_STORE_CLOSED,
        message=message,
        details=details
    )


def serialization_failed(
    message: str = "Session values could not be encoded",
    details: Optional[dict[str, Any]] = None
) -> AppException:
    """Create a serialization failure exception."""
    return AppException(
        error_code=ErrorCode.SERIALIZATION_FAILED,
        message=message,
        details=details
    )


def session_decode_failed(
    message: str = "Stored session could not be decoded",
    session: Any = None,
    details: Optional[dict[str, Any]] = None
) -> SessionDecodeError:
    """Create a session decode exception carrying the affected session."""
    return SessionDecodeError(message=message, session=session, details=details)


def entropy_unavailable(
    message: str = "Random source unavailable for session identifier",
    details: Optional[dict[str, Any]] = None
) -> AppException:
    """Create an entropy failure exception."""
    return AppException(
        error_code=ErrorCode.ENTROPY_UNAVAILABLE,
        message=message,
        details=details
    )


def internal_error(
    message: str = "An unexpected error occurred",
    details: Optional[dict[str, Any]] = None
) -> AppException:
    """Create an internal error exception."""
    return AppException(
        error_code=ErrorCode.INTERNAL_ERROR,
        message=message,
        details=details
    )
