"""
Error code catalog for the session store.

This module defines all error codes raised by the key-value layer and the
session lifecycle layer, covering connectivity failures, payload encoding
problems and internal errors.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """
    Enumeration of all error codes used in the application.

    Each error code maps to a default HTTP status code so that the HTTP
    layer in front of the store can report failures consistently:
    - Payload errors (4xx): the client presented or produced a bad session
    - Session store errors (5xx): Redis failures and closed resources
    - Internal errors (5xx): server-side issues
    """

    # Payload errors (4xx)
    SESSION_DECODE_FAILED = "SESSION_DECODE_FAILED"
    """Stored session bytes could not be decoded (HTTP 400)"""

    # Session store errors (5xx)
    SESSION_STORE_UNAVAILABLE = "SESSION_STORE_UNAVAILABLE"
    """Redis could not be reached, authenticated or probed (HTTP 503)"""

    SESSION_STORE_ERROR = "SESSION_STORE_ERROR"
    """Redis answered a command with an error reply (HTTP 502)"""

    SESSION_STORE_CLOSED = "SESSION_STORE_CLOSED"
    """Operation attempted on a closed connection pool (HTTP 503)"""

    # Internal errors (5xx)
    SERIALIZATION_FAILED = "SERIALIZATION_FAILED"
    """Session values could not be encoded (HTTP 500)"""

    ENTROPY_UNAVAILABLE = "ENTROPY_UNAVAILABLE"
    """Random source failed while issuing a session identifier (HTTP 500)"""

    INTERNAL_ERROR = "INTERNAL_ERROR"
    """Unexpected server error (HTTP 500)"""


# Mapping of error codes to their default HTTP status codes
ERROR_CODE_STATUS_MAP: dict[ErrorCode, int] = {
    ErrorCode.SESSION_DECODE_FAILED: 400,
    ErrorCode.SESSION_STORE_UNAVAILABLE: 503,
    ErrorCode.SESSION_STORE_ERROR: 502,
    ErrorCode.SESSION_STORE_CLOSED: 503,
    ErrorCode.SERIALIZATION_FAILED: 500,
    ErrorCode.ENTROPY_UNAVAILABLE: 500,
    ErrorCode.INTERNAL_ERROR: 500,
}


def get_default_status_code(error_code: ErrorCode) -> int:
    """
    Get the default HTTP status code for an error code.

    Args:
        error_code: The error code to look up

    Returns:
        The default HTTP status code for the error code
    """
    return ERROR_CODE_STATUS_MAP.get(error_code, 500)
