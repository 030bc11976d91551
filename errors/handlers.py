"""
Exception handlers for applications that mount the session middleware.

This module converts session store exceptions into structured JSON error
responses with a consistent format, both for FastAPI exception handlers
and for the session middleware, which runs outside of them.
"""

import logging
import traceback
from typing import Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from errors.exceptions import AppException, internal_error

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """
    Structured error response model.

    All error responses follow this format for consistency and to enable
    programmatic error handling by clients.
    """
    error_code: str
    message: str
    details: Optional[dict[str, Any]] = None


def build_error_response(exc: AppException) -> JSONResponse:
    """
    Render an AppException as a JSON response.

    Args:
        exc: The application exception to render

    Returns:
        JSONResponse with the exception's status code and structured body
    """
    error_response = ErrorResponse(
        error_code=exc.error_code.value,
        message=exc.message,
        details=exc.details,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=error_response.model_dump(exclude_none=True),
    )


async def handle_app_exception(request: Request, exc: AppException) -> JSONResponse:
    """
    Handle known application exceptions and convert to structured response.

    Args:
        request: The FastAPI request object
        exc: The AppException that was raised

    Returns:
        JSONResponse with structured error format
    """
    logger.warning(
        "Application error occurred",
        extra={
            "extra_data": {
                "error_code": exc.error_code.value,
                "error_message": exc.message,
                "status_code": exc.status_code,
                "details": exc.details,
                "path": request.url.path,
                "method": request.method,
            }
        }
    )

    return build_error_response(exc)


async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions safely without exposing internal details.

    The full stack trace is logged; the client only receives a generic
    INTERNAL_ERROR body.

    Args:
        request: The FastAPI request object
        exc: The unexpected exception that was raised

    Returns:
        JSONResponse with generic error message
    """
    generic = internal_error("An unexpected error occurred. Please try again later.")

    logger.error(
        "Unexpected error occurred",
        extra={
            "extra_data": {
                "error_code": generic.error_code.value,
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__,
                "exception_message": str(exc),
                "stack_trace": traceback.format_exc(),
            }
        },
        exc_info=True,
    )

    return build_error_response(generic)


def register_exception_handlers(app) -> None:
    """
    Register all exception handlers with the FastAPI application.

    Args:
        app: The FastAPI application instance
    """
    app.add_exception_handler(AppException, handle_app_exception)

    # Note: This catches Exception, which is the base class for most errors
    app.add_exception_handler(Exception, handle_unexpected_exception)

    logger.info("Exception handlers registered successfully")
