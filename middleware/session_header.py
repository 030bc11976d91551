"""
Session middleware for Starlette and FastAPI applications.

The middleware resolves the request's session from the session header
before the endpoint runs and saves it afterwards, copying the identifier
header onto the response. SessionStore calls block, so they run in the
thread pool.
"""

import logging
from typing import Callable

from fastapi import Request, Response
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from errors.exceptions import AppException, SessionDecodeError
from errors.handlers import build_error_response
from session.context import SessionContext
from session.models import Session
from session.session_store import SessionStore
from telemetry.log_format import redact_session_id

logger = logging.getLogger(__name__)


DEFAULT_SESSION_NAME = "session"


class SessionHeaderMiddleware(BaseHTTPMiddleware):
    """
    Middleware that loads and saves a header-identified session per request.

    For each request:
    1. A SessionContext is built from the request headers
    2. The named session is resolved; an undecodable stored session is
       replaced with an empty one under the same identifier
    3. Context and session are stored in request.state
    4. After the endpoint, every session of the context is saved
    5. Headers produced by the save are added to the response

    Store failures are returned as structured JSON error responses.
    """

    def __init__(
        self,
        app: ASGIApp,
        session_store: SessionStore,
        session_name: str = DEFAULT_SESSION_NAME
    ):
        """
        Initialize the middleware.

        Args:
            app: The ASGI application to wrap
            session_store: Store used to load and save sessions
            session_name: Name of the session resolved for every request
        """
        super().__init__(app)
        self.session_store = session_store
        self.session_name = session_name

    def _resolve(self, context: SessionContext) -> Session:
        try:
            return self.session_store.get(context, self.session_name)
        except SessionDecodeError as exc:
            session = exc.session
            logger.warning("Starting fresh session after decode failure", extra={
                "extra_data": {"session": redact_session_id(session.id)}
            })
            session.is_new = True
            context.register(session)
            return session

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        """
        Wrap the request with session loading and saving.

        Args:
            request: The incoming request
            call_next: The next middleware or route handler

        Returns:
            The endpoint response with the session header added, or an
            error response if the session store failed
        """
        context = SessionContext(request.headers)

        try:
            session = await run_in_threadpool(self._resolve, context)
        except AppException as exc:
            return build_error_response(exc)

        request.state.session_context = context
        request.state.session = session

        response = await call_next(request)

        try:
            await run_in_threadpool(context.save_all)
        except AppException as exc:
            return build_error_response(exc)

        for name, value in context.response_headers.items():
            response.headers[name] = value

        return response


def get_session(request: Request) -> Session:
    """
    Get the session resolved by SessionHeaderMiddleware for this request.

    Raises:
        RuntimeError: If the middleware is not installed.
    """
    session = getattr(request.state, "session", None)
    if session is None:
        raise RuntimeError("SessionHeaderMiddleware is not installed")
    return session
