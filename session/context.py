"""
Per-request session context.

A SessionContext carries everything the session store needs from one
request/response pair: the inbound headers, the outbound headers and the
sessions already resolved for the request. It is created by the HTTP layer
for each request and passed explicitly to SessionStore operations.
"""

from typing import Dict, Mapping, MutableMapping, Optional

from session.models import Session


class SessionContext:
    """
    Request-scoped registry of sessions plus header access.

    Attributes:
        request_headers: Headers of the inbound request
        response_headers: Headers to add to the outbound response
        sessions: Sessions resolved for this request, keyed by name
    """

    def __init__(
        self,
        request_headers: Optional[Mapping[str, str]] = None,
        response_headers: Optional[MutableMapping[str, str]] = None
    ):
        self.request_headers = request_headers if request_headers is not None else {}
        self.response_headers = response_headers if response_headers is not None else {}
        self.sessions: Dict[str, Session] = {}

    def header(self, name: str) -> str:
        """
        Read an inbound header, ignoring case.

        Returns:
            The header value, or "" when the header is absent.
        """
        value = self.request_headers.get(name)
        if value is None:
            lowered = name.lower()
            for key, candidate in self.request_headers.items():
                if key.lower() == lowered:
                    value = candidate
                    break
        return value or ""

    def set_header(self, name: str, value: str) -> None:
        """Set an outbound header."""
        self.response_headers[name] = value

    def register(self, session: Session) -> None:
        """Remember a session under its name for the rest of the request."""
        self.sessions[session.name] = session

    def save_all(self) -> None:
        """
        Save every session resolved through this context.

        Stops at the first failure and raises it.
        """
        for session in self.sessions.values():
            session.save(self)
