"""
Shared pytest fixtures and configuration for all tests.
"""
import math
import os
import threading
import time
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Tuple

import pytest

# Hypothesis configuration for property-based testing
from hypothesis import settings, Verbosity, Phase

from errors.exceptions import session_store_closed
from kvstore.redis_store import RedisStore
from session.context import SessionContext
from session.session_store import SessionStore

# Default profile: balanced for local development
settings.register_profile(
    "default",
    max_examples=100,
    verbosity=Verbosity.normal,
    deadline=None,
    print_blob=True,
)

# CI profile: more thorough testing for continuous integration
settings.register_profile(
    "ci",
    max_examples=200,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    derandomize=True,
)

# Debug profile: minimal examples for quick debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    phases=[Phase.explicit, Phase.reuse, Phase.generate],
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "default"))


class FakeRedisServer:
    """
    In-memory stand-in for the Redis commands the store issues.

    Replies use the same shapes redis-py returns for a connection with
    decode_responses disabled. Setting ``fail_with`` makes every command
    raise that exception.
    """

    def __init__(self) -> None:
        self.data: Dict[str, bytes] = {}
        self.expires_at: Dict[str, float] = {}
        self.fail_with: Optional[BaseException] = None
        self.commands: List[Tuple[Any, ...]] = []
        self._lock = threading.Lock()

    def _expire(self, key: str) -> None:
        deadline = self.expires_at.get(key)
        if deadline is not None and deadline <= time.monotonic():
            self.data.pop(key, None)
            self.expires_at.pop(key, None)

    def execute(self, *args: Any) -> Any:
        with self._lock:
            self.commands.append(args)
            if self.fail_with is not None:
                raise self.fail_with

            command = args[0].upper()
            if command == "PING":
                return b"PONG"
            if command == "GET":
                self._expire(args[1])
                return self.data.get(args[1])
            if command == "SET":
                self.data[args[1]] = bytes(args[2])
                self.expires_at.pop(args[1], None)
                return b"OK"
            if command == "SETEX":
                key, age, value = args[1], int(args[2]), bytes(args[3])
                self.data[key] = value
                self.expires_at[key] = time.monotonic() + age
                return b"OK"
            if command == "DEL":
                self._expire(args[1])
                self.expires_at.pop(args[1], None)
                return 1 if self.data.pop(args[1], None) is not None else 0
            if command == "TTL":
                self._expire(args[1])
                if args[1] not in self.data:
                    return -2
                deadline = self.expires_at.get(args[1])
                if deadline is None:
                    return -1
                return math.ceil(deadline - time.monotonic())
            raise AssertionError(f"Unexpected command {args!r}")

    def command_names(self) -> List[str]:
        return [args[0] for args in self.commands]


class FakeConnection:
    """Connection double exposing send_command/read_response."""

    def __init__(self, server: FakeRedisServer) -> None:
        self.server = server
        self._pending: Tuple[Any, ...] = ()
        self.disconnects = 0

    def send_command(self, *args: Any, **kwargs: Any) -> None:
        self._pending = args

    def read_response(self) -> Any:
        return self.server.execute(*self._pending)

    def disconnect(self) -> None:
        self.disconnects += 1


class FakePool:
    """Pool double counting leases and releases."""

    def __init__(self, server: FakeRedisServer) -> None:
        self.connection = FakeConnection(server)
        self.leases = 0
        self.releases = 0
        self.closed = False

    @contextmanager
    def lease(self):
        if self.closed:
            raise session_store_closed()
        self.leases += 1
        try:
            yield self.connection
        finally:
            self.releases += 1

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_server() -> FakeRedisServer:
    """An empty in-memory Redis."""
    return FakeRedisServer()


@pytest.fixture
def fake_pool(fake_server) -> FakePool:
    """A pool handing out connections to the in-memory Redis."""
    return FakePool(fake_server)


@pytest.fixture
def redis_store(fake_pool) -> RedisStore:
    """A RedisStore backed by the in-memory Redis."""
    return RedisStore(fake_pool)


@pytest.fixture
def session_store(redis_store) -> SessionStore:
    """A SessionStore with default options over the in-memory Redis."""
    return SessionStore(redis_store)


@pytest.fixture
def make_context():
    """Factory for request contexts carrying an optional session header."""
    def _make(session_id: Optional[str] = None, header: str = "X-Core-Session") -> SessionContext:
        headers = {header: session_id} if session_id is not None else {}
        return SessionContext(headers)
    return _make
