"""
Connection pool for the Redis key-value store.

ProbingConnectionPool extends redis-py's BlockingConnectionPool with the
checks the session store relies on: idle connections are PING-probed when
borrowed, connections idle past the idle timeout are redialed, and
connections are only handed out through a scoped lease that always
returns them.
"""

import logging
import threading
import time
from contextlib import contextmanager
from typing import Dict, Iterator, Optional, Tuple

from redis.backoff import NoBackoff
from redis.connection import BlockingConnectionPool, Connection, UnixDomainSocketConnection
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from redis.retry import Retry

from errors.exceptions import session_store_closed

logger = logging.getLogger(__name__)


# Idle connections older than this are redialed instead of probed
DEFAULT_IDLE_TIMEOUT = 240.0


def parse_address(address: str) -> Tuple[str, int]:
    """
    Split a tcp address into host and port.

    Accepts "host:port", ":port" (local host) and "[v6addr]:port".

    Raises:
        ValueError: If the address has no usable port.
    """
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"Invalid tcp address {address!r}, expected host:port")
    host = host.strip("[]") or "localhost"
    return host, int(port)


class ProbingConnectionPool(BlockingConnectionPool):
    """
    Bounded Redis connection pool with liveness probing on borrow.

    Connections are reused LIFO. Every connection borrowed from the idle
    set is checked before it is handed out:
    - idle longer than ``idle_timeout``: disconnected and redialed
    - otherwise: PING; a failed probe disconnects and redials

    A connection that cannot be redialed is returned to the pool and the
    dial error is raised. Callers waiting for a free connection block for
    at most ``timeout`` seconds.

    Attributes:
        idle_timeout: Seconds after which an idle connection is redialed.
            0 disables the check.
    """

    def __init__(self, idle_timeout: float = DEFAULT_IDLE_TIMEOUT, **kwargs):
        self.idle_timeout = idle_timeout
        self._idle_since: Dict[int, float] = {}
        self._idle_lock = threading.Lock()
        self._closed = False
        super().__init__(**kwargs)

    @property
    def closed(self) -> bool:
        return self._closed

    def get_connection(self, *args, **kwargs):
        connection = super().get_connection(*args, **kwargs)
        with self._idle_lock:
            idle_since = self._idle_since.pop(id(connection), None)

        # Freshly dialed connections need no probe
        if idle_since is None:
            return connection

        try:
            idle_for = time.monotonic() - idle_since
            if self.idle_timeout and idle_for > self.idle_timeout:
                logger.debug("Redialing idle connection", extra={
                    "extra_data": {"idle_seconds": round(idle_for, 1)}
                })
                connection.disconnect()
                connection.connect()
            else:
                self._probe(connection)
        except BaseException:
            super().release(connection)
            raise
        return connection

    def _probe(self, connection) -> None:
        """PING a borrowed connection, redialing it if the probe fails."""
        try:
            connection.send_command("PING", check_health=False)
            reply = connection.read_response()
            if reply not in (b"PONG", "PONG"):
                raise RedisConnectionError(f"Unexpected PING reply {reply!r}")
        except (RedisConnectionError, RedisTimeoutError, OSError) as exc:
            logger.info("Discarding stale connection after failed probe", extra={
                "extra_data": {"error": str(exc)}
            })
            connection.disconnect()
            connection.connect()

    def release(self, connection) -> None:
        with self._idle_lock:
            self._idle_since[id(connection)] = time.monotonic()
        super().release(connection)

    def reset(self) -> None:
        # Runs after a fork too; the discarded connections' ids may be reused
        with self._idle_lock:
            self._idle_since.clear()
        super().reset()

    def disconnect(self, *args, **kwargs) -> None:
        with self._idle_lock:
            self._idle_since.clear()
        super().disconnect(*args, **kwargs)

    @contextmanager
    def lease(self) -> Iterator[Connection]:
        """
        Borrow one connection for the duration of a ``with`` block.

        The connection is always released, on success and on error. A
        connection that failed mid-command is disconnected first so it is
        redialed on its next use.

        Raises:
            AppException: SESSION_STORE_CLOSED after close() was called.
        """
        if self._closed:
            raise session_store_closed()

        connection = self.get_connection()
        try:
            yield connection
        except (RedisConnectionError, RedisTimeoutError):
            connection.disconnect()
            raise
        finally:
            self.release(connection)

    def close(self) -> None:
        """
        Close the pool and every connection it holds.

        Later leases fail with SESSION_STORE_CLOSED. Errors raised while
        disconnecting propagate to the caller.
        """
        self._closed = True
        self.disconnect()
        logger.info("Connection pool closed")


def build_pool(
    size: int,
    network: str,
    address: str,
    password: Optional[str] = None,
    db: Optional[int] = None,
    idle_timeout: float = DEFAULT_IDLE_TIMEOUT,
    connect_timeout: Optional[float] = None,
    socket_timeout: Optional[float] = None,
    pool_timeout: Optional[float] = None,
) -> ProbingConnectionPool:
    """
    Create a ProbingConnectionPool for a Redis server.

    Connections are dialed lazily. AUTH is sent when a password is given and
    SELECT when a database index is given, both as part of the dial. redis-py's
    own retry is disabled; failures surface on the first attempt.

    Args:
        size: Maximum number of connections held by the pool
        network: "tcp" or "unix"
        address: "host:port" for tcp, socket path for unix
        password: Optional password for AUTH
        db: Optional database index for SELECT
        idle_timeout: Seconds after which idle connections are redialed
        connect_timeout: Dial timeout in seconds
        socket_timeout: Per-command timeout in seconds
        pool_timeout: Seconds to wait for a free connection

    Returns:
        A ready, not yet connected pool.

    Raises:
        ValueError: If the network is unknown or the address malformed.
    """
    connection_kwargs = {
        "password": password or None,
        "db": db or 0,
        "socket_timeout": socket_timeout,
        "retry": Retry(NoBackoff(), 0),
    }

    network = network.lower()
    if network == "tcp":
        host, port = parse_address(address)
        connection_kwargs.update(
            connection_class=Connection,
            host=host,
            port=port,
            socket_connect_timeout=connect_timeout,
        )
    elif network == "unix":
        connection_kwargs.update(
            connection_class=UnixDomainSocketConnection,
            path=address,
        )
    else:
        raise ValueError(f"Unsupported network {network!r}, expected 'tcp' or 'unix'")

    logger.info("Creating Redis connection pool", extra={
        "extra_data": {
            "network": network,
            "address": address,
            "size": size,
            "db": db or 0,
            "auth": bool(password),
        }
    })

    return ProbingConnectionPool(
        idle_timeout=idle_timeout,
        max_connections=size,
        timeout=pool_timeout,
        **connection_kwargs
    )
