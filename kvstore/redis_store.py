"""
Redis-backed key-value store.

RedisStore runs GET / SET / SETEX / DEL against a ProbingConnectionPool.
Each call leases exactly one pooled connection and returns it before the
call completes. A missing key is reported as None; every other failure is
raised as an AppException carrying the underlying redis error.
"""

import logging
from typing import Any, Optional

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from errors.exceptions import session_store_error, session_store_unavailable
from kvstore.pool import DEFAULT_IDLE_TIMEOUT, ProbingConnectionPool, build_pool
from kvstore.serializers import PickleSerializer, SessionSerializer, serializer_for
from kvstore.store import KeyValueStore

logger = logging.getLogger(__name__)


# TTL used by set_ex when called with age 0: 20 minutes
DEFAULT_STORE_MAX_AGE = 60 * 20

# Raw-store key prefix; the session layer applies its own prefix instead
DEFAULT_KEY_PREFIX = "session_"


class RedisStore(KeyValueStore):
    """
    Redis implementation of KeyValueStore.

    The store pings the server when it is constructed, so a store object is
    never handed out for an unreachable server. It also carries the session
    serializer chosen with ``store_as`` and the default TTL used by
    ``set_ex``; neither is applied by the store itself.

    Attributes:
        pool: The connection pool every command is leased from
        key_prefix: Raw-store key prefix, not used by the session layer
        serializer: Serializer used by session collaborators
    """

    def __init__(
        self,
        pool: ProbingConnectionPool,
        default_max_age: int = DEFAULT_STORE_MAX_AGE,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        serializer: Optional[SessionSerializer] = None
    ):
        """
        Initialize the store around an existing pool and ping the server.

        Args:
            pool: Connection pool to lease connections from
            default_max_age: TTL in seconds applied when set_ex gets age 0
            key_prefix: Raw-store key prefix
            serializer: Session serializer, PickleSerializer by default

        Raises:
            ValueError: If default_max_age is not positive.
            AppException: If the server cannot be reached or does not
                answer PONG.
        """
        self.pool = pool
        self.default_max_age = default_max_age
        self.key_prefix = key_prefix
        self.serializer = serializer or PickleSerializer()

        if not self.ping():
            raise session_store_unavailable(
                "Session store did not answer PING",
                details={"reply": "unexpected"}
            )

    @classmethod
    def connect(
        cls,
        size: int,
        network: str,
        address: str,
        password: Optional[str] = None,
        db: Optional[int] = None,
        idle_timeout: float = DEFAULT_IDLE_TIMEOUT,
        connect_timeout: Optional[float] = None,
        socket_timeout: Optional[float] = None,
        pool_timeout: Optional[float] = None,
        **store_options: Any
    ) -> "RedisStore":
        """
        Build a pool for a Redis server and a store on top of it.

        The pool is closed again if the construction ping fails.

        Args:
            size: Maximum number of pooled connections
            network: "tcp" or "unix"
            address: "host:port" for tcp, socket path for unix
            password: Optional password sent with AUTH
            db: Optional database index sent with SELECT
            idle_timeout: Seconds after which idle connections are redialed
            connect_timeout: Dial timeout in seconds
            socket_timeout: Per-command timeout in seconds
            pool_timeout: Seconds to wait for a free connection
            **store_options: Passed to the RedisStore constructor

        Raises:
            AppException: If the server cannot be reached.
        """
        pool = build_pool(
            size,
            network,
            address,
            password=password,
            db=db,
            idle_timeout=idle_timeout,
            connect_timeout=connect_timeout,
            socket_timeout=socket_timeout,
            pool_timeout=pool_timeout,
        )
        try:
            return cls(pool, **store_options)
        except BaseException:
            pool.close()
            raise

    @property
    def default_max_age(self) -> int:
        return self._default_max_age

    @default_max_age.setter
    def default_max_age(self, age: int) -> None:
        if age <= 0:
            raise ValueError(f"default_max_age must be positive, got {age}")
        self._default_max_age = age

    def store_as(self, name: Optional[str]) -> "RedisStore":
        """
        Select the session serializer by name and return the store.

        "JSON" selects the JSON serializer; any other name selects the
        binary serializer.
        """
        self.serializer = serializer_for(name)
        return self

    def _execute(self, *args: Any) -> Any:
        """Run one command on a leased connection and translate failures."""
        try:
            with self.pool.lease() as connection:
                connection.send_command(*args)
                return connection.read_response()
        except (RedisConnectionError, RedisTimeoutError) as exc:
            logger.error("Session store unreachable", extra={
                "extra_data": {"command": args[0], "error": str(exc)}
            })
            raise session_store_unavailable(
                details={"command": args[0], "reason": str(exc)}
            ) from exc
        except RedisError as exc:
            logger.error("Session store rejected command", extra={
                "extra_data": {"command": args[0], "error": str(exc)}
            })
            raise session_store_error(
                details={"command": args[0], "reason": str(exc)}
            ) from exc

    def ping(self) -> bool:
        """
        Check that the server answers PING.

        Returns:
            True if the reply is PONG, False for any other reply.

        Raises:
            AppException: If the server cannot be reached.
        """
        reply = self._execute("PING")
        return reply in (b"PONG", "PONG")

    def get(self, key: str) -> Optional[bytes]:
        reply = self._execute("GET", key)
        if reply is None:
            logger.debug("Key not found", extra={"extra_data": {"key": key}})
        return reply

    def set(self, key: str, value: bytes) -> None:
        self._execute("SET", key, value)

    def set_ex(self, key: str, value: bytes, age: int = 0) -> None:
        if age < 0:
            raise ValueError(f"age must not be negative, got {age}")
        if age == 0:
            age = self.default_max_age
        self._execute("SETEX", key, age, value)

    def delete(self, key: str) -> None:
        self._execute("DEL", key)

    def ttl(self, key: str) -> int:
        """
        Remaining time-to-live of a key in seconds.

        Returns:
            The TTL, -1 for a key without expiry, -2 for a missing key.
        """
        return int(self._execute("TTL", key))

    def close(self) -> None:
        self.pool.close()
