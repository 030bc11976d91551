"""
Session lifecycle manager.

SessionStore resolves sessions from an inbound header, rehydrates them from
the key-value store, and on save either deletes them or writes them back
with a TTL and publishes their identifier in the outbound header. No cookie
is ever set; the identifier travels in the header only.
"""

import base64
import logging
import secrets
from dataclasses import replace
from typing import Any, Optional, Sequence

from errors.exceptions import SessionDecodeError, entropy_unavailable
from kvstore.redis_store import RedisStore
from session.context import SessionContext
from session.models import Session, SessionOptions
from telemetry.log_format import redact_session_id

logger = logging.getLogger(__name__)


SESSION_HEADER = "X-Core-Session"
SESSION_PREFIX = "sess_"

# Random bytes per issued identifier
SESSION_ID_BYTES = 12

# Payload length limit handed through to an encoding layer; save() never checks it
DEFAULT_MAX_LENGTH = 4096


def generate_session_id() -> str:
    """
    Issue a new session identifier.

    12 bytes from the operating system's CSPRNG, base32 encoded with the
    "=" padding stripped: 20 characters from A-Z and 2-7.

    Raises:
        AppException: ENTROPY_UNAVAILABLE if the random source fails.
    """
    try:
        raw = secrets.token_bytes(SESSION_ID_BYTES)
    except (OSError, NotImplementedError) as exc:
        raise entropy_unavailable(details={"reason": str(exc)}) from exc
    return base64.b32encode(raw).decode("ascii").rstrip("=")


class SessionStore:
    """
    Header-based session store on top of a RedisStore.

    Sessions are stored under ``<key_prefix><id>``. The identifier is read
    from ``header_name`` on the request and written back under the same
    header on save.

    Attributes:
        store: Key-value store holding the encoded sessions
        options: Options copied into every new session
        key_prefix: Prefix of session keys
        header_name: Header carrying the session identifier
        max_length: Payload length limit for an encoding layer around the
            store; sessions of any size are saved
        key_pairs: Key material for a signing or encryption layer around
            the identifier; kept for that layer, never used here
    """

    def __init__(
        self,
        store: RedisStore,
        options: Optional[SessionOptions] = None,
        key_prefix: str = SESSION_PREFIX,
        header_name: str = SESSION_HEADER,
        max_length: int = DEFAULT_MAX_LENGTH,
        key_pairs: Sequence[bytes] = ()
    ):
        self.store = store
        self.options = options or SessionOptions()
        self.key_prefix = key_prefix
        self.header_name = header_name
        self.max_length = max_length
        self.key_pairs = tuple(key_pairs)

    @classmethod
    def connect(
        cls,
        size: int,
        network: str,
        address: str,
        password: Optional[str] = None,
        db: Optional[int] = None,
        key_pairs: Sequence[bytes] = (),
        **pool_options: Any
    ) -> "SessionStore":
        """
        Connect to Redis and build a session store with default options.

        Args:
            size: Maximum number of pooled connections
            network: "tcp" or "unix"
            address: "host:port" for tcp, socket path for unix
            password: Optional password sent with AUTH
            db: Optional database index sent with SELECT
            key_pairs: Key material handed through to a signing layer
            **pool_options: Timeouts accepted by RedisStore.connect

        Raises:
            AppException: If Redis cannot be reached.
        """
        store = RedisStore.connect(size, network, address, password=password, db=db, **pool_options)
        return cls(store, key_pairs=key_pairs)

    @classmethod
    def from_settings(cls, settings) -> "SessionStore":
        """
        Build a session store from a Settings object.

        Raises:
            AppException: If Redis cannot be reached.
        """
        store = RedisStore.connect(
            settings.redis_pool_size,
            settings.redis_network,
            settings.redis_address,
            password=settings.redis_password,
            db=settings.redis_db,
            idle_timeout=settings.redis_idle_timeout_seconds,
            connect_timeout=settings.redis_connect_timeout_seconds,
            socket_timeout=settings.redis_socket_timeout_seconds,
            pool_timeout=settings.redis_pool_timeout_seconds,
            default_max_age=settings.session_default_max_age,
        ).store_as(settings.session_serializer)

        return cls(
            store,
            options=SessionOptions(max_age=settings.session_max_age),
            key_prefix=settings.session_key_prefix,
            header_name=settings.session_header,
            max_length=settings.session_max_length,
            key_pairs=settings.key_pairs,
        )

    def _key(self, session_id: str) -> str:
        return f"{self.key_prefix}{session_id}"

    def get(self, context: SessionContext, name: str) -> Session:
        """
        Return the named session for the request of ``context``.

        The first call for a name resolves the session with ``new`` and
        registers it on the context; later calls return the same object.

        Raises:
            SessionDecodeError: If the stored session cannot be decoded.
            AppException: If the key-value store fails.
        """
        session = context.sessions.get(name)
        if session is None:
            session = self.new(context, name)
            context.register(session)
        return session

    def new(self, context: SessionContext, name: str) -> Session:
        """
        Resolve a session from the identifier header of the request.

        Without an identifier the session is new and nothing is read. With
        one, the stored entry is loaded: a missing entry gives a new session
        carrying the presented identifier, a decoded entry gives a session
        with ``is_new`` False.

        Raises:
            SessionDecodeError: If the stored entry cannot be decoded. The
                exception's ``session`` has ``is_new`` False and its values
                untouched, so the caller can continue with it or abort.
            AppException: If the key-value store fails.
        """
        session = Session(name=name, store=self, options=replace(self.options))
        session.id = context.header(self.header_name)
        if not session.id:
            return session

        try:
            found = self.load(session)
        except SessionDecodeError as exc:
            session.is_new = False
            exc.session = session
            logger.warning("Stored session could not be decoded", extra={
                "extra_data": {"session": redact_session_id(session.id), "reason": exc.message}
            })
            raise

        session.is_new = not found
        return session

    def load(self, session: Session) -> bool:
        """
        Read and decode the stored entry of a session.

        Returns:
            True if the entry existed and was decoded into the session,
            False if no entry exists.

        Raises:
            SessionDecodeError: If the entry cannot be decoded.
            AppException: If the key-value store fails.
        """
        data = self.store.get(self._key(session.id))
        if data is None:
            return False
        self.store.serializer.deserialize(data, session)
        return True

    def save(self, context: SessionContext, session: Session) -> None:
        """
        Persist a session, or delete it when its max_age is negative.

        A session without an identifier gets a fresh one. The encoded
        session is written with TTL ``session.options.max_age`` (0 uses the
        store default) and the identifier is set on the response headers.
        Deleting writes no header.

        Raises:
            AppException: On entropy, encoding or store failure. Nothing
                is written and no header is set in that case.
        """
        if session.options.max_age < 0:
            if session.id:
                self.store.delete(self._key(session.id))
            logger.debug("Session deleted", extra={
                "extra_data": {"session": redact_session_id(session.id)}
            })
            return

        session_id = session.id or generate_session_id()

        data = self.store.serializer.serialize(session)
        self.store.set_ex(self._key(session_id), data, session.options.max_age)
        session.id = session_id
        context.set_header(self.header_name, session_id)

    def set_default_max_age(self, age: int) -> None:
        """Change the TTL used for sessions saved with max_age 0."""
        self.store.default_max_age = age

    def set_max_length(self, length: int) -> None:
        """Change the payload length limit handed through to an encoding layer."""
        if length < 0:
            raise ValueError(f"max_length must not be negative, got {length}")
        self.max_length = length

    def close(self) -> None:
        """Close the underlying key-value store."""
        self.store.close()
