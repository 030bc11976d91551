"""
Session data model.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from session.context import SessionContext
    from session.session_store import SessionStore


# max_age given to new sessions: 20 minutes
DEFAULT_MAX_AGE = 60 * 20


@dataclass
class SessionOptions:
    """
    Lifecycle options of a session.

    Attributes:
        max_age: TTL in seconds used when the session is saved. 0 falls back
            to the store default; a negative value deletes the session.
    """
    max_age: int = DEFAULT_MAX_AGE


@dataclass
class Session:
    """
    A session resolved for one request.

    Attributes:
        name: Name the session was requested under
        store: The SessionStore that issued the session
        id: Identifier presented to the client; empty until first saved
        values: The payload persisted by the store
        options: Per-session copy of the store options
        is_new: False only when the session was loaded from the store
    """
    name: str
    store: Optional["SessionStore"] = field(default=None, repr=False, compare=False)
    id: str = ""
    values: Dict[Any, Any] = field(default_factory=dict)
    options: SessionOptions = field(default_factory=SessionOptions)
    is_new: bool = True

    def save(self, context: "SessionContext") -> None:
        """Save the session through the store that issued it."""
        if self.store is None:
            raise RuntimeError(f"Session {self.name!r} is not bound to a store")
        self.store.save(context, self)
