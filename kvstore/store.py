"""
Key-value store abstraction used by the session lifecycle layer.

This module defines the contract the session store relies on: byte values
under string keys, writes with or without a TTL, idempotent deletes, and a
missing key reported as ``None`` rather than as an error.
"""

from abc import ABC, abstractmethod
from typing import Optional


class KeyValueStore(ABC):
    """
    Abstract base class for key-value store implementations.

    All methods are synchronous and block the calling thread for one round
    trip to the backing service. Implementations are expected to be safe
    for concurrent use from many threads.

    Stores can be used as context managers; leaving the block closes them.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        """
        Retrieve the value stored under a key.

        Args:
            key: The key to read.

        Returns:
            The stored bytes, or None if the key does not exist or has
            expired. An empty value is returned as b"", never as None.

        Raises:
            AppException: On connectivity or protocol failure.
        """
        pass

    @abstractmethod
    def set(self, key: str, value: bytes) -> None:
        """
        Store a value with no expiry.

        Raises:
            AppException: On connectivity or protocol failure.
        """
        pass

    @abstractmethod
    def set_ex(self, key: str, value: bytes, age: int = 0) -> None:
        """
        Store a value with a time-to-live, in a single command.

        Args:
            key: The key to write.
            value: The bytes to store.
            age: TTL in seconds. 0 means the store's default TTL.

        Raises:
            ValueError: If age is negative.
            AppException: On connectivity or protocol failure.
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """
        Delete a key.

        This operation is idempotent - deleting a missing key is not an
        error.

        Raises:
            AppException: On connectivity or protocol failure.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """
        Release every resource held by the store.

        Subsequent operations raise an AppException with the
        SESSION_STORE_CLOSED error code.
        """
        pass

    def __enter__(self) -> "KeyValueStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
