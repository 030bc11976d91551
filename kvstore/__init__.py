"""
Key-value store layer.

This module provides the pooled Redis client the session store is built
on: the KeyValueStore interface, the RedisStore implementation, its
connection pool and the session payload serializers it carries.
"""

from kvstore.store import KeyValueStore
from kvstore.pool import ProbingConnectionPool, build_pool, DEFAULT_IDLE_TIMEOUT
from kvstore.redis_store import RedisStore, DEFAULT_STORE_MAX_AGE
from kvstore.serializers import (
    SessionSerializer,
    PickleSerializer,
    JSONSerializer,
    serializer_for,
)

__all__ = [
    "KeyValueStore",
    "ProbingConnectionPool",
    "build_pool",
    "DEFAULT_IDLE_TIMEOUT",
    "RedisStore",
    "DEFAULT_STORE_MAX_AGE",
    "SessionSerializer",
    "PickleSerializer",
    "JSONSerializer",
    "serializer_for",
]
