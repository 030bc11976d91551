"""
Integration test configuration and fixtures.

This module provides fixtures for integration testing against a real Redis
server. Tests are skipped when no server answers at the configured address.
"""
import os
import uuid
import logging
from dataclasses import dataclass, field
from typing import Generator, List

import pytest

from errors.codes import ErrorCode
from errors.exceptions import AppException
from kvstore.redis_store import RedisStore
from session.session_store import SessionStore


logger = logging.getLogger(__name__)


@dataclass
class TestRedisConfig:
    """
    Configuration for the test Redis instance.

    Environment Variables:
    - TEST_REDIS_NETWORK: "tcp" or "unix" (default: "tcp")
    - TEST_REDIS_ADDRESS: host:port or socket path (default: "localhost:6379")
    - TEST_REDIS_PASSWORD: Optional password
    - TEST_REDIS_DB: Database index used by the tests (default: 15)
    """
    __test__ = False

    network: str = field(default_factory=lambda: os.getenv("TEST_REDIS_NETWORK", "tcp"))
    address: str = field(default_factory=lambda: os.getenv("TEST_REDIS_ADDRESS", "localhost:6379"))
    password: str = field(default_factory=lambda: os.getenv("TEST_REDIS_PASSWORD", ""))
    db: int = field(default_factory=lambda: int(os.getenv("TEST_REDIS_DB", "15")))


@pytest.fixture(scope="session")
def redis_config() -> TestRedisConfig:
    return TestRedisConfig()


@pytest.fixture
def key_namespace() -> str:
    """A per-test key prefix so tests never see each other's keys."""
    return f"itest_{uuid.uuid4().hex[:8]}_"


@pytest.fixture
def created_keys() -> List[str]:
    return []


@pytest.fixture
def live_store(redis_config, created_keys) -> Generator[RedisStore, None, None]:
    """
    A RedisStore connected to the test server.

    Keys appended to ``created_keys`` are deleted after the test.
    """
    try:
        store = RedisStore.connect(
            4,
            redis_config.network,
            redis_config.address,
            password=redis_config.password or None,
            db=redis_config.db,
            connect_timeout=1.0,
            socket_timeout=2.0,
            pool_timeout=2.0,
        )
    except AppException as exc:
        if exc.error_code == ErrorCode.SESSION_STORE_UNAVAILABLE:
            pytest.skip(f"Redis not available at {redis_config.address}: {exc.message}")
        raise

    yield store

    if not store.pool.closed:
        for key in created_keys:
            store.delete(key)
        store.close()


@pytest.fixture
def live_session_store(live_store, key_namespace) -> SessionStore:
    """A SessionStore over the test server using a per-test key prefix."""
    return SessionStore(live_store, key_prefix=key_namespace)
