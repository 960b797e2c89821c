"""Global test fixtures for the tiauth test suite."""

from __future__ import annotations

import os
from unittest.mock import MagicMock, patch

import pytest

from tiauth.auth.service import AuthService
from tiauth.storage.files import file_stores
from tiauth.storage.memory import memory_stores

PASSWORD_HASH = "ab" * 32
OTHER_PASSWORD_HASH = "cd" * 32
SALT = "0f" * 16
FIXED_NOW = 1_700_000_000


@pytest.fixture
def clean_env(monkeypatch):
    """Remove all TIAUTH_ environment variables."""
    for key in list(os.environ.keys()):
        if key.startswith("TIAUTH_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def reset_config_caches():
    """Reset cached settings before and after each test."""
    from tiauth.core.config import clear_config_cache
    from tiauth.server.config import clear_settings_cache

    clear_config_cache()
    clear_settings_cache()
    yield
    clear_config_cache()
    clear_settings_cache()


@pytest.fixture(autouse=True)
def reset_db_pool():
    """Reset the connection pool singleton around each test."""
    from tiauth.storage import db

    db.ConnectionPool._instance = None
    yield
    db.ConnectionPool._instance = None


@pytest.fixture
def mock_psycopg2_pool():
    """Mock the psycopg2 connection pool."""
    mock_conn = MagicMock()
    mock_cursor = MagicMock()
    mock_pool = MagicMock()

    mock_conn.cursor.return_value = mock_cursor
    mock_pool.getconn.return_value = mock_conn

    with patch("tiauth.storage.db.psycopg2_pool.ThreadedConnectionPool") as mock_pool_class:
        mock_pool_class.return_value = mock_pool
        yield {
            "pool_class": mock_pool_class,
            "pool": mock_pool,
            "connection": mock_conn,
            "cursor": mock_cursor,
        }


@pytest.fixture(params=["memory", "files"])
def stores(request, tmp_path):
    """Empty stores, once per in-process backend."""
    if request.param == "memory":
        return memory_stores()
    return file_stores(tmp_path / "store")


@pytest.fixture
def service(stores):
    return AuthService(stores, issuer="test-issuer", clock=lambda: FIXED_NOW)


@pytest.fixture
def identity(service):
    """Register an identity and return its credential."""

    async def _make(identity_id: str, password_hash: str = PASSWORD_HASH) -> str:
        await service.register(identity_id, password_hash, SALT)
        issued = await service.login(identity_id, password_hash)
        return issued.credential

    return _make
