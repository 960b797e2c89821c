"""Database connection utilities for the postgres backend.

Synchronous psycopg2 access, meant to be called from worker threads:
    - ConnectionPool with ThreadedConnectionPool
    - get_connection() / put_connection()
    - get_cursor() context manager (one transaction per block)

Pool size is configured via TIAUTH_DB_POOL_MIN / TIAUTH_DB_POOL_MAX.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

import psycopg2
from psycopg2 import pool as psycopg2_pool
from psycopg2.extras import RealDictCursor

from ..core.config import get_config
from ..core.exceptions import StorageException

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


class IntegrityViolation(StorageException):
    """A statement violated a table constraint."""

    def __init__(self, message: str, pgcode: str | None = None):
        super().__init__(message, {"pgcode": pgcode} if pgcode else None)
        self.pgcode = pgcode

    @property
    def is_unique_violation(self) -> bool:
        return self.pgcode == UNIQUE_VIOLATION


# =============================================================================
# Synchronous Connection Pool (psycopg2)
# =============================================================================


class ConnectionPool:
    """Thread-safe connection pool manager.

    Uses psycopg2's ThreadedConnectionPool for concurrent access.
    Pool is lazily initialized on first connection request.

    This is a singleton - use get_instance() to access.
    """

    _instance: ConnectionPool | None = None
    _lock = threading.Lock()

    def __init__(self) -> None:
        self._pool: psycopg2_pool.ThreadedConnectionPool | None = None
        self._pool_lock = threading.Lock()

    @classmethod
    def get_instance(cls) -> ConnectionPool:
        """Get the singleton pool instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def _ensure_pool(self) -> psycopg2_pool.ThreadedConnectionPool:
        """Ensure pool is initialized, creating it if necessary."""
        if self._pool is None:
            with self._pool_lock:
                if self._pool is None:
                    config = get_config()
                    pool_config = config.pool_config
                    try:
                        self._pool = psycopg2_pool.ThreadedConnectionPool(
                            minconn=pool_config["minconn"],
                            maxconn=pool_config["maxconn"],
                            **config.connection_params,
                        )
                        logger.info(
                            "Connection pool initialized: min=%d, max=%d",
                            pool_config["minconn"],
                            pool_config["maxconn"],
                        )
                    except psycopg2.OperationalError as e:
                        logger.error("Failed to create connection pool: %s", e)
                        raise StorageException(f"Failed to create connection pool: {e}") from e
        return self._pool

    def get_connection(self) -> Any:
        """Get a connection from the pool.

        Raises:
            StorageException: If pool is exhausted or connection fails
        """
        pool = self._ensure_pool()
        try:
            conn = pool.getconn()
            if conn is None:
                raise StorageException("Connection pool exhausted")
            return conn
        except psycopg2_pool.PoolError as e:
            logger.error("Pool error getting connection: %s", e)
            raise StorageException(f"Failed to get connection from pool: {e}") from e
        except psycopg2.Error as e:
            logger.error("Database error: %s", e)
            raise StorageException(f"Database error: {e}") from e

    def put_connection(self, conn: Any) -> None:
        """Return a connection to the pool."""
        if self._pool is not None and conn is not None:
            try:
                self._pool.putconn(conn)
            except psycopg2_pool.PoolError as e:
                logger.warning("Error returning connection to pool: %s", e)
                conn.close()

    def close_all(self) -> None:
        """Close all connections in the pool."""
        with self._pool_lock:
            if self._pool is not None:
                self._pool.closeall()
                self._pool = None
                logger.info("Connection pool closed")


def get_connection() -> Any:
    """Get a database connection from the pool."""
    return ConnectionPool.get_instance().get_connection()


def put_connection(conn: Any) -> None:
    """Return a connection to the pool."""
    ConnectionPool.get_instance().put_connection(conn)


def close_pool() -> None:
    """Close the connection pool."""
    ConnectionPool.get_instance().close_all()


@contextmanager
def get_cursor() -> Generator[Any, None, None]:
    """Context manager for a dict cursor inside one transaction.

    Usage:
        with get_cursor() as cur:
            cur.execute("SELECT * FROM identities")
            rows = cur.fetchall()

    Commits when the block exits normally, rolls back otherwise.

    Raises:
        IntegrityViolation: On constraint violations
        StorageException: On other database errors
    """
    conn = get_connection()
    cur = None
    try:
        cur = conn.cursor(cursor_factory=RealDictCursor)
        yield cur
        conn.commit()
    except psycopg2.IntegrityError as e:
        conn.rollback()
        logger.debug("Database integrity error: %s", e)
        raise IntegrityViolation(f"Integrity constraint violation: {e}", getattr(e, "pgcode", None)) from e
    except psycopg2.Error as e:
        conn.rollback()
        logger.error("Database error: %s", e)
        raise StorageException(f"Database error: {e}") from e
    except BaseException:
        conn.rollback()
        raise
    finally:
        if cur is not None:
            cur.close()
        put_connection(conn)
