"""
db/connection.py
----------------
Manages the PostgreSQL connection pool.
Uses psycopg2's SimpleConnectionPool for efficient connection reuse.
"""

from contextlib import contextmanager
from typing import Iterator

import psycopg2
from psycopg2 import pool

from config import DATABASE_URL
from models.errors import StorageFailure
from utils.logger import get_logger

logger = get_logger(__name__)

_pool: pool.SimpleConnectionPool | None = None


def init_pool(min_conn: int = 1, max_conn: int = 5) -> None:
    """
    Initialize the database connection pool.

    Args:
        min_conn: Minimum number of connections to keep open.
        max_conn: Maximum number of connections allowed.

    Raises:
        psycopg2.OperationalError: If the database is unreachable.
    """
    global _pool
    if _pool is not None:
        return
    try:
        _pool = pool.SimpleConnectionPool(min_conn, max_conn, DATABASE_URL)
        logger.info("Database connection pool initialized successfully.")
    except psycopg2.OperationalError as e:
        logger.error(f"Failed to initialize database pool: {e}")
        raise


def get_connection():
    """
    Get a connection from the pool.

    Raises:
        StorageFailure: If the pool has not been initialized or is exhausted.
    """
    if _pool is None:
        raise StorageFailure("Database pool not initialized. Call init_pool() first.")
    try:
        return _pool.getconn()
    except pool.PoolError as e:
        raise StorageFailure(f"No database connection available: {e}") from e


def release_connection(conn) -> None:
    """Return a connection back to the pool."""
    if _pool is not None:
        _pool.putconn(conn)


@contextmanager
def db_cursor(action: str) -> Iterator:
    """
    Yield a cursor inside a transaction.

    Commits on success. On any psycopg2 error the transaction is rolled
    back, the error logged and re-raised as StorageFailure. Any other
    exception also rolls back and propagates unchanged.

    Args:
        action: Short description used in log and error messages.
    """
    conn = get_connection()
    try:
        with conn.cursor() as cur:
            yield cur
        conn.commit()
    except psycopg2.Error as e:
        conn.rollback()
        logger.error(f"Failed to {action}: {e}")
        raise StorageFailure(f"Failed to {action}: {e}") from e
    except Exception:
        conn.rollback()
        raise
    finally:
        release_connection(conn)


def close_pool() -> None:
    """Close all connections in the pool."""
    global _pool
    if _pool is not None:
        _pool.closeall()
        _pool = None
        logger.info("Database connection pool closed.")
