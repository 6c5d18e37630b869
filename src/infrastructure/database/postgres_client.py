"""PostgreSQL database client for local development.

Stands in for the Supabase table API when ``USE_LOCAL_DB=1`` so the image and
user stores can run against a plain PostgreSQL instance loaded with
``sql/schema.sql``.
"""
from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Any, Generator

import psycopg2
from psycopg2 import pool
from psycopg2.extras import RealDictCursor

logger = logging.getLogger(__name__)


class PostgresClient:
    """PostgreSQL database client with connection pooling."""

    def __init__(self) -> None:
        """Initialize PostgreSQL connection pool."""
        self.enabled = os.getenv("USE_LOCAL_DB", "0") == "1"
        self._pool: Any = None

        if self.enabled:
            try:
                self._pool = pool.SimpleConnectionPool(
                    minconn=1,
                    maxconn=10,
                    host=os.getenv("POSTGRES_HOST", "localhost"),
                    port=int(os.getenv("POSTGRES_PORT", "5432")),
                    database=os.getenv("POSTGRES_DB", "astra_labs"),
                    user=os.getenv("POSTGRES_USER", "astra"),
                    password=os.getenv("POSTGRES_PASSWORD", "astra_dev_password"),
                )
            except psycopg2.Error as exc:  # pragma: no cover
                raise RuntimeError(f"Failed to initialize PostgreSQL connection pool: {exc}") from exc

    @contextmanager
    def transaction(self, dict_cursor: bool = True) -> Generator[Any, None, None]:
        """Yield a cursor whose statements commit together or not at all.

        Args:
            dict_cursor: If True, rows come back as dictionaries (default: True).

        Yields:
            Database cursor. Leaving the block commits; an exception rolls back.

        Raises:
            RuntimeError: If local database is not enabled.
        """
        if not self.enabled or self._pool is None:
            raise RuntimeError("Local PostgreSQL database is not enabled")

        conn = self._pool.getconn()
        cursor = conn.cursor(cursor_factory=RealDictCursor if dict_cursor else None)
        try:
            yield cursor
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            self._pool.putconn(conn)

    def execute_one(self, query: str, params: tuple | dict = ()) -> dict[str, Any] | None:
        """Execute a query and return a single result.

        Args:
            query: SQL query string.
            params: Query parameters, positional or named.

        Returns:
            Single row as dictionary or None if no results.
        """
        with self.transaction() as cursor:
            cursor.execute(query, params)
            result = cursor.fetchone()
            return dict(result) if result else None

    def execute_many(self, query: str, params: tuple = ()) -> list[dict[str, Any]]:
        """Execute a query and return all results.

        Args:
            query: SQL query string.
            params: Query parameters.

        Returns:
            List of rows as dictionaries.
        """
        with self.transaction() as cursor:
            cursor.execute(query, params)
            return [dict(row) for row in cursor.fetchall()]

    def execute_update(self, query: str, params: tuple = ()) -> int:
        """Execute an UPDATE or DELETE query.

        Args:
            query: SQL UPDATE or DELETE query.
            params: Query parameters.

        Returns:
            Number of affected rows.
        """
        with self.transaction(dict_cursor=False) as cursor:
            cursor.execute(query, params)
            return cursor.rowcount

    def close(self) -> None:
        """Close all connections in the pool."""
        if self._pool:
            self._pool.closeall()


_POSTGRES_CLIENT: PostgresClient | None = None


def get_postgres_client() -> PostgresClient | None:
    """Return the shared client when ``USE_LOCAL_DB=1``, otherwise None."""
    global _POSTGRES_CLIENT
    if os.getenv("USE_LOCAL_DB", "0") != "1":
        return None
    if _POSTGRES_CLIENT is None:
        logger.info("Opening local PostgreSQL pool")
        _POSTGRES_CLIENT = PostgresClient()
    return _POSTGRES_CLIENT
