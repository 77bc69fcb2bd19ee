"""Postgres-backed key-value store for timers and push subscriptions."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Generator, Protocol

import psycopg2
import psycopg2.extras
from psycopg2.extensions import connection as PgConnection

logger = logging.getLogger(__name__)

CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS chillcast_kv (
    key         VARCHAR(200)  NOT NULL,
    value       JSONB         NOT NULL,
    updated_at  TIMESTAMPTZ   NOT NULL DEFAULT NOW(),
    CONSTRAINT pk_chillcast_kv PRIMARY KEY (key)
);
"""

UPSERT_SQL = """
INSERT INTO chillcast_kv (key, value)
VALUES (%s, %s)
ON CONFLICT (key)
DO UPDATE SET
    value      = EXCLUDED.value,
    updated_at = NOW();
"""

SELECT_SQL = "SELECT value FROM chillcast_kv WHERE key = %s;"
DELETE_SQL = "DELETE FROM chillcast_kv WHERE key = %s;"
KEYS_SQL = "SELECT key FROM chillcast_kv WHERE key LIKE %s ORDER BY key;"


class KeyValueStore(Protocol):
    """JSON document store keyed by strings such as ``timer:{user_id}``."""

    def get(self, key: str) -> dict[str, Any] | None: ...

    def set(self, key: str, value: dict[str, Any]) -> None: ...

    def delete(self, key: str) -> bool: ...

    def keys(self, prefix: str) -> list[str]: ...


@contextmanager
def get_connection(database_url: str) -> Generator[PgConnection, None, None]:
    """Yield a psycopg2 connection with auto-commit/rollback semantics.

    Args:
        database_url: libpq-compatible DSN.
    """
    conn: PgConnection | None = None
    try:
        conn = psycopg2.connect(database_url)
        yield conn
        conn.commit()
    except Exception:
        if conn is not None:
            conn.rollback()
        raise
    finally:
        if conn is not None:
            conn.close()


def _escape_like(prefix: str) -> str:
    return prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class PostgresKeyValueStore:
    """:class:`KeyValueStore` over a single ``chillcast_kv`` table.

    The DSN is checked once here; individual calls do not re-validate it.
    """

    def __init__(self, database_url: str) -> None:
        if not database_url:
            raise ValueError("database_url must be a non-empty Postgres DSN")
        self.database_url = database_url

    def init_schema(self) -> None:
        """Create ``chillcast_kv`` if it doesn't exist (idempotent)."""
        logger.info("Initialising key-value schema.")
        with get_connection(self.database_url) as conn:
            with conn.cursor() as cur:
                cur.execute(CREATE_TABLE_SQL)

    def get(self, key: str) -> dict[str, Any] | None:
        with get_connection(self.database_url) as conn:
            with conn.cursor() as cur:
                cur.execute(SELECT_SQL, (key,))
                row = cur.fetchone()
        return row[0] if row else None

    def set(self, key: str, value: dict[str, Any]) -> None:
        with get_connection(self.database_url) as conn:
            with conn.cursor() as cur:
                cur.execute(UPSERT_SQL, (key, psycopg2.extras.Json(value)))
        logger.debug("Stored %s", key)

    def delete(self, key: str) -> bool:
        """Remove *key*; returns whether a row was deleted."""
        with get_connection(self.database_url) as conn:
            with conn.cursor() as cur:
                cur.execute(DELETE_SQL, (key,))
                deleted = cur.rowcount > 0
        return deleted

    def keys(self, prefix: str) -> list[str]:
        with get_connection(self.database_url) as conn:
            with conn.cursor() as cur:
                cur.execute(KEYS_SQL, (_escape_like(prefix) + "%",))
                rows = cur.fetchall()
        return [row[0] for row in rows]
