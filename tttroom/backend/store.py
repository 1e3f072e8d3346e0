"""Key-value persistence interfaces and implementations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

SCHEMA_PATH = Path(__file__).with_name("db_schema.sql")


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None:
        """Return the raw value stored under key, or None."""

    def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""

    def delete(self, key: str) -> None:
        """Remove key if present."""


@dataclass
class InMemoryKeyValueStore:
    def __post_init__(self) -> None:
        self._entries: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._entries.get(key)

    def set(self, key: str, value: str) -> None:
        self._entries[key] = value

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)


@dataclass
class PostgresKeyValueStore:
    database_url: str

    def _connect(self) -> Any:
        import psycopg

        return psycopg.connect(self.database_url)

    def ensure_schema(self) -> None:
        schema_sql = SCHEMA_PATH.read_text(encoding="utf-8")
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(schema_sql)
            conn.commit()

    def get(self, key: str) -> str | None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT value FROM kv_entries WHERE key = %s", (key,))
                row = cur.fetchone()
        if row is None:
            return None
        return row[0]

    def set(self, key: str, value: str) -> None:
        now = datetime.now(timezone.utc)
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO kv_entries (key, value, updated_at)
                    VALUES (%s, %s, %s)
                    ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value, updated_at = EXCLUDED.updated_at
                    """,
                    (key, value, now),
                )
            conn.commit()

    def delete(self, key: str) -> None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM kv_entries WHERE key = %s", (key,))
            conn.commit()


def create_store(database_url: str | None) -> KeyValueStore:
    if database_url:
        return PostgresKeyValueStore(database_url=database_url)
    return InMemoryKeyValueStore()
