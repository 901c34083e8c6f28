from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Optional, Protocol

MIGRATIONS_DIR = Path(__file__).with_name("migrations")


class KeyValueStore(Protocol):
    """String-keyed byte store; every write replaces one whole record."""

    def get(self, key: str) -> Optional[bytes]:
        ...

    def put(self, key: str, value: bytes) -> None:
        ...


class InMemoryKeyValueStore:
    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}

    def get(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    def put(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)

    def keys(self) -> list[str]:
        return sorted(self._data)


class SqliteKeyValueStore:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def get(self, key: str) -> Optional[bytes]:
        row = self.conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        if row is None:
            return None
        value = row[0]
        return value.encode("utf-8") if isinstance(value, str) else bytes(value)

    def put(self, key: str, value: bytes) -> None:
        with self.conn:
            self.conn.execute(
                """
                INSERT INTO kv_store(key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key)
                DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """,
                (key, value),
            )


def connect_sqlite(path: str | Path = ":memory:") -> sqlite3.Connection:
    # The admin API serves sync endpoints from a thread pool.
    conn = sqlite3.connect(path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def apply_sqlite_migration(conn: sqlite3.Connection, migration_path: str | Path) -> None:
    sql = Path(migration_path).read_text(encoding="utf-8")
    conn.executescript(sql)


def open_sqlite_store(path: str | Path = ":memory:") -> SqliteKeyValueStore:
    conn = connect_sqlite(path)
    for migration in sorted(MIGRATIONS_DIR.glob("*.sql")):
        apply_sqlite_migration(conn, migration)
    return SqliteKeyValueStore(conn)
