import json
import sqlite3
import threading
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any, Optional

import pymysql

from crawler.clock import SystemClock, format_timestamp, parse_timestamp
from frontier.storage import StoreError


class KeyValueStore(ABC):
    """
    Abstract durable key/value bookkeeping with per-entry TTL.
    Values are JSON-serializable; expired entries read as absent.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        pass

    @abstractmethod
    def set(self, key: str, value: Any, ttl: int) -> None:
        """Store value under key for ttl seconds (ttl <= 0 means no expiry)."""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass


class MemoryKeyValueStore(KeyValueStore):
    """Process-local store; expiry is judged against the injected clock."""

    def __init__(self, clock=None):
        self._clock = clock or SystemClock()
        self._data = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and self._clock.now() >= expires_at:
                del self._data[key]
                return None
            return json.loads(value)

    def set(self, key: str, value: Any, ttl: int) -> None:
        expires_at = self._clock.now() + timedelta(seconds=ttl) if ttl and ttl > 0 else None
        with self._lock:
            self._data[key] = (json.dumps(value), expires_at)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)


class SQLiteKeyValueStore(KeyValueStore):
    """SQLite-backed bookkeeping sharing the frontier's database file."""

    def __init__(self, connection: sqlite3.Connection, clock=None, table: str = "transients"):
        self._conn = connection
        self._clock = clock or SystemClock()
        self._table = table
        self._lock = threading.RLock()

    def _execute(self, sql, params=(), commit=False, fetch=None):
        """Returns fetched rows for fetch="one"/"all", else the cursor."""
        with self._lock:
            try:
                cursor = self._conn.execute(sql, params)
                if fetch == "one":
                    return cursor.fetchone()
                if fetch == "all":
                    return cursor.fetchall()
                if commit:
                    self._conn.commit()
                return cursor
            except sqlite3.Error as e:
                raise StoreError(f"SQLite bookkeeping operation failed: {e}") from e

    def initialize(self) -> None:
        self._execute(f"""
            CREATE TABLE IF NOT EXISTS {self._table} (
                name TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                expires_at TEXT
            )
        """, commit=True)

    def get(self, key: str) -> Optional[Any]:
        row = self._execute(
            f"SELECT value, expires_at FROM {self._table} WHERE name = ?", (key,), fetch="one"
        )
        if row is None:
            return None
        expires_at = parse_timestamp(row[1])
        if expires_at is not None and self._clock.now() >= expires_at:
            self.delete(key)
            return None
        return json.loads(row[0])

    def set(self, key: str, value: Any, ttl: int) -> None:
        expires_at = None
        if ttl and ttl > 0:
            expires_at = format_timestamp(self._clock.now() + timedelta(seconds=ttl))
        self._execute(
            f"INSERT OR REPLACE INTO {self._table} (name, value, expires_at) VALUES (?, ?, ?)",
            (key, json.dumps(value), expires_at),
            commit=True,
        )

    def delete(self, key: str) -> None:
        self._execute(f"DELETE FROM {self._table} WHERE name = ?", (key,), commit=True)


class MySQLKeyValueStore(KeyValueStore):
    """MySQL-backed bookkeeping; expiry is stored as naive UTC."""

    def __init__(self, connection, clock=None, table: str = "transients"):
        self._pool = connection
        self._clock = clock or SystemClock()
        self._table = table
        self._lock = threading.RLock()

    def _run(self, sql, params=(), fetch=False):
        with self._lock:
            try:
                with self._pool.cursor() as cursor:
                    cursor.execute(sql, params)
                    row = cursor.fetchone() if fetch else None
                self._pool.commit()
                return row
            except pymysql.MySQLError as e:
                self._pool.rollback()
                raise StoreError(f"MySQL bookkeeping operation failed: {e}") from e

    def _naive_utc_now(self):
        return parse_timestamp(format_timestamp(self._clock.now())).replace(tzinfo=None)

    def initialize(self) -> None:
        self._run(f"""
            CREATE TABLE IF NOT EXISTS {self._table} (
                name VARCHAR(191) NOT NULL PRIMARY KEY,
                value LONGTEXT NOT NULL,
                expires_at DATETIME(6) NULL
            ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4
        """)

    def get(self, key: str) -> Optional[Any]:
        row = self._run(
            f"SELECT value, expires_at FROM {self._table} WHERE name = %s", (key,), fetch=True
        )
        if not row:
            return None
        if row[1] is not None and self._naive_utc_now() >= row[1]:
            self.delete(key)
            return None
        return json.loads(row[0])

    def set(self, key: str, value: Any, ttl: int) -> None:
        expires_at = None
        if ttl and ttl > 0:
            expires_at = self._naive_utc_now() + timedelta(seconds=ttl)
        self._run(f"""
            INSERT INTO {self._table} (name, value, expires_at) VALUES (%s, %s, %s)
            ON DUPLICATE KEY UPDATE value = VALUES(value), expires_at = VALUES(expires_at)
        """, (key, json.dumps(value), expires_at))

    def delete(self, key: str) -> None:
        self._run(f"DELETE FROM {self._table} WHERE name = %s", (key,))
