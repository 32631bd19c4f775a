import json
import sqlite3
import threading
from datetime import datetime
from typing import Iterable, List, Optional

from crawler.clock import format_timestamp, parse_timestamp
from frontier.models import UrlRecord, UrlType
from frontier.storage import UrlStore, StoreError

_COLUMNS = (
    "id, type, url, referrers, file_name, last_statuscode, "
    "last_error, last_modified, last_upload, create_date"
)


class SQLiteUrlStore(UrlStore):
    """
    SQLite implementation of UrlStore.
    A single connection is shared by all workers and guarded by a lock;
    INSERT OR IGNORE on the UNIQUE url column makes create_if_absent atomic.
    """

    def __init__(self, connection: sqlite3.Connection):
        self._conn = connection
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
                if commit:
                    self._conn.rollback()
                raise StoreError(f"SQLite frontier operation failed: {e}") from e

    def initialize(self) -> None:
        self._execute("""
            CREATE TABLE IF NOT EXISTS urls (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                type TEXT NOT NULL,
                url TEXT UNIQUE NOT NULL,
                referrers TEXT NOT NULL DEFAULT '[]',
                file_name TEXT NOT NULL DEFAULT '',
                last_statuscode INTEGER,
                last_error TEXT,
                last_modified TEXT NOT NULL,
                last_upload TEXT,
                create_date TEXT NOT NULL
            )
        """, commit=True)

    def create_if_absent(
        self,
        path: str,
        url_type: UrlType,
        referrer: Optional[str],
        now: datetime
    ) -> Optional[UrlRecord]:
        stamp = format_timestamp(now)
        referrers = json.dumps([referrer] if referrer else [])
        with self._lock:
            cursor = self._execute("""
                INSERT OR IGNORE INTO urls (type, url, referrers, last_modified, create_date)
                VALUES (?, ?, ?, ?, ?)
            """, (url_type.value, path, referrers, stamp, stamp), commit=True)
            if cursor.rowcount == 0:
                return None
            return self.get(path)

    def add_referrer(self, path: str, referrer: str, now: datetime) -> bool:
        with self._lock:
            row = self._execute("SELECT referrers FROM urls WHERE url = ?", (path,), fetch="one")
            if row is None:
                return False
            referrers = json.loads(row[0] or "[]")
            referrers.append(referrer)
            self._execute(
                "UPDATE urls SET referrers = ?, last_modified = ? WHERE url = ?",
                (json.dumps(referrers), format_timestamp(now), path),
                commit=True,
            )
            return True

    def get(self, path: str) -> Optional[UrlRecord]:
        row = self._execute(f"SELECT {_COLUMNS} FROM urls WHERE url = ?", (path,), fetch="one")
        return self._row_to_record(row) if row else None

    def all(self) -> List[UrlRecord]:
        rows = self._execute(f"SELECT {_COLUMNS} FROM urls ORDER BY id ASC", fetch="all")
        return [self._row_to_record(row) for row in rows]

    def unvisited(self, since: datetime, limit: Optional[int] = None) -> List[UrlRecord]:
        sql = f"""
            SELECT {_COLUMNS} FROM urls
            WHERE last_upload IS NULL OR last_upload < ?
            ORDER BY id ASC
        """
        params = [format_timestamp(since)]
        if limit:
            sql += " LIMIT ?"
            params.append(limit)
        rows = self._execute(sql, params, fetch="all")
        return [self._row_to_record(row) for row in rows]

    def mark_processed(
        self,
        path: str,
        now: datetime,
        file_name: str = "",
        status: Optional[int] = None,
        error: Optional[str] = None
    ) -> bool:
        stamp = format_timestamp(now)
        cursor = self._execute("""
            UPDATE urls
            SET file_name = ?, last_statuscode = ?, last_error = ?,
                last_upload = ?, last_modified = ?
            WHERE url = ?
        """, (file_name or "", status, error, stamp, stamp, path), commit=True)
        return cursor.rowcount > 0

    def delete(self, paths: Iterable[str]) -> int:
        deleted = 0
        with self._lock:
            for path in paths:
                deleted += self._execute("DELETE FROM urls WHERE url = ?", (path,), commit=True).rowcount
        return deleted

    def _row_to_record(self, row) -> UrlRecord:
        return UrlRecord(
            id=str(row[0]),
            type=UrlType(row[1]),
            path=row[2],
            referrers=tuple(json.loads(row[3] or "[]")),
            file_name=row[4] or "",
            last_statuscode=row[5],
            last_error=row[6],
            last_modified=parse_timestamp(row[7]),
            last_upload=parse_timestamp(row[8]),
            create_date=parse_timestamp(row[9]),
        )
