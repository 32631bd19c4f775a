import json
import threading
from datetime import datetime, timezone
from typing import Iterable, List, Optional

import pymysql

from crawler.clock import parse_timestamp
from frontier.models import UrlRecord, UrlType
from frontier.storage import UrlStore, StoreError

_COLUMNS = (
    "id, type, url, referrers, file_name, last_statuscode, "
    "last_error, last_modified, last_upload, create_date"
)


def _utc(value: datetime) -> datetime:
    # DATETIME columns are naive; store UTC
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class MySQLUrlStore(UrlStore):
    """
    MySQL implementation of UrlStore.
    Uses InnoDB with a UNIQUE url column; INSERT IGNORE is the atomic create-if-absent.
    The connection is shared by all workers, so every round trip holds the store lock.
    """

    def __init__(self, connection, table: str = "urls"):
        self._pool = connection
        self._table = table
        self._lock = threading.RLock()

    def _run(self, sql, params=(), fetch=None):
        with self._lock:
            try:
                with self._pool.cursor() as cursor:
                    affected = cursor.execute(sql, params)
                    if fetch == "one":
                        result = cursor.fetchone()
                    elif fetch == "all":
                        result = cursor.fetchall()
                    else:
                        result = affected
                self._pool.commit()
                return result
            except pymysql.MySQLError as e:
                self._pool.rollback()
                raise StoreError(f"MySQL frontier operation failed: {e}") from e

    def initialize(self) -> None:
        self._run(f"""
            CREATE TABLE IF NOT EXISTS {self._table} (
                id BIGINT UNSIGNED NOT NULL AUTO_INCREMENT PRIMARY KEY,
                type VARCHAR(32) NOT NULL,
                url VARCHAR(767) NOT NULL,
                referrers JSON NOT NULL,
                file_name VARCHAR(1024) NOT NULL DEFAULT '',
                last_statuscode INT NULL,
                last_error TEXT NULL,
                last_modified DATETIME(6) NOT NULL,
                last_upload DATETIME(6) NULL,
                create_date DATETIME(6) NOT NULL,
                UNIQUE KEY uniq_url (url)
            ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4
        """)

    def create_if_absent(
        self,
        path: str,
        url_type: UrlType,
        referrer: Optional[str],
        now: datetime
    ) -> Optional[UrlRecord]:
        sql = f"""
            INSERT IGNORE INTO {self._table} (type, url, referrers, last_modified, create_date)
            VALUES (%s, %s, %s, %s, %s)
        """
        stamp = _utc(now)
        referrers = json.dumps([referrer] if referrer else [])
        with self._lock:
            affected = self._run(sql, (url_type.value, path, referrers, stamp, stamp))
            if not affected:
                return None
            return self.get(path)

    def add_referrer(self, path: str, referrer: str, now: datetime) -> bool:
        sql = f"""
            UPDATE {self._table}
            SET referrers = JSON_ARRAY_APPEND(referrers, '$', %s), last_modified = %s
            WHERE url = %s
        """
        return self._run(sql, (referrer, _utc(now), path)) > 0

    def get(self, path: str) -> Optional[UrlRecord]:
        sql = f"SELECT {_COLUMNS} FROM {self._table} WHERE url = %s"
        row = self._run(sql, (path,), fetch="one")
        return self._row_to_record(row) if row else None

    def all(self) -> List[UrlRecord]:
        sql = f"SELECT {_COLUMNS} FROM {self._table} ORDER BY id ASC"
        return [self._row_to_record(row) for row in self._run(sql, fetch="all")]

    def unvisited(self, since: datetime, limit: Optional[int] = None) -> List[UrlRecord]:
        sql = f"""
            SELECT {_COLUMNS} FROM {self._table}
            WHERE last_upload IS NULL OR last_upload < %s
            ORDER BY id ASC
        """
        params = [_utc(since)]
        if limit:
            sql += " LIMIT %s"
            params.append(limit)
        return [self._row_to_record(row) for row in self._run(sql, params, fetch="all")]

    def mark_processed(
        self,
        path: str,
        now: datetime,
        file_name: str = "",
        status: Optional[int] = None,
        error: Optional[str] = None
    ) -> bool:
        sql = f"""
            UPDATE {self._table}
            SET file_name = %s, last_statuscode = %s, last_error = %s,
                last_upload = %s, last_modified = %s
            WHERE url = %s
        """
        stamp = _utc(now)
        return self._run(sql, (file_name or "", status, error, stamp, stamp, path)) > 0

    def delete(self, paths: Iterable[str]) -> int:
        paths = list(paths)
        if not paths:
            return 0
        placeholders = ", ".join(["%s"] * len(paths))
        return self._run(f"DELETE FROM {self._table} WHERE url IN ({placeholders})", paths)

    def _row_to_record(self, row) -> UrlRecord:
        referrers = row[3]
        if isinstance(referrers, (str, bytes)):
            referrers = json.loads(referrers or "[]")
        return UrlRecord(
            id=str(row[0]),
            type=UrlType(row[1]),
            path=row[2],
            referrers=tuple(referrers or ()),
            file_name=row[4] or "",
            last_statuscode=row[5],
            last_error=row[6],
            last_modified=parse_timestamp(row[7]),
            last_upload=parse_timestamp(row[8]),
            create_date=parse_timestamp(row[9]),
        )
