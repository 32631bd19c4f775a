"""
Verification Scenarios for the MySQL-backed frontier and bookkeeping stores
"""

import json
import threading
import time
import unittest
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pymysql

from crawler.clock import FixedClock
from crawler.storage.db import get_mysql_connection
from frontier.models import UrlType
from frontier.mysql_storage import MySQLUrlStore
from frontier.storage import StoreError
from session.storage import MySQLKeyValueStore

NOW = datetime(2019, 12, 23, 12, 34, 56, tzinfo=timezone.utc)
NAIVE_NOW = datetime(2019, 12, 23, 12, 34, 56)


def url_row(path, referrers=("/",), last_upload=None):
    return (7, "other_page", path, json.dumps(list(referrers)), "", None, None,
            NAIVE_NOW, last_upload, NAIVE_NOW)


def peak_concurrency(cursor, calls):
    """Runs calls on threads while the cursor records how many executes overlap."""
    guard = threading.Lock()
    active = [0]
    peak = [0]

    def execute(sql, params=()):
        with guard:
            active[0] += 1
            peak[0] = max(peak[0], active[0])
        time.sleep(0.01)
        with guard:
            active[0] -= 1
        return 1

    cursor.execute.side_effect = execute
    threads = [threading.Thread(target=call) for call in calls]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return peak[0]


class TestMySQLUrlStore(unittest.TestCase):
    def setUp(self):
        self.mock_pool = MagicMock()
        self.mock_cursor = self.mock_pool.cursor.return_value.__enter__.return_value
        self.store = MySQLUrlStore(self.mock_pool)

    def test_create_if_absent_inserts(self):
        """Scenario: INSERT IGNORE affects one row, the new record is read back."""
        self.mock_cursor.execute.side_effect = [1, 1]
        self.mock_cursor.fetchone.return_value = url_row("/about/")

        record = self.store.create_if_absent("/about/", UrlType.OTHER_PAGE, "/", NOW)

        self.assertEqual(record.id, "7")
        self.assertEqual(record.path, "/about/")
        self.assertEqual(record.referrers, ("/",))
        self.assertEqual(record.last_modified, NOW)
        insert_sql, insert_params = self.mock_cursor.execute.call_args_list[0][0]
        self.assertIn("INSERT IGNORE", insert_sql)
        # DATETIME columns hold naive UTC
        self.assertEqual(insert_params[3], NAIVE_NOW)
        self.assertEqual(self.mock_pool.commit.call_count, 2)

    def test_create_if_absent_existing_path(self):
        """Scenario: the UNIQUE key swallowed the insert; no record is returned."""
        self.mock_cursor.execute.side_effect = [0]

        self.assertIsNone(self.store.create_if_absent("/about/", UrlType.OTHER_PAGE, "/", NOW))
        self.mock_cursor.fetchone.assert_not_called()

    def test_add_referrer_appends_json(self):
        self.mock_cursor.execute.return_value = 1

        self.assertTrue(self.store.add_referrer("/about/", "/contact/", NOW))
        sql, params = self.mock_cursor.execute.call_args[0]
        self.assertIn("JSON_ARRAY_APPEND", sql)
        self.assertEqual(params, ("/contact/", NAIVE_NOW, "/about/"))

    def test_unvisited_applies_limit(self):
        self.mock_cursor.fetchall.return_value = [url_row("/a/"), url_row("/b/")]

        records = self.store.unvisited(NOW, limit=2)

        self.assertEqual([r.path for r in records], ["/a/", "/b/"])
        sql, params = self.mock_cursor.execute.call_args[0]
        self.assertIn("LIMIT %s", sql)
        self.assertEqual(params, [NAIVE_NOW, 2])

    def test_delete_nothing_skips_the_database(self):
        self.assertEqual(self.store.delete([]), 0)
        self.mock_pool.cursor.assert_not_called()

    def test_driver_error_becomes_store_error(self):
        """Scenario: the server goes away mid-crawl; the caller sees StoreError and the transaction is rolled back."""
        self.mock_cursor.execute.side_effect = pymysql.err.OperationalError(2006, "MySQL server has gone away")

        with self.assertRaises(StoreError):
            self.store.get("/about/")
        self.mock_pool.rollback.assert_called_once()
        self.mock_pool.commit.assert_not_called()

    def test_datetime_columns_keep_microseconds(self):
        self.store.initialize()
        sql = self.mock_cursor.execute.call_args[0][0]
        self.assertEqual(sql.count("DATETIME(6)"), 3)

    def test_shared_connection_is_serialized(self):
        calls = [
            lambda i=i: self.store.mark_processed(f"/p{i}/", NOW, file_name="x", status=200)
            for i in range(6)
        ]
        self.assertEqual(peak_concurrency(self.mock_cursor, calls), 1)
        self.assertEqual(self.mock_pool.commit.call_count, 6)


class TestMySQLKeyValueStore(unittest.TestCase):
    def setUp(self):
        self.mock_pool = MagicMock()
        self.mock_cursor = self.mock_pool.cursor.return_value.__enter__.return_value
        self.clock = FixedClock(NOW)
        self.store = MySQLKeyValueStore(self.mock_pool, clock=self.clock)

    def test_set_upserts_with_expiry(self):
        self.store.set("static static", {"fetch_start_time": "x"}, 3600)

        sql, params = self.mock_cursor.execute.call_args[0]
        self.assertIn("ON DUPLICATE KEY UPDATE", sql)
        self.assertEqual(params[0], "static static")
        self.assertEqual(json.loads(params[1]), {"fetch_start_time": "x"})
        self.assertEqual(params[2], datetime(2019, 12, 23, 13, 34, 56))

    def test_get_live_entry(self):
        self.mock_cursor.fetchone.return_value = ('{"fetch_files": 3}', datetime(2019, 12, 23, 13, 0, 0))

        self.assertEqual(self.store.get("static static"), {"fetch_files": 3})

    def test_get_expired_entry_is_deleted(self):
        self.mock_cursor.fetchone.return_value = ('{"fetch_files": 3}', datetime(2019, 12, 23, 12, 0, 0))

        self.assertIsNone(self.store.get("static static"))
        sql, params = self.mock_cursor.execute.call_args[0]
        self.assertIn("DELETE", sql)
        self.assertEqual(params, ("static static",))

    def test_missing_entry(self):
        self.mock_cursor.fetchone.return_value = None
        self.assertIsNone(self.store.get("static static - 1"))

    def test_expiry_column_keeps_microseconds(self):
        self.store.initialize()
        self.assertIn("expires_at DATETIME(6)", self.mock_cursor.execute.call_args[0][0])

    def test_shared_connection_is_serialized(self):
        calls = [lambda i=i: self.store.set(f"static static - {i}", {"n": i}, 60) for i in range(6)]
        self.assertEqual(peak_concurrency(self.mock_cursor, calls), 1)


class TestMySQLConnection(unittest.TestCase):
    @patch("crawler.storage.db.pymysql.connect")
    def test_connect_failure_becomes_store_error(self, mock_connect):
        mock_connect.side_effect = pymysql.err.OperationalError(2003, "Can't connect to MySQL server")
        with self.assertRaises(StoreError):
            get_mysql_connection({"host": "db.invalid", "port": 3306})

    @patch("crawler.storage.db.pymysql.connect")
    def test_connect_passes_config(self, mock_connect):
        conn = get_mysql_connection({"host": "db", "port": 3306, "database": "mirror"})
        self.assertIs(conn, mock_connect.return_value)
        mock_connect.assert_called_once_with(host="db", port=3306, database="mirror")


if __name__ == "__main__":
    unittest.main()
