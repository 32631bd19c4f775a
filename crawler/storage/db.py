"""
Database connections for the frontier and session bookkeeping.
SQLite is the default backend; MySQL is used when STORE_BACKEND=mysql.
"""

import sqlite3
from pathlib import Path

import pymysql

from crawler.core import DB_CONFIG, SQLITE_PATH, logger
from frontier.storage import StoreError


def get_sqlite_connection(path=SQLITE_PATH):
    """
    Create and return a SQLite database connection.
    The connection is shared between worker threads; callers serialize access.
    """
    if path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), check_same_thread=False)
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def get_mysql_connection(config=None):
    """Creates a connection using DB_CONFIG unless overridden."""
    config = dict(config or DB_CONFIG)
    logger.info(f"[DB] connecting to MySQL {config.get('host')}:{config.get('port')}/{config.get('database')}")
    try:
        return pymysql.connect(**config)
    except pymysql.MySQLError as e:
        raise StoreError(f"MySQL connection failed: {e}") from e
