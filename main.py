"""
Entry point for the static export.
Builds the stores from configuration, seeds the frontier, runs the crawl to completion
and prints a summary.
"""

import sys
import argparse

from crawler.clock import SystemClock
from crawler.core import (
    DOCUMENT_ROOT,
    DUMP_DIRECTORY,
    MAX_WORKERS,
    SEO_FILES,
    SITE_URL,
    SQLITE_PATH,
    STAMP_LAST_MODIFIED,
    STATIC_URL,
    STORE_BACKEND,
    STRIP_DYNAMIC_LINKS,
    logger,
)
from crawler.engine import CrawlDriver
from crawler.fetcher import HttpContentSource
from crawler.path_mapper import StaticFileWriter
from crawler.storage.db import get_mysql_connection, get_sqlite_connection
from crawler.url_utils import site_host_of
from frontier.orchestrator import Frontier
from frontier.storage import StoreError
from rewriting.engine import ContentRewriter
from session.manager import CrawlSession
from session.models import SessionContext


def build_stores(backend: str, clock):
    """Returns (UrlStore, KeyValueStore) for the configured backend, schema ensured."""
    if backend == "mysql":
        from frontier.mysql_storage import MySQLUrlStore
        from session.storage import MySQLKeyValueStore
        # each store serializes its own connection
        url_store = MySQLUrlStore(get_mysql_connection())
        kv_store = MySQLKeyValueStore(get_mysql_connection(), clock=clock)
    elif backend == "sqlite":
        from frontier.sqlite_storage import SQLiteUrlStore
        from session.storage import SQLiteKeyValueStore
        connection = get_sqlite_connection(SQLITE_PATH)
        url_store = SQLiteUrlStore(connection)
        kv_store = SQLiteKeyValueStore(connection, clock=clock)
    else:
        raise ValueError(f"Unknown store backend: {backend}")
    url_store.initialize()
    kv_store.initialize()
    return url_store, kv_store


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Export a dynamic site as static files.")
    parser.add_argument("--site-url", default=SITE_URL, help="URL of the live site")
    parser.add_argument("--static-url", default=STATIC_URL, help="Base URL or path the export is served from")
    parser.add_argument("--dump-dir", default=str(DUMP_DIRECTORY), help="Output directory")
    parser.add_argument("--document-root", default=DOCUMENT_ROOT, help="Copy static files from this directory")
    parser.add_argument("--seo-files", default=",".join(SEO_FILES), help="Comma separated system files to seed")
    parser.add_argument("--store", default=STORE_BACKEND, choices=("sqlite", "mysql"))
    parser.add_argument("--actor", default=None, help="Identifier of the user running the export")
    parser.add_argument("--workers", type=int, default=MAX_WORKERS)
    parser.add_argument("--new-session", action="store_true", help="Forget the previous session and recrawl everything")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    clock = SystemClock()

    try:
        url_store, kv_store = build_stores(args.store, clock)
    except StoreError as e:
        logger.error(f"[DB] store unavailable: {e}")
        return 1

    session = CrawlSession(kv_store, SessionContext(args.actor), clock=clock)
    if args.new_session:
        session.clear()

    frontier = Frontier(url_store, site_host_of(args.site_url), clock=clock)
    driver = CrawlDriver(
        frontier,
        session,
        HttpContentSource(args.site_url),
        StaticFileWriter(args.dump_dir),
        ContentRewriter(
            args.site_url,
            args.static_url,
            clock=clock,
            strip_dynamic_links=STRIP_DYNAMIC_LINKS,
            stamp_last_modified=STAMP_LAST_MODIFIED,
        ),
        document_root=args.document_root,
        max_workers=args.workers,
    )

    seo_files = [p.strip() for p in args.seo_files.split(",") if p.strip()]
    try:
        driver.seed(system_paths=seo_files)
        summary = driver.run()
    except StoreError as e:
        logger.error(f"[CRAWL] aborted: {e}")
        return 1

    print("\n" + "=" * 60)
    print("EXPORT COMPLETED")
    print("=" * 60)
    print(f"Total time: {summary.elapsed_seconds:.2f} seconds")
    print(f"URLs processed: {summary.processed}")
    print(f"Files written: {len(summary.written)}")
    print(f"New URLs discovered: {summary.discovered}")
    print(f"Failures: {summary.failed}")
    for failure in summary.failures:
        print(f"  {failure.path}: {failure.error_type} {failure.message}")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
