"""
FILE DESCRIPTION: Crawl Driver. Orchestrates seeding, the fetch/rewrite/write loop and link discovery.
KEY FUNCTIONS/CLASSES: CrawlDriver, scan_static_files
"""

import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, List, Optional

from crawler.core import SEO_FILES, setup_logger
from crawler.fetcher import ContentSource, FetchError
from crawler.models import CrawlState, CrawlSummary, UrlFailure
from crawler.path_mapper import StaticFileWriter, WriteError
from crawler.policy import PathPolicy
from frontier.models import UrlRecord, UrlType
from frontier.orchestrator import Frontier
from rewriting.engine import ContentRewriter
from session.manager import CrawlSession

logger = setup_logger("crawler.engine")


def scan_static_files(document_root) -> List[str]:
    """Site paths of every copyable static file below document_root, sorted."""
    root = Path(document_root)
    paths = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
        for filename in sorted(filenames):
            if filename.startswith("."):
                continue
            relative = (Path(dirpath) / filename).relative_to(root).as_posix()
            site_path = "/" + relative
            if PathPolicy.is_copyable(site_path):
                paths.append(site_path)
    return paths


class CrawlDriver:
    """
    FLOW: SEEDED (front page + system files registered) ->
    RUNNING (unvisited record -> fetch -> discover -> rewrite -> write -> mark visited) ->
    DRAINED (no unvisited records remain).
    Per-URL FetchError/WriteError are recorded and skipped; StoreError aborts the crawl.
    """

    def __init__(
        self,
        frontier: Frontier,
        session: CrawlSession,
        source: ContentSource,
        writer: StaticFileWriter,
        rewriter: ContentRewriter,
        document_root=None,
        max_workers: int = 1,
        batch_size: int = 50,
    ):
        self.frontier = frontier
        self.session = session
        self.source = source
        self.writer = writer
        self.rewriter = rewriter
        self.document_root = document_root
        self.max_workers = max(1, int(max_workers or 1))
        self.batch_size = batch_size
        self.state: Optional[CrawlState] = None
        self._summary_lock = threading.Lock()

    def seed(self, system_paths: Optional[Iterable[str]] = None, static_root=None) -> List[UrlRecord]:
        """Registers the front page, system files and (optionally) document-root static files."""
        system_paths = SEO_FILES if system_paths is None else list(system_paths)
        inserted = self.frontier.register(["/"], None, UrlType.FRONT_PAGE)
        inserted += self.frontier.register(system_paths, None, UrlType.SEO_FILE)

        static_root = static_root or self.document_root
        if static_root:
            inserted += self.frontier.register(scan_static_files(static_root), None, UrlType.STATIC_FILE)

        self.state = CrawlState.SEEDED
        logger.info(f"[SEED] {len(inserted)} new URLs registered")
        return inserted

    def run(self) -> CrawlSummary:
        if self.state is None:
            self.seed()

        summary = CrawlSummary()
        start = time.time()
        start_time = self.session.get_start_time()
        self.state = CrawlState.RUNNING
        logger.info(f"[CRAWL] running (session={self.session.get_session_key()}, since={start_time.isoformat()})")

        done = set()
        executor = ThreadPoolExecutor(max_workers=self.max_workers) if self.max_workers > 1 else None
        try:
            while True:
                rows = self.frontier.unvisited(start_time, limit=self.batch_size)
                batch = [r for r in rows if r.path not in done]
                if not batch and rows:
                    # the window holds only records already handled in this run; look past it
                    batch = [r for r in self.frontier.unvisited(start_time)
                             if r.path not in done][:self.batch_size]
                if not batch:
                    break
                done.update(r.path for r in batch)

                if executor:
                    # result() re-raises StoreError from the worker
                    for future in [executor.submit(self.process, r, summary) for r in batch]:
                        future.result()
                else:
                    for record in batch:
                        self.process(record, summary)

                last = batch[-1]
                self.session.update_param(fetch_last_id=last.id, fetch_files=len(summary.written))
        finally:
            if executor:
                executor.shutdown(wait=True)

        self.state = CrawlState.DRAINED
        summary.elapsed_seconds = time.time() - start
        logger.info(
            f"[CRAWL] drained: processed={summary.processed} written={len(summary.written)} "
            f"discovered={summary.discovered} failed={summary.failed} in {summary.elapsed_seconds:.2f}s"
        )
        return summary

    def process(self, record: UrlRecord, summary: CrawlSummary) -> Optional[str]:
        """Handles one frontier record. Returns the written file, or None on a recorded failure."""
        if record.type is UrlType.STATIC_FILE:
            return self._copy_static(record, summary)

        try:
            result = self.source.fetch(record.path)
        except FetchError as e:
            self._record_failure(record, "FetchError", str(e), e.http_status, summary)
            return None

        discovered = []
        if PathPolicy.is_text_content(result.content_type):
            text = result.text()
            if record.type is not UrlType.ATTACHMENT:
                discovered = self.frontier.other_url(text, record.path)
            content = self.rewriter.rewrite(text)
        else:
            content = None

        try:
            data = result.body if content is None else result.encode(content)
            dest = self.writer.write(record.path, data)
        except (WriteError, UnicodeEncodeError) as e:
            self._record_failure(record, "WriteError", str(e), result.http_status, summary)
            return None

        self.frontier.mark_visited(record.path, dest or "", result.http_status)
        with self._summary_lock:
            summary.processed += 1
            summary.discovered += len(discovered)
            if dest:
                summary.written.append(dest)
        logger.info(f"[CRAWL] {record.path} -> {dest} ({len(discovered)} new links)")
        return dest

    def _copy_static(self, record: UrlRecord, summary: CrawlSummary) -> Optional[str]:
        try:
            if not self.document_root:
                raise WriteError(f"No document root configured for static file {record.path}")
            dest = self.writer.copy_static_file(record.path, self.document_root)
        except WriteError as e:
            self._record_failure(record, "WriteError", str(e), None, summary)
            return None

        self.frontier.mark_visited(record.path, dest, 200)
        with self._summary_lock:
            summary.processed += 1
            summary.written.append(dest)
        return dest

    def _record_failure(self, record: UrlRecord, error_type: str, message: str,
                        http_status: Optional[int], summary: CrawlSummary) -> None:
        logger.warning(f"[CRAWL] {error_type} for {record.path}: {message}")
        self.frontier.mark_failed(record.path, f"{error_type}: {message}", http_status)
        with self._summary_lock:
            summary.processed += 1
            summary.failures.append(UrlFailure(record.path, error_type, message, http_status))
