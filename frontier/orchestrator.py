"""
Frontier Store: the dedup-aware record of every URL the export has seen.
Wraps a UrlStore with canonicalization, referrer bookkeeping and link discovery.
"""

import re
import threading
from datetime import datetime
from typing import Iterable, List, Optional

from crawler.clock import SystemClock
from crawler.core import setup_logger
from crawler.policy import LINK_ATTRIBUTES, PathPolicy
from crawler.url_utils import (
    ancestor_paths,
    canonical_path,
    canonicalize_path,
    normalize,
    parent_path,
)
from frontier.models import UrlRecord, UrlType
from frontier.storage import UrlStore

logger = setup_logger("crawler.frontier")

# href="..." / src='...'; attribute name case-insensitive, quoted value exact
LINK_PATTERN = re.compile(
    r"(?<![\w-])(?:" + "|".join(LINK_ATTRIBUTES) + r")\s*=\s*(?:\"([^\"]*)\"|'([^']*)')",
    re.IGNORECASE,
)


def extract_links(content: str) -> List[str]:
    """Every quoted link attribute value, in document order, duplicates removed."""
    if not content:
        return []
    seen = set()
    links = []
    for match in LINK_PATTERN.finditer(content):
        value = match.group(1) if match.group(1) is not None else match.group(2)
        if value not in seen:
            seen.add(value)
            links.append(value)
    return links


class Frontier:
    """
    Deduplication Rule: one record per canonical path, enforced by an atomic
    check-then-insert (lock here, UNIQUE column in the store).
    """

    def __init__(self, store: UrlStore, site_host: str, clock=None, register_ancestors: bool = True):
        self._store = store
        self._site_host = site_host
        self._clock = clock or SystemClock()
        self._register_ancestors = register_ancestors
        self._lock = threading.Lock()

    @property
    def store(self) -> UrlStore:
        return self._store

    def _canonical(self, path: str) -> Optional[str]:
        return canonical_path(path, self._site_host)

    def register(
        self,
        candidate_paths: Iterable[str],
        referrer_path: Optional[str] = None,
        url_type: UrlType = UrlType.OTHER_PAGE
    ) -> List[UrlRecord]:
        """
        Insert every candidate not yet present; existing ones only gain the referrer.
        Returns the records inserted by this call, in candidate order.
        """
        inserted = []
        for candidate in candidate_paths:
            path = self._canonical(candidate)
            if path is None:
                logger.debug(f"register: skipped external candidate {candidate}")
                continue
            with self._lock:
                now = self._clock.now()
                record = self._store.create_if_absent(path, url_type, referrer_path, now)
                if record is None:
                    if referrer_path:
                        self._store.add_referrer(path, referrer_path, now)
                    continue
            inserted.append(record)
            logger.info(f"register: {path} (type={url_type.value}, referrer={referrer_path}, id={record.id})")
        return inserted

    def update_url(self, rows: Iterable[dict]) -> List[UrlRecord]:
        """
        Bulk upsert from rows like {"url": "/", "type": "front_page", "referrer": None}.
        "type" defaults to other_page.
        """
        inserted = []
        for row in rows:
            url_type = row.get("type") or UrlType.OTHER_PAGE
            if not isinstance(url_type, UrlType):
                url_type = UrlType(url_type)
            inserted += self.register([row["url"]], row.get("referrer"), url_type)
        return inserted

    def exists(self, path: str) -> bool:
        canonical = self._canonical(path)
        if canonical is None:
            return False
        return self._store.get(canonical) is not None

    def get(self, path: str) -> Optional[UrlRecord]:
        canonical = self._canonical(path)
        return self._store.get(canonical) if canonical else None

    def all(self) -> List[UrlRecord]:
        return self._store.all()

    def other_url(self, content: str, referring_path: str) -> List[str]:
        """
        Discover pages linked from content.
        - ancestor directories of the referring page are candidates
        - external links are dropped
        - links back to the page itself or its parent directory are dropped
        Returns exactly the paths inserted by this call.
        """
        referring = canonicalize_path(referring_path)
        excluded = PathPolicy.excluded_references(referring, parent_path(referring))

        candidates = []
        if self._register_ancestors:
            candidates.extend(ancestor_paths(referring))

        for link in extract_links(content):
            normalized = normalize(link, self._site_host)
            if not normalized.is_same_host:
                continue
            path = canonicalize_path(normalized.value)
            if path in excluded:
                continue
            candidates.append(path)

        unseen = []
        for path in candidates:
            if path not in unseen:
                unseen.append(path)

        inserted = self.register(unseen, referring)
        return [record.path for record in inserted]

    def delete_url(self, paths: Iterable[str]) -> int:
        canonical = [p for p in (self._canonical(path) for path in paths) if p]
        return self._store.delete(canonical)

    def unvisited(self, since: datetime, limit: Optional[int] = None) -> List[UrlRecord]:
        return self._store.unvisited(since, limit)

    def next_unvisited(self, since: datetime) -> Optional[UrlRecord]:
        records = self._store.unvisited(since, limit=1)
        return records[0] if records else None

    def unvisited_count(self, since: datetime) -> int:
        return len(self._store.unvisited(since))

    def mark_visited(self, path: str, file_name: str = "", status: Optional[int] = 200) -> None:
        self._store.mark_processed(path, self._clock.now(), file_name=file_name, status=status)

    def mark_failed(self, path: str, error: str, status: Optional[int] = None) -> None:
        """Attribute a per-URL failure to its record; the record counts as visited."""
        self._store.mark_processed(path, self._clock.now(), file_name="", status=status, error=error)
