from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable, List, Optional
from frontier.models import UrlRecord, UrlType


class StoreError(Exception):
    """Frontier or bookkeeping persistence unavailable. Fatal to the crawl."""
    pass


class UrlStore(ABC):
    """
    Abstract interface for the persisted URL table.
    Ensures one row per canonical path; create_if_absent is the only insert path.
    All backend failures surface as StoreError.
    """

    @abstractmethod
    def initialize(self) -> None:
        """Create the urls table if it does not exist."""
        pass

    @abstractmethod
    def create_if_absent(
        self,
        path: str,
        url_type: UrlType,
        referrer: Optional[str],
        now: datetime
    ) -> Optional[UrlRecord]:
        """
        Atomically insert a record ONLY if path does not exist.
        Returns the new record, or None if the path was already present.
        """
        pass

    @abstractmethod
    def add_referrer(self, path: str, referrer: str, now: datetime) -> bool:
        """Append referrer to an existing record. Returns False if path is unknown."""
        pass

    @abstractmethod
    def get(self, path: str) -> Optional[UrlRecord]:
        pass

    @abstractmethod
    def all(self) -> List[UrlRecord]:
        """Every record in insertion order."""
        pass

    @abstractmethod
    def unvisited(self, since: datetime, limit: Optional[int] = None) -> List[UrlRecord]:
        """Records never processed, or last processed before since, in insertion order."""
        pass

    @abstractmethod
    def mark_processed(
        self,
        path: str,
        now: datetime,
        file_name: str = "",
        status: Optional[int] = None,
        error: Optional[str] = None
    ) -> bool:
        """Stamp last_upload and the outcome of processing path."""
        pass

    @abstractmethod
    def delete(self, paths: Iterable[str]) -> int:
        pass
