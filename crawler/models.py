import codecs
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


_CHARSET_PATTERN = re.compile(r"charset\s*=\s*[\"']?([\w.:-]+)", re.IGNORECASE)


class CrawlState(Enum):
    SEEDED = "SEEDED"
    RUNNING = "RUNNING"
    DRAINED = "DRAINED"


@dataclass(frozen=True)
class FetchResult:
    """
    Output of a ContentSource.
    INVARIANT: This object is TRANSIENT; the body is never persisted to the frontier.
    """
    site_path: str
    body: bytes
    content_type: str = ""
    http_status: int = 200
    fetch_duration_ms: int = 0
    encoding: Optional[str] = None

    def charset(self) -> str:
        """Declared encoding (explicit, then Content-Type charset), UTF-8 otherwise."""
        candidate = self.encoding
        if not candidate:
            match = _CHARSET_PATTERN.search(self.content_type or "")
            candidate = match.group(1) if match else None
        if candidate:
            try:
                return codecs.lookup(candidate).name
            except LookupError:
                return "utf-8"
        return "utf-8"

    def text(self) -> str:
        # surrogateescape keeps undecodable bytes so encode() restores them exactly
        return self.body.decode(self.charset(), errors="surrogateescape")

    def encode(self, text: str) -> bytes:
        """Inverse of text(); raises UnicodeEncodeError for characters the charset lacks."""
        return text.encode(self.charset(), errors="surrogateescape")


@dataclass(frozen=True)
class UrlFailure:
    """A per-URL failure attributed to its frontier record."""
    path: str
    error_type: str
    message: str
    http_status: Optional[int] = None


@dataclass
class CrawlSummary:
    """Mutable tally built up while the driver runs."""
    processed: int = 0
    discovered: int = 0
    written: List[str] = field(default_factory=list)
    failures: List[UrlFailure] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def failed(self) -> int:
        return len(self.failures)
