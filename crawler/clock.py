"""
Time sources for the crawler.
Passed into CrawlSession, Frontier and CrawlDriver so tests can pin "now".
"""

from datetime import datetime, timedelta, timezone


class SystemClock:
    """Wall-clock time, timezone-aware UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """
    Clock frozen at a given instant.
    advance() moves it forward; handy for TTL and incremental-crawl tests.
    """

    def __init__(self, instant: datetime):
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        self._instant = instant

    def now(self) -> datetime:
        return self._instant

    def advance(self, seconds: float) -> datetime:
        self._instant = self._instant + timedelta(seconds=seconds)
        return self._instant


def format_timestamp(value: datetime) -> str:
    """UTC ISO-8601, so stored timestamps compare correctly as strings."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def parse_timestamp(value):
    """Inverse of format_timestamp; passes datetimes and None through."""
    if value is None or isinstance(value, datetime):
        if isinstance(value, datetime) and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
