"""
Crawl session bookkeeping.
Remembers when the current export started, per initiating actor, so repeated
invocations can tell already-processed URLs from ones still to do.
"""

from datetime import datetime
from typing import Any, Dict

from crawler.clock import SystemClock, format_timestamp, parse_timestamp
from crawler.core import SESSION_TTL, setup_logger
from session.models import ANONYMOUS, SessionContext
from session.storage import KeyValueStore

logger = setup_logger("crawler.session")

SESSION_KEY_BASE = "static static"


def session_key(context: SessionContext = ANONYMOUS) -> str:
    if context is None or context.is_anonymous:
        return SESSION_KEY_BASE
    return f"{SESSION_KEY_BASE} - {context.actor_id}"


class CrawlSession:
    """
    Invariants:
    - The session key depends only on the context passed in.
    - start_time is written once per session and never mutated afterwards.
    """

    def __init__(self, store: KeyValueStore, context: SessionContext = ANONYMOUS,
                 clock=None, ttl: int = SESSION_TTL):
        self._store = store
        self._context = context or ANONYMOUS
        self._clock = clock or SystemClock()
        self._ttl = ttl

    def get_session_key(self) -> str:
        return session_key(self._context)

    def get_param(self) -> Dict[str, Any]:
        value = self._store.get(self.get_session_key())
        return dict(value) if isinstance(value, dict) else {}

    def update_param(self, **values) -> Dict[str, Any]:
        param = self.get_param()
        param.update(values)
        self._store.set(self.get_session_key(), param, self._ttl)
        return param

    def get_start_time(self) -> datetime:
        param = self.get_param()
        if param.get("fetch_start_time"):
            return parse_timestamp(param["fetch_start_time"])

        now = self._clock.now()
        param["fetch_start_time"] = format_timestamp(now)
        self._store.set(self.get_session_key(), param, self._ttl)
        logger.info(f"[SESSION] {self.get_session_key()} started at {param['fetch_start_time']}")
        return now

    def clear(self) -> None:
        """Ends the session; the next get_start_time() opens a new one."""
        self._store.delete(self.get_session_key())
        logger.info(f"[SESSION] {self.get_session_key()} cleared")
