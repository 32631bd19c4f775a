from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class SessionContext:
    """
    The actor that initiated a crawl.
    Passed explicitly into CrawlSession and CrawlDriver; anonymous actors share one session.
    """
    actor_id: Optional[str] = None

    @property
    def is_anonymous(self) -> bool:
        return self.actor_id in (None, "", 0, "0")


ANONYMOUS = SessionContext()
