from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple


class UrlType(Enum):
    FRONT_PAGE = "front_page"
    SEO_FILE = "seo_file"
    OTHER_PAGE = "other_page"
    STATIC_FILE = "static_file"
    ATTACHMENT = "attachment"


@dataclass(frozen=True)
class UrlRecord:
    """
    Data model for a frontier URL.
    Invariants: path is unique across records; id and type never change after insert.
    """
    id: str
    type: UrlType
    path: str
    last_modified: datetime
    referrers: Tuple[str, ...] = ()
    file_name: str = ""
    last_statuscode: Optional[int] = None
    last_error: Optional[str] = None
    last_upload: Optional[datetime] = None
    create_date: Optional[datetime] = None

    @property
    def pages(self) -> int:
        return len(self.referrers)

    def is_visited(self, since: datetime) -> bool:
        return self.last_upload is not None and self.last_upload >= since
