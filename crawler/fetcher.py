"""
Content sources for the crawler.
Given a site-relative path, return the rendered document and its content type.
The HTTP loopback source asks the live site for the page.
"""

import time
from abc import ABC, abstractmethod
from urllib.parse import urljoin

import requests

from crawler.core import USER_AGENT, REQUEST_TIMEOUT, VERIFY_SSL_CERTIFICATE, setup_logger
from crawler.models import FetchResult

logger = setup_logger("crawler.fetcher")


class FetchError(Exception):
    """Content source unreachable or errored for a given path."""

    def __init__(self, message: str, http_status: int = None):
        super().__init__(message)
        self.http_status = http_status


class ContentSource(ABC):
    """
    Abstraction over whatever renders the dynamic site.
    Implementations own their timeout policy.
    """

    @abstractmethod
    def fetch(self, site_path: str) -> FetchResult:
        """
        Return the raw document for site_path.
        Raises FetchError when the document cannot be produced.
        """
        pass


class HttpContentSource(ContentSource):
    """
    Loopback fetch against the live site.
    Only 2xx responses count as content; everything else is a FetchError.
    """

    def __init__(self, site_url: str, timeout: int = REQUEST_TIMEOUT,
                 verify: bool = VERIFY_SSL_CERTIFICATE, session: requests.Session = None):
        self.site_url = site_url if site_url.endswith("/") else site_url + "/"
        self.timeout = timeout
        self.verify = verify
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": USER_AGENT})

    def url_for(self, site_path: str) -> str:
        return urljoin(self.site_url, site_path.lstrip("/"))

    def fetch(self, site_path: str) -> FetchResult:
        url = self.url_for(site_path)
        start_time = time.time()
        try:
            r = self.session.get(
                url,
                timeout=self.timeout,
                verify=self.verify,
                allow_redirects=True,
            )
        except requests.exceptions.Timeout as e:
            raise FetchError(f"timeout fetching {url}") from e
        except requests.exceptions.ConnectionError as e:
            raise FetchError(f"connection error fetching {url}: {e}") from e
        except requests.exceptions.RequestException as e:
            raise FetchError(f"request error fetching {url}: {e}") from e

        fetch_time_ms = int((time.time() - start_time) * 1000)
        if not (200 <= r.status_code < 300):
            raise FetchError(f"HTTP {r.status_code} fetching {url}", http_status=r.status_code)

        logger.debug(f"[FETCH] {url} status={r.status_code} size={len(r.content)} time={fetch_time_ms}ms")
        return FetchResult(
            site_path=site_path,
            body=r.content,
            content_type=r.headers.get("Content-Type", ""),
            http_status=r.status_code,
            fetch_duration_ms=fetch_time_ms,
            encoding=r.encoding,
        )
