import re
from typing import Optional
from urllib.parse import urlparse

from crawler.clock import SystemClock
from crawler.core import APP_NAME, APP_VERSION, setup_logger
from crawler.policy import DYNAMIC_LINK_RELS, REWRITE_ATTRIBUTES
from crawler.url_utils import site_host_of

logger = setup_logger("crawler.rewriting")

GENERATOR_SUFFIX = f" with {APP_NAME} ver.{APP_VERSION}"

# <meta name="generator" content="..."> in either attribute order
_GENERATOR_PATTERNS = (
    re.compile(
        r"(<meta\s+name\s*=\s*([\"'])generator\2\s+content\s*=\s*([\"']))(.*?)(\3)",
        re.IGNORECASE | re.DOTALL,
    ),
    re.compile(
        r"(<meta\s+content\s*=\s*([\"']))(.*?)(\2)(?=\s+name\s*=\s*([\"'])generator\5)",
        re.IGNORECASE | re.DOTALL,
    ),
)

_DYNAMIC_LINK_PATTERN = re.compile(
    r"[ \t]*<link\b[^>]*\brel\s*=\s*([\"'])(?:" + "|".join(DYNAMIC_LINK_RELS) + r")\1[^>]*>[ \t]*\r?\n?",
    re.IGNORECASE,
)

_DOCTYPE_PATTERN = re.compile(r"<!DOCTYPE\s+html[^>]*>", re.IGNORECASE)
_HTML_OPEN_PATTERN = re.compile(r"<html\b[^>]*>", re.IGNORECASE)


class ContentRewriter:
    """
    Rewrites a fetched document so it works when served from static_url.
    Invariants:
    - One regex pass per concern; a value is never rewritten twice.
    - Protocol-relative references (//host/...) come out byte-identical.
    - Bytes outside matched values are untouched unless an optional pass is enabled.
    """

    def __init__(
        self,
        site_url: str,
        static_url: str,
        clock=None,
        strip_dynamic_links: bool = False,
        stamp_last_modified: bool = False,
    ):
        self.site_host = site_host_of(site_url)
        self.static_url = static_url or "/"
        self._clock = clock or SystemClock()
        self.strip_dynamic_links = strip_dynamic_links
        self.stamp_last_modified = stamp_last_modified

        # Absolute same-host URLs take the base as configured (path or full URL);
        # attribute paths take only its path component
        self._absolute_base = self.static_url.rstrip("/")
        self._path_base = (urlparse(self.static_url).path or "/").rstrip("/")

        attributes = "|".join(REWRITE_ATTRIBUTES)
        self._uri_pattern = re.compile(
            r"(?P<attr>(?<![\w-])(?:" + attributes + r")\s*=\s*)(?P<q>[\"'])(?P<rel>/(?!/)[^\"']*)(?P=q)"
            r"|https?://" + re.escape(self.site_host) + r"(?![\w.:@-])(?P<abs>[^\s\"'<>]*)",
            re.IGNORECASE,
        )

    def rewrite(self, content: Optional[str]) -> Optional[str]:
        if content is None:
            return None
        if self.strip_dynamic_links:
            content = self.remove_link_tags(content)
        content = self.replace_relative_uri(content)
        content = self.rewrite_generator_tag(content)
        if self.stamp_last_modified:
            content = self.add_last_modified(content)
        return content

    def replace_relative_uri(self, content: str) -> str:
        """
        - http(s)://<site host>/path  -> <static base>/path  (anywhere in the document)
        - href|src|action="/path"     -> "<static path>/path"
        - "//other/path"              -> unchanged
        """
        if not self.site_host:
            return content
        return self._uri_pattern.sub(self._replace_match, content)

    def _replace_match(self, match) -> str:
        if match.group("attr") is not None:
            quote = match.group("q")
            return f"{match.group('attr')}{quote}{self._path_base}{match.group('rel')}{quote}"
        path = match.group("abs") or "/"
        if not path.startswith("/"):
            path = "/" + path
        return self._absolute_base + path

    def rewrite_generator_tag(self, content: str) -> str:
        """Appends GENERATOR_SUFFIX to the first generator meta tag, if any."""
        match = _GENERATOR_PATTERNS[0].search(content)
        if match:
            start, end = match.span(4)
        else:
            match = _GENERATOR_PATTERNS[1].search(content)
            if not match:
                return content
            start, end = match.span(3)
        value = content[start:end]
        return content[:start] + value + GENERATOR_SUFFIX + content[end:]

    def remove_link_tags(self, content: str) -> str:
        """Drops <link> tags that point back at the host platform's dynamic endpoints."""
        return _DYNAMIC_LINK_PATTERN.sub("", content)

    def add_last_modified(self, content: str) -> str:
        """Inserts a Last-Modified comment after the doctype (or <html>) of HTML documents."""
        stamp = self._clock.now().strftime("%Y-%m-%d %H:%M:%S")
        comment = f"\n<!-- Last-Modified: {stamp} by {APP_NAME} ver.{APP_VERSION} -->"
        match = _DOCTYPE_PATTERN.search(content) or _HTML_OPEN_PATTERN.search(content)
        if not match:
            return content
        return content[:match.end()] + comment + content[match.end():]


def rewrite(content: Optional[str], site_host: str, output_base_path: str) -> Optional[str]:
    """Generator tag + URI rewrite with the default passes only."""
    return ContentRewriter(site_host, output_base_path).rewrite(content)
