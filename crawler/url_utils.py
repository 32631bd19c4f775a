"""
URL canonicalization for the single site being exported.

normalize() decides same-host vs external and strips scheme+host;
canonical_path() turns the result into the frontier's dedup key.
"""

import posixpath
import re
from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlparse

from crawler.policy import PathPolicy


class UrlClass(Enum):
    SAME_HOST = "same_host"
    EXTERNAL = "external"


@dataclass(frozen=True)
class NormalizedUrl:
    """
    Result of normalize().
    value is a site path for SAME_HOST and the untouched input for EXTERNAL.
    """
    classification: UrlClass
    value: str

    @property
    def is_same_host(self) -> bool:
        return self.classification is UrlClass.SAME_HOST


def site_host_of(site: str) -> str:
    """
    Accepts either a bare host ("example.org", "example.org:8080")
    or a full site URL and returns the lowercased host[:port].
    """
    if not site:
        return ""
    if "://" in site or site.startswith("//"):
        return urlparse(site).netloc.lower()
    return site.split("/", 1)[0].lower()


def normalize(raw_url: str, site_host: str) -> NormalizedUrl:
    """
    Canonical form for a raw href:
    - empty -> "/"
    - protocol-relative (//host/...) -> EXTERNAL, untouched
    - absolute on site_host (case-insensitive) -> path component only
    - absolute elsewhere, mailto:, fragments, document-relative -> EXTERNAL, untouched
    - site-relative -> path without query / fragment
    """
    url = (raw_url or "").strip()
    if not url:
        return NormalizedUrl(UrlClass.SAME_HOST, "/")

    if url.startswith("//"):
        return NormalizedUrl(UrlClass.EXTERNAL, raw_url)

    if url.startswith("/"):
        path = urlparse(url).path or "/"
        return NormalizedUrl(UrlClass.SAME_HOST, path)

    parsed = urlparse(url)
    if parsed.scheme in ("http", "https") and parsed.netloc:
        if parsed.netloc.lower() == site_host_of(site_host):
            return NormalizedUrl(UrlClass.SAME_HOST, parsed.path or "/")

    return NormalizedUrl(UrlClass.EXTERNAL, raw_url)


_ENCODED_DOT = re.compile(r"%2e", re.IGNORECASE)


def resolve_dot_segments(path: str) -> str:
    """
    Removes "." and ".." segments and empty segments; never climbs above "/".
    "/a/../b/" -> "/b/", "/../../x/" -> "/x/", "/a/." -> "/a/".
    """
    path = _ENCODED_DOT.sub(".", path)
    segments = []
    for segment in path.split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if segments:
                segments.pop()
            continue
        segments.append(segment)
    resolved = "/" + "/".join(segments)
    last = path.rsplit("/", 1)[-1]
    if segments and (path.endswith("/") or last in (".", "..")):
        resolved += "/"
    return resolved


def canonicalize_path(path: str) -> str:
    """Resolves dot segments and appends the trailing slash to paths without a recognized extension."""
    path = (path or "").strip() or "/"
    if not path.startswith("/"):
        path = "/" + path
    path = resolve_dot_segments(path)
    if not PathPolicy.has_static_extension(path) and not path.endswith("/"):
        path = path + "/"
    return path


def canonical_path(raw_url: str, site_host: str = ""):
    """
    Dedup key for a same-host reference, or None for external ones.
    "http://example.org/test" -> "/test/", "/test.php" -> "/test.php",
    "/test.xlsx" -> "/test.xlsx/".
    """
    normalized = normalize(raw_url, site_host)
    if not normalized.is_same_host:
        return None
    return canonicalize_path(normalized.value)


def parent_path(path: str) -> str:
    """Parent directory of a canonical path; "/" is its own parent."""
    stripped = path.rstrip("/")
    if not stripped:
        return "/"
    parent = posixpath.dirname(stripped)
    if parent in ("", "/"):
        return "/"
    return parent + "/"


def ancestor_paths(path: str):
    """
    Directory ancestors of a page, nearest first, excluding the root.
    "/a/b/index.html" -> ["/a/b/", "/a/"]
    """
    ancestors = []
    current = parent_path(path)
    while current != "/":
        ancestors.append(current)
        current = parent_path(current)
    return ancestors
