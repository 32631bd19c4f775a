"""
Centralized path policy for the static export.

All extension rules and link-exclusion rules live here. Other modules should
import PathPolicy instead of duplicating extension lists or ad-hoc checks.
"""

import re
from typing import Iterable

# Extensions whose final path segment is written as a literal file.
# Anything else (including dotted segments like "report.xlsx") is treated
# as a directory and gets a nested index.html.
STATIC_FILE_EXTENSIONS = (
    # Documents served by the host application
    "html", "htm", "php", "xml", "xsl", "txt", "json",
    # Styles/Scripts
    "css", "js",
    # Images
    "gif", "png", "jpg", "jpeg", "webp", "ico", "svg", "svgz",
    # Fonts
    "ttf", "otf", "woff", "woff2", "eot",
    # Archives / documents
    "gz", "zip", "pdf", "swf",
    # Video/Audio
    "mp3", "mp4", "mov", "wmv", "flv", "webm", "ogg", "oga", "ogv", "ogx", "spx", "opus",
)

# Server-side sources: rendered over HTTP, never copied from disk
SOURCE_EXTENSIONS = ("php",)

# Attributes scanned for outbound links
LINK_ATTRIBUTES = ("href", "src")

# Attributes whose site-relative values are prefixed with the output base
REWRITE_ATTRIBUTES = ("href", "src", "action")

# <link rel="..."> values pointing back at dynamic endpoints of the host platform
DYNAMIC_LINK_RELS = ("EditURI", "wlwmanifest", "shortlink", "pingback")

# Content types that are rewritten and scanned for links
TEXT_CONTENT_TYPES = ("text/", "application/xml", "application/xhtml", "application/rss",
                      "application/atom", "application/json", "application/javascript")


class PathPolicy:
    """
    Central policy for path classification.

    Methods:
    - has_static_extension(path): True if the last segment ends in a known extension
    - is_copyable(path): static file that may be copied from disk
    - dotted_segment(path): last segment contains a dot
    - excluded_references(path, parent): self/parent paths that never count as discoveries
    - is_text_content(content_type): True if the body should be rewritten and scanned
    """

    _EXTENSION_REGEX = re.compile(
        r"[^/]+\.(?:" + "|".join(re.escape(ext) for ext in STATIC_FILE_EXTENSIONS) + r")$",
        re.IGNORECASE,
    )

    @classmethod
    def has_static_extension(cls, path: str) -> bool:
        if not path or path.endswith("/"):
            return False
        return bool(cls._EXTENSION_REGEX.search(path))

    @classmethod
    def is_copyable(cls, path: str) -> bool:
        """Static files that may be copied verbatim from the document root (never scripts)."""
        if not cls.has_static_extension(path):
            return False
        return path.rsplit(".", 1)[-1].lower() not in SOURCE_EXTENSIONS

    @staticmethod
    def dotted_segment(path: str) -> bool:
        """True if the last segment contains a dot (used for mapping notes)."""
        segment = path.rstrip("/").rsplit("/", 1)[-1]
        return "." in segment

    @staticmethod
    def excluded_references(path: str, parent: str) -> Iterable[str]:
        """
        References that are never new discoveries for a page:
        the page itself and its parent directory.
        """
        return {path, parent}

    @staticmethod
    def is_text_content(content_type) -> bool:
        if not content_type:
            return True
        ct = content_type.lower()
        return any(ct.startswith(prefix) for prefix in TEXT_CONTENT_TYPES)
