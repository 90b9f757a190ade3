"""
Content-type guessing from URL suffixes.
"""
from __future__ import annotations

from enum import Enum
from typing import Tuple
from urllib.parse import urlparse


class ContentType(str, Enum):
    HTML = "text/html"
    JSON = "application/json"
    JPEG = "image/jpeg"
    PNG = "image/png"
    CSS = "text/css"
    JAVASCRIPT = "application/javascript"
    PDF = "application/pdf"
    OTHER = "other"


# Checked in order; the first matching suffix wins
SUFFIX_TYPES: Tuple[Tuple[Tuple[str, ...], ContentType], ...] = (
    ((".jpg", ".jpeg", ".gif", ".webp"), ContentType.JPEG),
    ((".png",), ContentType.PNG),
    ((".js",), ContentType.JAVASCRIPT),
    ((".css",), ContentType.CSS),
    ((".pdf",), ContentType.PDF),
    ((".json",), ContentType.JSON),
)


def guess_content_type(url: str) -> ContentType:
    """Map a URL to a content category by its path suffix, defaulting to HTML."""
    path_lower = (urlparse(url or "").path or "").lower()
    for suffixes, content_type in SUFFIX_TYPES:
        if path_lower.endswith(suffixes):
            return content_type
    return ContentType.HTML


def is_html(url: str) -> bool:
    """Check if a URL would be treated as an expandable HTML page."""
    return guess_content_type(url) is ContentType.HTML
