"""
URL normalization used as the node identity.
"""
from __future__ import annotations

from typing import Optional
from urllib.parse import urldefrag, urljoin, urlparse, urlunparse


def normalize_url(url: str, base: Optional[str] = None) -> str:
    """
    Normalize URL for deduplication and comparison.

    - Joins relative URLs against base
    - Drops fragments (#...)
    - Normalizes scheme/host case
    - Removes default ports (:80, :443)
    - Keeps querystrings (they matter for uniqueness)

    Non-HTTP links (mailto:, tel:, ...) are returned stripped but otherwise untouched.
    """
    url = (url or "").strip()
    joined = urljoin(base, url) if base else url
    parsed = urlparse(joined)

    if parsed.scheme.lower() not in ("http", "https"):
        return url

    joined, _ = urldefrag(joined)
    parsed = urlparse(joined)

    # Normalize hostname and port
    scheme = parsed.scheme.lower()
    hostname = (parsed.hostname or "").lower()
    try:
        port = parsed.port
    except ValueError:
        port = None

    if (scheme == "http" and port == 80) or (scheme == "https" and port == 443):
        netloc = hostname
    elif port:
        netloc = f"{hostname}:{port}"
    else:
        netloc = hostname

    return urlunparse((
        scheme,
        netloc,
        parsed.path or "/",
        parsed.params,
        parsed.query,
        ""  # No fragment
    ))
