"""Configuration loading for crawl runs."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

from dotenv import load_dotenv

from deepcrawl.errors import ConfigurationError
from deepcrawl.oracle import DEFAULT_MODEL

KEY_SEPARATORS_RE = re.compile(r"[\n,|\s]+")
# Anything this short is a paste artifact, not an API key
MIN_KEY_LENGTH = 20


@dataclass(slots=True)
class CrawlConfig:
    """Holds the options for a single crawl run."""

    url: str
    api_keys: Tuple[str, ...] = field(default_factory=tuple)
    max_depth: int = 3
    max_pages: int = 100
    delay: float = 5.0
    include_assets: bool = True
    model: str = DEFAULT_MODEL
    timeout: float = 30.0

    def validate(self) -> None:
        if not self.url:
            raise ConfigurationError("A start URL is required.")
        if self.max_depth < 1:
            raise ConfigurationError(f"max_depth must be at least 1, got {self.max_depth}")
        if self.max_pages < 1:
            raise ConfigurationError(f"max_pages must be at least 1, got {self.max_pages}")
        if self.delay < 0:
            raise ConfigurationError(f"delay must not be negative, got {self.delay}")


def parse_api_keys(text: Optional[str]) -> Tuple[str, ...]:
    """Split a pasted key list on commas, pipes, whitespace or newlines."""
    if not text:
        return ()
    keys = (k.strip() for k in KEY_SEPARATORS_RE.split(text))
    return tuple(k for k in keys if len(k) > MIN_KEY_LENGTH)


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from exc


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from exc


def load_configuration(
    url: str,
    *,
    api_keys: Optional[Sequence[str]] = None,
    max_depth: Optional[int] = None,
    max_pages: Optional[int] = None,
    delay: Optional[float] = None,
    include_assets: bool = True,
    model: Optional[str] = None,
) -> CrawlConfig:
    """Builds a ``CrawlConfig`` from CLI input and environment variables."""

    load_dotenv()  # Loads .env values if present

    keys = tuple(api_keys) if api_keys else parse_api_keys(os.getenv("DEEPCRAWL_API_KEYS"))

    config = CrawlConfig(
        url=url.strip(),
        api_keys=keys,
        max_depth=max_depth if max_depth is not None else _env_int("DEEPCRAWL_MAX_DEPTH", 3),
        max_pages=max_pages if max_pages is not None else _env_int("DEEPCRAWL_MAX_PAGES", 100),
        delay=delay if delay is not None else _env_float("DEEPCRAWL_DELAY", 5.0),
        include_assets=include_assets,
        model=model or os.getenv("DEEPCRAWL_MODEL") or DEFAULT_MODEL,
    )
    config.validate()
    return config
