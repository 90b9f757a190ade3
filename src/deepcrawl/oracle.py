"""
Oracle access: asks a generative model which links a page contains.

The oracle is reached through a transport object exposing
``generate(credential, prompt, json_mode=False) -> str``. ``OracleClient``
wraps a transport with per-credential retries and credential rotation on
quota exhaustion.
"""
from __future__ import annotations

import json
import logging
import random
import re
import time
from typing import Any, Callable, List, Optional, Protocol, Sequence, Tuple, Type

import requests

from deepcrawl.content import guess_content_type, is_html
from deepcrawl.errors import (
    ConfigurationError,
    FaultKind,
    OracleAPIError,
    QuotaExceeded,
    TransientFault,
    classify_fault,
    fault_status,
)
from deepcrawl.models import DiscoverySource, LinkNode, LinkType
from deepcrawl.urls import normalize_url

logger = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-2.0-flash"

MAX_ATTEMPTS = 3
QUOTA_COOLDOWN_S = 10.0
BACKOFF_BASE_S = 2.0

CODE_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)

EXPAND_PROMPT = """\
Role: Advanced Web Scraper.
Task: You are currently visiting the page: "{page_url}".
Root Website: "{root_url}".
Current depth: {depth}.

Action: Extract visible links, hidden assets, and API calls found specifically on THIS page.

Constraints:
1. Return 4-8 realistic links that would plausibly exist on this specific page.
2. Context awareness: if the URL is "site.com/blog", return specific blog posts. If "site.com/contact", return mailto or maps.
3. Include internal navigation links (href), external social links (only if realistic) and resource links (src) such as main.css, app.js, logo.png.
4. Do NOT simply list the root URL. List CHILDREN or RELATIVE siblings.

Output Format (JSON Array only):
[
  {{
    "url": "absolute_url",
    "title": "link_text_or_filename",
    "type": "internal" | "external" | "resource",
    "status": "200" | "404" | "500",
    "discoverySource": "anchor" | "img_src" | "script_src" | "api_call"
  }}
]
"""


class OracleTransport(Protocol):
    def generate(self, credential: str, prompt: str, json_mode: bool = False) -> str:
        ...


class GeminiTransport:
    """Calls the Generative Language REST API with a per-call API key."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
        base_url: str = GEMINI_BASE_URL,
    ) -> None:
        self.model = model
        self.timeout = timeout
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def generate(self, credential: str, prompt: str, json_mode: bool = False) -> str:
        body: dict = {"contents": [{"parts": [{"text": prompt}]}]}
        if json_mode:
            body["generationConfig"] = {"responseMimeType": "application/json"}

        resp = self.session.post(
            self.endpoint,
            json=body,
            headers={"x-goog-api-key": credential},
            timeout=self.timeout,
        )
        if resp.status_code >= 400:
            raise _api_error(resp)

        try:
            payload = resp.json()
        except ValueError:
            logger.warning("Oracle returned a non-JSON body: %.200s", resp.text)
            return ""

        # Anything off-shape is a malformed reply, which reads as "no links"
        candidates = payload.get("candidates") if isinstance(payload, dict) else None
        if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
            return ""
        content = candidates[0].get("content")
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            return ""
        return "".join(
            part["text"] for part in parts
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        )


def _api_error(resp: requests.Response) -> OracleAPIError:
    """Build an OracleAPIError from an API error body, falling back to the raw text."""
    try:
        error = resp.json().get("error") or {}
    except ValueError:
        error = {}
    message = error.get("message") or resp.text or f"HTTP {resp.status_code}"
    return OracleAPIError(
        message,
        status_code=error.get("code") or resp.status_code,
        status=error.get("status"),
    )


def _enum_or_default(enum_cls: Type[Any], value: Any, default: Any) -> Any:
    try:
        return enum_cls(value)
    except ValueError:
        return default


def build_prompt(page_url: str, root_url: str, depth: int) -> str:
    return EXPAND_PROMPT.format(page_url=page_url, root_url=root_url, depth=depth)


def parse_links(text: Optional[str]) -> List[dict]:
    """
    Parse the oracle's reply into a list of link descriptors.

    Malformed replies are not errors: they yield an empty list so the page
    is treated as childless.
    """
    if not text:
        return []
    clean = CODE_FENCE_RE.sub("", text).strip()
    try:
        raw = json.loads(clean)
    except ValueError:
        logger.warning("Failed to parse oracle response: %.200s", text)
        return []
    if not isinstance(raw, list):
        logger.warning("Oracle response is not a JSON array: %.200s", text)
        return []
    return [item for item in raw if isinstance(item, dict) and item.get("url")]


def to_link_nodes(
    raw_links: Sequence[dict],
    page_url: str,
    depth: int,
    rng: Optional[random.Random] = None,
) -> List[LinkNode]:
    """Normalize oracle link descriptors into child nodes of ``page_url``."""
    rng = rng or random.Random()
    nodes: List[LinkNode] = []
    for link in raw_links:
        url = normalize_url(str(link["url"]), base=page_url)
        nodes.append(LinkNode(
            url=url,
            title=link.get("title") or "Untitled",
            depth=depth + 1,
            parent=page_url,
            link_type=_enum_or_default(LinkType, link.get("type"), LinkType.INTERNAL),
            # Never trust the oracle's idea of the content type
            content_type=guess_content_type(url),
            status_code=str(link.get("status") or "200"),
            discovery_source=_enum_or_default(
                DiscoverySource, link.get("discoverySource"), DiscoverySource.ANCHOR
            ),
            size_kb=rng.randint(5, 104),
            response_time_ms=rng.randint(20, 219),
        ))
    return nodes


class OracleClient:
    """Expands pages through an oracle transport, rotating credentials on quota faults."""

    def __init__(
        self,
        transport: OracleTransport,
        *,
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None,
        max_attempts: int = MAX_ATTEMPTS,
        quota_cooldown: float = QUOTA_COOLDOWN_S,
        backoff_base: float = BACKOFF_BASE_S,
    ) -> None:
        self.transport = transport
        self.sleep = sleep
        self.rng = rng or random.Random()
        self.max_attempts = max_attempts
        self.quota_cooldown = quota_cooldown
        self.backoff_base = backoff_base

    def expand(
        self,
        credentials: Sequence[str],
        start_index: int,
        page_url: str,
        root_url: str,
        depth: int,
    ) -> Tuple[List[LinkNode], int]:
        """
        Ask the oracle for the children of ``page_url``.

        Returns the child nodes and the index of the credential that served
        the request. Quota faults are retried on the same credential after a
        cooldown, then rotated away from; other faults are retried with an
        increasing backoff and raised as ``TransientFault`` once the attempt
        cap is hit on one credential. ``QuotaExceeded`` is raised when every
        remaining credential is exhausted.
        """
        if not credentials:
            raise ConfigurationError("No API keys provided.")

        # Resources are leaves
        if not is_html(page_url):
            return [], start_index

        if not 0 <= start_index < len(credentials):
            raise ConfigurationError(
                f"Credential index {start_index} out of range for a pool of {len(credentials)}"
            )

        prompt = build_prompt(page_url, root_url, depth)
        last_error: Optional[BaseException] = None

        for key_index in range(start_index, len(credentials)):
            credential = credentials[key_index]

            for attempt in range(1, self.max_attempts + 1):
                try:
                    text = self.transport.generate(credential, prompt, json_mode=True)
                except Exception as exc:
                    last_error = exc

                    if classify_fault(exc) is FaultKind.QUOTA:
                        if attempt < self.max_attempts:
                            logger.warning(
                                "Key #%d hit quota limits; cooling down %.0fs (attempt %d/%d)",
                                key_index + 1, self.quota_cooldown, attempt, self.max_attempts,
                            )
                            self.sleep(self.quota_cooldown)
                            continue
                        logger.warning(
                            "Key #%d exhausted after %d attempts; switching key",
                            key_index + 1, self.max_attempts,
                        )
                        break

                    logger.warning(
                        "Attempt %d failed for %s on key #%d: %s",
                        attempt, page_url, key_index + 1, exc,
                    )
                    if attempt == self.max_attempts:
                        raise TransientFault(str(exc), status=fault_status(exc)) from exc
                    self.sleep(self.backoff_base * attempt)
                    continue

                links = to_link_nodes(parse_links(text), page_url, depth, self.rng)
                return links, key_index

        if last_error is not None:
            raise QuotaExceeded(
                f"All {len(credentials) - start_index} remaining API keys exhausted: {last_error}"
            ) from last_error

        return [], len(credentials) - 1
