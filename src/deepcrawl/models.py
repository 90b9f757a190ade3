"""
Data structures shared by the oracle client and the traversal engine.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Optional

from deepcrawl.content import ContentType


class LinkType(str, Enum):
    INTERNAL = "internal"
    EXTERNAL = "external"
    RESOURCE = "resource"


class DiscoverySource(str, Enum):
    ANCHOR = "anchor"
    IMG_SRC = "img_src"
    SCRIPT_SRC = "script_src"
    LINK_TAG = "link_tag"
    FORM_ACTION = "form_action"
    META_TAG = "meta_tag"
    API_CALL = "api_call"
    ROBOTS_TXT = "robots_txt"
    SITEMAP = "sitemap"


class NodeStatus(str, Enum):
    PENDING = "pending"
    SCANNING = "scanning"
    SCANNED = "scanned"
    ERROR = "error"


class CrawlStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"
    FAILED = "failed"


def utc_now_iso() -> str:
    """Return current UTC time in ISO format."""
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


@dataclass(slots=True)
class LinkNode:
    """A single discovered URL and what is known about it."""
    url: str
    depth: int
    title: str = "Untitled"
    parent: Optional[str] = None
    link_type: LinkType = LinkType.INTERNAL
    content_type: ContentType = ContentType.HTML
    status: NodeStatus = NodeStatus.PENDING
    status_code: str = "200"
    discovery_source: DiscoverySource = DiscoverySource.ANCHOR
    size_kb: int = 0
    response_time_ms: int = 0
    scanned: bool = False

    @property
    def expandable(self) -> bool:
        """Only internal HTML pages are ever queued for expansion."""
        return self.link_type is LinkType.INTERNAL and self.content_type is ContentType.HTML

    @property
    def is_error(self) -> bool:
        return self.status is NodeStatus.ERROR or self.status_code[:1] in ("4", "5")


@dataclass(slots=True)
class RotationEvent:
    """Credential failover observed after an expansion."""
    from_index: int
    to_index: int
    url: str


@dataclass(slots=True)
class CrawlStats:
    """Aggregate counters, always derived from the node set."""
    total_links: int = 0
    scanned_pages: int = 0
    queued_pages: int = 0
    errors: int = 0
    assets_found: int = 0
    total_size_kb: int = 0
    depth_reached: int = 0
    current_url: str = ""
    started_at: Optional[str] = None

    @classmethod
    def from_nodes(
        cls,
        nodes: Iterable[LinkNode],
        queued: int,
        current_url: str = "",
        started_at: Optional[str] = None,
    ) -> "CrawlStats":
        stats = cls(queued_pages=queued, current_url=current_url, started_at=started_at)
        for node in nodes:
            stats.total_links += 1
            stats.total_size_kb += node.size_kb
            stats.depth_reached = max(stats.depth_reached, node.depth)
            if node.scanned:
                stats.scanned_pages += 1
            if node.is_error:
                stats.errors += 1
            if node.link_type is LinkType.RESOURCE:
                stats.assets_found += 1
        return stats
