"""
Core crawling logic: a bounded breadth-first traversal driven by the oracle.
"""
from __future__ import annotations

import logging
import sys
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, List, Optional, Sequence, Set, Tuple

from deepcrawl.config import CrawlConfig
from deepcrawl.errors import ConfigurationError, OracleFault, QuotaExceeded
from deepcrawl.models import (
    CrawlStats,
    CrawlStatus,
    LinkNode,
    LinkType,
    NodeStatus,
    RotationEvent,
    utc_now_iso,
)
from deepcrawl.oracle import OracleClient
from deepcrawl.report import ReportGenerator
from deepcrawl.urls import normalize_url

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CrawlSession:
    """All state owned by one crawl run."""
    seed_url: str
    credentials: Tuple[str, ...]
    key_index: int = 0
    nodes: List[LinkNode] = field(default_factory=list)
    frontier: Deque[LinkNode] = field(default_factory=deque)
    visited: Set[str] = field(default_factory=set)
    stats: CrawlStats = field(default_factory=CrawlStats)
    status: CrawlStatus = CrawlStatus.RUNNING
    running: bool = True
    rotations: List[RotationEvent] = field(default_factory=list)
    expansion_order: List[str] = field(default_factory=list)
    report: Optional[str] = None

    @property
    def active_credential(self) -> Optional[str]:
        if 0 <= self.key_index < len(self.credentials):
            return self.credentials[self.key_index]
        return None

    @property
    def finished(self) -> bool:
        return self.status not in (CrawlStatus.IDLE, CrawlStatus.RUNNING)

    def refresh_stats(self) -> None:
        self.stats = CrawlStats.from_nodes(
            self.nodes,
            queued=len(self.frontier),
            current_url=self.stats.current_url,
            started_at=self.stats.started_at,
        )


def print_progress(
    scanned: int,
    discovered: int,
    queue_size: int,
    current_url: str,
    max_pages: int,
) -> None:
    """Overwrite the progress line on stderr with counters and the page being expanded."""
    progress = (
        f"\r\033[K[{scanned}/{max_pages}] Scanned: {scanned} | Nodes: {discovered} "
        f"| Queue: {queue_size} | Expanding: {current_url}"
    )
    sys.stderr.write(progress)
    sys.stderr.flush()


def print_scan_line(url: str, status: Optional[str], new_links: int) -> None:
    """Print single scan result line."""
    status_str = status or "ERR"
    sys.stderr.write(f"\n  → {status_str} {url} (+{new_links} links)")
    sys.stderr.flush()


def error_status(fault: OracleFault) -> str:
    """Reduce a failed expansion to the 404 / 403 / 500 status recorded on the node."""
    message = str(fault)
    for code in ("404", "403"):
        if fault.status == code or code in message:
            return code
    return "500"


class CrawlEngine:
    """
    Breadth-first scheduler over oracle expansions.

    The engine is driven one ``step()`` at a time; every step either
    expands one frontier node or finalizes the run. ``run()`` is the plain
    loop over ``step()``.
    """

    def __init__(
        self,
        config: CrawlConfig,
        oracle: OracleClient,
        reporter: Optional[ReportGenerator] = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        verbose: bool = False,
    ) -> None:
        self.config = config
        self.oracle = oracle
        self.reporter = reporter
        self.sleep = sleep
        self.verbose = verbose
        self._session: Optional[CrawlSession] = None

    def start(
        self,
        seed_url: Optional[str] = None,
        credentials: Optional[Sequence[str]] = None,
    ) -> CrawlSession:
        """Create a fresh session with the seed node queued."""
        # A stopped session still counts until a step has finalized it
        if self._session is not None and not self._session.finished:
            raise ConfigurationError("A crawl is already running.")

        pool = tuple(credentials if credentials is not None else self.config.api_keys)
        if not pool:
            raise ConfigurationError("Cannot start: API key pool not configured.")

        seed = normalize_url(seed_url or self.config.url)
        if not seed:
            raise ConfigurationError("A start URL is required.")
        self.config.validate()

        root = LinkNode(url=seed, depth=0, title="Root")
        session = CrawlSession(seed_url=seed, credentials=pool)
        session.frontier.append(root)
        session.nodes.append(root)
        session.visited.add(seed)
        session.stats = CrawlStats(
            total_links=1,
            queued_pages=1,
            current_url=seed,
            started_at=utc_now_iso(),
        )
        self._session = session

        logger.info("Starting crawl from %s with %d API keys", seed, len(pool))
        if self.verbose:
            sys.stderr.write(f"Starting crawl from: {seed}\n")
            sys.stderr.write(f"Max depth: {self.config.max_depth} | Max pages: {self.config.max_pages}\n\n")
        return session

    def stop(self, session: Optional[CrawlSession] = None) -> None:
        """Ask the run to end; the next step finalizes it as aborted."""
        session = session or self._session
        if session is None or not session.running:
            return
        session.running = False
        logger.warning("Crawl abort requested for %s", session.seed_url)

    def step(self, session: CrawlSession) -> bool:
        """
        Run one unit of crawl work.

        Returns True while further steps should be scheduled.
        """
        if session.finished:
            return False
        if not session.running:
            self._finish(session, CrawlStatus.ABORTED)
            return False
        if not session.frontier or len(session.nodes) >= self.config.max_pages:
            self._finish(session, CrawlStatus.COMPLETED)
            return False

        node = session.frontier.popleft()
        session.stats.current_url = node.url
        session.stats.queued_pages = len(session.frontier)

        # Depth-exhausted nodes stay recorded but unexpanded
        if node.depth >= self.config.max_depth:
            return True

        node.status = NodeStatus.SCANNING
        session.expansion_order.append(node.url)
        if self.verbose:
            print_progress(
                session.stats.scanned_pages,
                len(session.nodes),
                len(session.frontier),
                node.url,
                self.config.max_pages,
            )

        self.sleep(self.config.delay)

        try:
            children, used_index = self.oracle.expand(
                session.credentials,
                session.key_index,
                node.url,
                session.seed_url,
                node.depth,
            )
        except QuotaExceeded as exc:
            self._mark_failed(session, node, exc)
            session.key_index = len(session.credentials) - 1
            logger.error("All API keys exhausted while scanning %s: %s", node.url, exc)
            self._finish(session, CrawlStatus.FAILED)
            return False
        except OracleFault as exc:
            self._mark_failed(session, node, exc)
            logger.warning(
                "Failed to scan %s (key #%d, status %s): %s",
                node.url, session.key_index + 1, node.status_code, exc,
            )
            return True

        if used_index != session.key_index:
            logger.warning(
                "Quota failover: switched from key #%d to key #%d",
                session.key_index + 1, used_index + 1,
            )
            session.rotations.append(RotationEvent(session.key_index, used_index, node.url))
            session.key_index = used_index

        added = self._admit(session, children)

        node.status = NodeStatus.SCANNED
        node.status_code = "200"
        node.scanned = True
        session.refresh_stats()

        if self.verbose:
            print_scan_line(node.url, node.status_code, added)
        return True

    def run(self, session: CrawlSession) -> CrawlSession:
        """Drive ``step()`` until the run is finalized."""
        while self.step(session):
            pass
        return session

    def _admit(self, session: CrawlSession, children: Sequence[LinkNode]) -> int:
        """Add first-seen children to the node set, queueing the expandable ones."""
        added = 0
        for child in children:
            if child.url in session.visited:
                continue
            if len(session.nodes) >= self.config.max_pages:
                break
            session.visited.add(child.url)
            if child.link_type is LinkType.RESOURCE and not self.config.include_assets:
                continue

            session.nodes.append(child)
            if child.expandable:
                session.frontier.append(child)
            added += 1
            if child.status_code.startswith("4"):
                logger.info("Broken link: %s (%s)", child.url, child.status_code)
        return added

    def _mark_failed(self, session: CrawlSession, node: LinkNode, fault: OracleFault) -> None:
        node.status = NodeStatus.ERROR
        node.status_code = error_status(fault)
        session.refresh_stats()
        if self.verbose:
            print_scan_line(node.url, node.status_code, 0)

    def _finish(self, session: CrawlSession, status: CrawlStatus) -> None:
        session.running = False
        session.status = status
        # An expansion cut short by an interrupt never ran to completion
        for node in session.nodes:
            if node.status is NodeStatus.SCANNING:
                node.status = NodeStatus.PENDING
        session.refresh_stats()

        if self.reporter is not None:
            session.report = self.reporter.generate(session.active_credential, session.nodes)

        logger.info("Crawl %s: %d nodes, %d scanned", status.value, len(session.nodes), session.stats.scanned_pages)
        if self.verbose:
            sys.stderr.write(f"\n\nCrawl {status.value}.\n\n")


def crawl(
    config: CrawlConfig,
    oracle: OracleClient,
    reporter: Optional[ReportGenerator] = None,
    *,
    sleep: Callable[[float], None] = time.sleep,
    verbose: bool = False,
) -> Tuple[List[LinkNode], CrawlStats]:
    """
    Crawl the site in ``config.url`` breadth-first through the oracle.

    Returns tuple of (nodes in discovery order, crawl statistics).
    """
    engine = CrawlEngine(config, oracle, reporter, sleep=sleep, verbose=verbose)
    session = engine.run(engine.start())
    return session.nodes, session.stats
