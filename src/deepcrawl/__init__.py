"""
Oracle-driven site mapper that performs a bounded BFS over discovered links.
Outputs JSON results with per-node metadata (depth, parent, type, status).
"""
from deepcrawl.core import CrawlEngine, CrawlSession, crawl
from deepcrawl.models import CrawlStats, LinkNode

__version__ = "1.0.0"
__all__ = ["crawl", "CrawlEngine", "CrawlSession", "CrawlStats", "LinkNode"]
