"""
Post-crawl summary written by the oracle.
"""
from __future__ import annotations

import logging
from typing import Optional, Sequence

from deepcrawl.models import LinkNode, LinkType
from deepcrawl.oracle import OracleTransport

logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = "API key missing."
EMPTY_REPORT_MESSAGE = "Analysis failed."
FAILED_REPORT_MESSAGE = "Could not perform analysis."

REPORT_PROMPT = """\
Generate a forensic crawl report.

Crawl Summary:
- Total Nodes Discovered: {total}
- Pages Fully Scanned: {scanned}
- Assets extracted: {assets}
- Deepest level reached: {max_depth}

Provide a concise 3-bullet technical assessment of the site's depth and asset structure.
"""


def build_report_prompt(nodes: Sequence[LinkNode]) -> str:
    return REPORT_PROMPT.format(
        total=len(nodes),
        scanned=sum(1 for n in nodes if n.scanned),
        assets=sum(1 for n in nodes if n.link_type is LinkType.RESOURCE),
        max_depth=max((n.depth for n in nodes), default=0),
    )


class ReportGenerator:
    """One-shot summarization of a finished crawl. Never raises."""

    def __init__(self, transport: OracleTransport) -> None:
        self.transport = transport

    def generate(self, credential: Optional[str], nodes: Sequence[LinkNode]) -> str:
        if not credential:
            return MISSING_KEY_MESSAGE

        try:
            text = self.transport.generate(credential, build_report_prompt(nodes))
        except Exception:
            logger.debug("Report generation failed; using fallback text", exc_info=True)
            return FAILED_REPORT_MESSAGE
        return text or EMPTY_REPORT_MESSAGE
