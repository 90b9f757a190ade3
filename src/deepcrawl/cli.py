"""
Command-line interface for the crawler.
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from deepcrawl.config import load_configuration
from deepcrawl.core import CrawlEngine, CrawlSession
from deepcrawl.errors import ConfigurationError
from deepcrawl.models import CrawlStatus
from deepcrawl.oracle import GeminiTransport, OracleClient
from deepcrawl.report import ReportGenerator


def print_summary(session: CrawlSession) -> None:
    """Print crawl summary to stderr."""
    stats = session.stats
    sys.stderr.write("=" * 50 + "\n")
    sys.stderr.write("CRAWL SUMMARY\n")
    sys.stderr.write("=" * 50 + "\n\n")

    sys.stderr.write(f"Status:                 {session.status.value}\n")
    sys.stderr.write(f"Total links:            {stats.total_links}\n")
    sys.stderr.write(f"Pages scanned:          {stats.scanned_pages}\n")
    sys.stderr.write(f"Still queued:           {stats.queued_pages}\n")
    sys.stderr.write(f"Assets found:           {stats.assets_found}\n")
    sys.stderr.write(f"Errors:                 {stats.errors}\n")
    sys.stderr.write(f"Depth reached:          {stats.depth_reached}\n")
    sys.stderr.write(f"Total size:             {stats.total_size_kb} KB\n")
    sys.stderr.write(f"Active key:             #{session.key_index + 1} of {len(session.credentials)}\n\n")

    if session.rotations:
        sys.stderr.write("Key rotations:\n")
        for event in session.rotations:
            sys.stderr.write(f"  #{event.from_index + 1} -> #{event.to_index + 1} at {event.url}\n")
        sys.stderr.write("\n")

    if session.report:
        sys.stderr.write("Analysis:\n")
        sys.stderr.write(session.report.strip() + "\n\n")


def build_payload(session: CrawlSession) -> Dict[str, Any]:
    nodes: List[Dict[str, Any]] = [asdict(n) for n in session.nodes]
    return {
        "seed": session.seed_url,
        "status": session.status.value,
        "stats": asdict(session.stats),
        "active_key_index": session.key_index,
        "rotations": [asdict(r) for r in session.rotations],
        "report": session.report,
        "nodes": nodes,
    }


def generate_output_path(start_url: str) -> Path:
    """Generate output path: crawls/deepcrawl_{hostname}_{datetime}.json"""
    parsed = urlparse(start_url)
    hostname = parsed.hostname or "unknown"
    # Sanitize hostname for filename (replace dots with underscores)
    hostname_safe = hostname.replace(".", "_")
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

    crawls_dir = Path("crawls")
    crawls_dir.mkdir(exist_ok=True)

    return crawls_dir / f"deepcrawl_{hostname_safe}_{timestamp}.json"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Map a site's link graph breadth-first by asking an LLM oracle for each page's links."
    )
    parser.add_argument("start_url", help="Start URL (e.g. https://example.com)")
    parser.add_argument("--max-depth", type=int, help="Maximum link depth to expand (default: 3)")
    parser.add_argument("--max-pages", type=int, help="Maximum nodes to record (default: 100)")
    parser.add_argument("--delay", type=float, help="Seconds to wait before each oracle request (default: 5)")
    parser.add_argument(
        "--api-key",
        action="append",
        dest="api_keys",
        help="Oracle API key; repeat to build a rotation pool (default: $DEEPCRAWL_API_KEYS)",
    )
    parser.add_argument("--model", help="Oracle model name (default: $DEEPCRAWL_MODEL or gemini-2.0-flash)")
    parser.add_argument("--no-assets", action="store_true", help="Do not record resource links")
    parser.add_argument("--out", help="Output file path, or '-' for stdout (default: auto-generated in crawls/)")
    parser.add_argument("--pretty", action="store_true", help="Pretty-print JSON")
    parser.add_argument("--verbose", action="store_true", help="Show progress and summary")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the crawler CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        config = load_configuration(
            args.start_url,
            api_keys=args.api_keys,
            max_depth=args.max_depth,
            max_pages=args.max_pages,
            delay=args.delay,
            include_assets=not args.no_assets,
            model=args.model,
        )
        transport = GeminiTransport(model=config.model, timeout=config.timeout)
        engine = CrawlEngine(
            config,
            OracleClient(transport),
            ReportGenerator(transport),
            verbose=args.verbose,
        )
        session = engine.start()
    except ConfigurationError as exc:
        parser.error(str(exc))

    try:
        engine.run(session)
    except KeyboardInterrupt:
        engine.stop(session)
        engine.step(session)

    # Print summary if verbose
    if args.verbose:
        print_summary(session)

    # Output JSON
    json_text = json.dumps(build_payload(session), ensure_ascii=False, indent=2 if args.pretty else None)

    if args.out == "-":
        print(json_text)
    else:
        # Auto-generate path if not specified
        output_path = Path(args.out) if args.out else generate_output_path(args.start_url)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(json_text, encoding="utf-8")
        if args.verbose:
            sys.stderr.write(f"Results written to: {output_path}\n")

    return 1 if session.status is CrawlStatus.FAILED else 0


if __name__ == "__main__":
    raise SystemExit(main())
