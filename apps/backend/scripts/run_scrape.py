#!/usr/bin/env python3
"""
Run a scrape from the command line, synchronously.

Examples:
  python run_scrape.py --source un-careers      # one curated source
  python run_scrape.py --all-specific           # every curated source
  python run_scrape.py --dynamic                # due database sources
  python run_scrape.py --dynamic --manual       # every active database source
  python run_scrape.py --update-descriptions --limit 25
"""
import sys
import json
import asyncio
import logging
import argparse
from pathlib import Path

# Add parent directory to path to import app modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

from crawler.source_configs import get_all_source_configs, get_source_config
from orchestrator import ScrapeOrchestrator
from pipeline.storage import ScrapeStore


async def run(args) -> dict:
    orchestrator = ScrapeOrchestrator(ScrapeStore())

    if args.source:
        config = get_source_config(args.source)
        if not config:
            known = ', '.join(c.id for c in get_all_source_configs())
            raise SystemExit(f"Unknown source '{args.source}'. Known sources: {known}")
        return await orchestrator.run_specific_source(config)

    if args.all_specific:
        return await orchestrator.run_all_specific()

    if args.update_descriptions:
        return await orchestrator.refresh_descriptions(update_all=args.update_all, limit=args.limit)

    return await orchestrator.run_dynamic_sources(source_id=args.source_id, manual_trigger=args.manual)


def main():
    parser = argparse.ArgumentParser(
        description="Run the opportunity scraping pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--source", help="Curated source id to scrape")
    group.add_argument("--all-specific", action="store_true", help="Scrape every curated source")
    group.add_argument("--dynamic", action="store_true", help="Scrape database-configured sources")
    group.add_argument("--update-descriptions", action="store_true", help="Refresh short descriptions")
    parser.add_argument("--source-id", help="With --dynamic: only this source")
    parser.add_argument("--manual", action="store_true", help="With --dynamic: ignore the freshness window")
    parser.add_argument("--update-all", action="store_true", help="With --update-descriptions: refresh every scraped row")
    parser.add_argument("--limit", type=int, default=10, help="With --update-descriptions: max rows (default 10)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = parser.parse_args()

    load_dotenv()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    result = asyncio.run(run(args))
    print(json.dumps(result, indent=2, default=str))


if __name__ == "__main__":
    main()
