"""
Command line entry point: run one aggregation and print it as JSON.

Usage:
    python -m feed_agent.main --tab 3 --language en-US --pretty
"""

import argparse
import asyncio
import sys

from feed_agent.aggregator import AggregationError, create_aggregator
from feed_agent.config import FeedConfigError, load_settings
from feed_agent.ingestion.classifier import InvalidTabError
from feed_agent.observability.logging import setup_logging


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Aggregate one feed tab from all sources")
    parser.add_argument("--tab", type=int, default=0, help="Tab index (default: 0)")
    parser.add_argument("--language", default="en-US", help="Preferred language tag")
    parser.add_argument("--pretty", action="store_true", help="Indent the JSON output")
    return parser.parse_args(argv)


async def run(tab: int, language: str, pretty: bool) -> str:
    """Aggregate a tab and return the serialized result."""
    aggregator = create_aggregator(load_settings())
    try:
        result = await aggregator.aggregate(tab, language)
    finally:
        await aggregator.close()
    return result.model_dump_json(by_alias=True, indent=2 if pretty else None)


def main(argv=None) -> int:
    args = parse_args(argv)

    try:
        settings = load_settings()
    except FeedConfigError as e:
        print(e, file=sys.stderr)
        return 2

    # Logs go to stderr so stdout stays valid JSON
    setup_logging(
        level=settings.log_level,
        log_file=settings.log_file,
        json_format=settings.log_json,
        stream=sys.stderr,
    )
    try:
        output = asyncio.run(run(args.tab, args.language, args.pretty))
    except InvalidTabError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 2
    except AggregationError as e:
        print(f"❌ Error fetching feed: {e.detail}", file=sys.stderr)
        return 1

    print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
