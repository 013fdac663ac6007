#!/usr/bin/env python3
"""
CLI for batch runs and result reports.

Usage:
    python -m reporting.cli run [neighborhood ...]
    python -m reporting.cli results [--classification undervalued] [--limit 20]
    python -m reporting.cli stats
    python -m reporting.cli purge [--days 100]

Examples:
    # Run the configured neighborhoods against the configured source
    python -m reporting.cli run

    # Run two neighborhoods against generated data, no sleeping
    python -m reporting.cli run west-village astoria --source mock --seed 7 --no-delay

    # Top undervalued results in one neighborhood
    python -m reporting.cli results --classification undervalued --neighborhood park-slope
"""

import argparse
import json
import sys
from datetime import timedelta

from core import DealFinder, create_strategy
from core.cache import ListingCache, ResultRecord, ResultStatus
from core.valuation import Classification
from scraper import MockScraper, create_scraper
from utils import Config, configure_logging, format_bed_bath, format_currency, format_percent


def format_result_row(record: ResultRecord) -> str:
    """One console line for a stored result."""
    return (
        f"{record.grade:<3} {record.score:>3}  "
        f"{record.listing_id:<28} {format_bed_bath(record.bedrooms, record.bathrooms):<12} "
        f"{format_currency(record.price):>12}  est {format_currency(record.estimated_market_price):>12}  "
        f"{format_percent(record.discount_percent):>7}  conf {record.confidence:>3}  "
        f"{record.classification}"
    )


def _load_cache(config: Config) -> ListingCache:
    return ListingCache(persist_path=config.cache_path)


def cmd_run(args):
    """Run the pipeline over neighborhoods and print the summary."""
    config = Config.load()
    if args.source:
        config.scraper_type = args.source

    neighborhoods = args.neighborhoods or config.neighborhood_list
    if not neighborhoods:
        print("Error: No neighborhoods given and NEIGHBORHOODS is empty", file=sys.stderr)
        return 1

    try:
        source = MockScraper(seed=args.seed) if config.scraper_type == "mock" else create_scraper(config)
        strategy = create_strategy(config)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    cache = _load_cache(config)
    finder_kwargs = {}
    if args.no_delay:
        finder_kwargs["sleep"] = lambda seconds: None

    finder = DealFinder(cache, source, strategy, config, **finder_kwargs)
    print(f"Processing {len(neighborhoods)} neighborhoods with {strategy.name} strategy "
          f"({config.scraper_type} source)")

    summary = finder.run(neighborhoods, source, purge=not args.no_purge)

    if args.json:
        print(json.dumps(summary.to_dict(), indent=2))
    else:
        for n in summary.neighborhoods:
            print(
                f"  {n.neighborhood:<20} hits {n.hits:>4}  skipped {n.skipped:>4}  "
                f"fetched {n.fetched:>4}  analyzed {n.analyzed:>4}  "
                f"undervalued {n.undervalued:>3}  sold {n.marked_sold:>3}  "
                f"saved {n.detail_calls_saved:>4}"
            )
        for error in summary.all_errors:
            print(f"  ERROR {error.scope}: {error.error}", file=sys.stderr)
        if summary.aborted:
            print("Run aborted by a fatal source error", file=sys.stderr)

    return 2 if summary.aborted else 0


def cmd_results(args):
    """Print stored results, best first."""
    config = Config.load()
    cache = _load_cache(config)

    classification = None
    if args.classification:
        parsed = Classification.from_string(args.classification)
        if parsed is None:
            print(f"Error: Unknown classification: {args.classification}", file=sys.stderr)
            return 1
        classification = parsed.value

    records = cache.list_results(
        classification=classification,
        neighborhood=args.neighborhood,
        min_discount=args.min_discount,
        status=None if args.include_sold else ResultStatus.ACTIVE,
        limit=args.limit,
    )

    if args.json:
        print(json.dumps([r.to_dict() for r in records], indent=2))
        return 0

    if not records:
        print("No results")
        return 0

    for record in records:
        print(format_result_row(record))
    return 0


def cmd_stats(args):
    """Print cache statistics."""
    cache = _load_cache(Config.load())
    print(json.dumps(cache.stats(), indent=2))
    return 0


def cmd_purge(args):
    """Drop listings and results older than the purge age."""
    config = Config.load()
    cache = _load_cache(config)
    days = args.days if args.days is not None else config.purge_after_days
    removed = cache.purge_older_than(timedelta(days=days))
    print(f"Purged {removed} listings older than {days} days")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Undervalued Listing Engine - batch runs and reports",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m reporting.cli run west-village park-slope
    python -m reporting.cli results --classification undervalued --limit 10

Storage:
    Cache and results are read from CACHE_PATH (default: data/listing_cache.json)
        """,
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Run command
    run_parser = subparsers.add_parser("run", help="Run the pipeline over neighborhoods")
    run_parser.add_argument("neighborhoods", nargs="*", help="Neighborhood slugs (default: NEIGHBORHOODS)")
    run_parser.add_argument("--source", choices=["mock", "streeteasy"], help="Override SCRAPER_TYPE")
    run_parser.add_argument("--seed", type=int, default=None, help="Seed for the mock source")
    run_parser.add_argument("--no-delay", action="store_true", help="Do not sleep between detail fetches")
    run_parser.add_argument("--no-purge", action="store_true", help="Skip the age-based purge")
    run_parser.add_argument("--json", action="store_true", help="Print the run summary as JSON")
    run_parser.set_defaults(func=cmd_run)

    # Results command
    results_parser = subparsers.add_parser("results", help="List stored results")
    results_parser.add_argument("--classification", help="e.g. undervalued, market_rate")
    results_parser.add_argument("--neighborhood")
    results_parser.add_argument("--min-discount", type=float, default=None)
    results_parser.add_argument("--include-sold", action="store_true")
    results_parser.add_argument("--limit", type=int, default=20)
    results_parser.add_argument("--json", action="store_true")
    results_parser.set_defaults(func=cmd_results)

    # Stats command
    stats_parser = subparsers.add_parser("stats", help="Show cache statistics")
    stats_parser.set_defaults(func=cmd_stats)

    # Purge command
    purge_parser = subparsers.add_parser("purge", help="Purge old cache entries")
    purge_parser.add_argument("--days", type=int, default=None, help="Max age (default: PURGE_AFTER_DAYS)")
    purge_parser.set_defaults(func=cmd_purge)

    return parser


def main(argv=None):
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
