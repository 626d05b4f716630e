"""CLI job to check monitored companies for review changes."""

import argparse
import logging
import sys
from typing import List, Optional

from review_tracker.core.config import ConfigError, Settings, get_settings
from review_tracker.core.monitor import CheckInProgressError, ReviewMonitor, add_company
from review_tracker.core.storage import StorageError, create_store
from review_tracker.reporting.google_docs import create_reporter
from review_tracker.sources.factory import create_review_source

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def build_monitor(settings: Settings) -> ReviewMonitor:
    """Wire the configured source, store and report sink together."""
    source = create_review_source(settings)
    store = create_store(settings)
    reporter = create_reporter(settings)
    logger.info(
        "Review monitor ready: source=%s store=%s reporter=%s",
        source.name,
        type(store).__name__,
        reporter.name,
    )
    return ReviewMonitor(source, store, reporter)


def run_check_job(settings: Settings) -> int:
    monitor = build_monitor(settings)
    try:
        result = monitor.run_check()
    finally:
        monitor.source.close()

    logger.info("Check finished: %s", result.message)
    for change in result.changes:
        summary = change.to_summary()
        logger.info(
            "%s: %s rating %.1f -> %.1f, %d new reviews",
            summary["company_name"],
            summary["change_type"],
            summary["previous_rating"],
            summary["current_rating"],
            summary["new_reviews_count"],
        )
    return 0 if result.success else 1


def add_company_job(settings: Settings, args: argparse.Namespace) -> int:
    company = add_company(
        create_store(settings),
        args.name,
        place_id=args.place_id,
        google_maps_url=args.url,
        is_active=not args.inactive,
    )
    logger.info("Company '%s' added with id %s", company.name, company.id)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Track Google review changes for monitored companies")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("check", help="Run one review check now and exit")
    subparsers.add_parser("serve", help="Start the HTTP trigger API and the weekly scheduler")

    add = subparsers.add_parser("add", help="Register a company to monitor")
    add.add_argument("--name", required=True, help="Company display name")
    add.add_argument("--place-id", dest="place_id", help="Google Place ID")
    add.add_argument("--url", dest="url", help="Google Maps URL")
    add.add_argument("--inactive", action="store_true", help="Register without monitoring")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = get_settings()
    except ConfigError as exc:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
        logger.error("Configuration error: %s", exc)
        raise SystemExit(2) from exc
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)

    try:
        if args.command == "check":
            code = run_check_job(settings)
        elif args.command == "add":
            code = add_company_job(settings, args)
        else:
            from review_tracker.jobs import check_server

            check_server.main()
            code = 0
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        raise SystemExit(2) from exc
    except (ValueError, CheckInProgressError, StorageError) as exc:
        logger.error("%s", exc)
        raise SystemExit(1) from exc
    sys.exit(code)


if __name__ == "__main__":
    main()
