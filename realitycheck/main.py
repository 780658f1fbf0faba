"""RealityCheck entry point.

Supports two modes:
  - Service mode (default): periodic background sync plus the dashboard API
  - CLI mode: prints usage, runs one sync, or shows the pending batch

Usage:
    python -m realitycheck.main              # service mode
    python -m realitycheck.main --today      # print today's usage
    python -m realitycheck.main --weekly     # print the trailing 7 days
    python -m realitycheck.main --sync       # run one sync cycle with retries
    python -m realitycheck.main --pending    # print the last synced batch
"""

import argparse
import logging
import os
import sys
import threading

from realitycheck.core.aggregator import UsageAggregator
from realitycheck.core.classifier import (
    CategoryClassifier,
    ProductivityClassifier,
    categories_from_config,
)
from realitycheck.core.config import get_default_config_path, get_section, load_config
from realitycheck.core.errors import UsageError
from realitycheck.core.models import SyncStatus
from realitycheck.core.scheduler import SyncScheduler
from realitycheck.core.sync import SyncTracker
from realitycheck.persistence.store import UsageStore
from realitycheck.platform.factory import create_usage_provider
from realitycheck.plugin import UsageStatsPlugin
from realitycheck.reporting.formatter import TextFormatter

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="realitycheck",
        description="RealityCheck: device usage statistics and background sync",
    )
    parser.add_argument(
        "--config",
        help="Path to config.json (defaults to the platform data directory)",
    )
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--today", action="store_true", help="Print today's usage and exit")
    group.add_argument("--weekly", action="store_true", help="Print the last 7 days of usage and exit")
    group.add_argument("--sync", action="store_true", help="Run one sync cycle and exit")
    group.add_argument("--pending", action="store_true", help="Print the last synced batch and exit")
    return parser


def build_aggregator(config: dict) -> UsageAggregator:
    """Create an aggregator with any extra table entries from *config*."""
    categories = get_section(config, "categories")
    return UsageAggregator(
        classifier=CategoryClassifier(categories_from_config(categories["extra"])),
        productivity=ProductivityClassifier(categories["productive_extra"]),
    )


def open_store(config: dict) -> UsageStore:
    db_path = os.path.expanduser(config.get("database_path", "~/.realitycheck/realitycheck.db"))
    if db_path != ":memory:":
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
    store = UsageStore(db_path)
    store.init_db()
    return store


def build_tracker(config: dict, provider, store: UsageStore, on_synced=None) -> SyncTracker:
    sync = get_section(config, "sync")
    return SyncTracker(
        provider=provider,
        store=store,
        aggregator=build_aggregator(config),
        max_attempts=sync["max_attempts"],
        on_synced=on_synced,
    )


def _print_usage(config: dict, weekly: bool) -> None:
    """Query the provider and print today's or the weekly usage."""
    plugin = UsageStatsPlugin(create_usage_provider(config), aggregator=build_aggregator(config))
    try:
        if not plugin.has_usage_permission():
            print("Usage access has not been granted.")
        if weekly:
            records = plugin.get_weekly_usage_stats()
            title = "Weekly Usage (last 7 days)"
        else:
            records = plugin.get_today_usage_stats()
            title = "Today's Usage"
        print(TextFormatter.format_usage(title, records))
    finally:
        plugin.dispose()


def _run_sync(config: dict) -> int:
    """Run one sync cycle with retries; return a process exit code."""
    store = open_store(config)
    try:
        sync = get_section(config, "sync")
        tracker = build_tracker(config, create_usage_provider(config), store)
        scheduler = SyncScheduler(
            tracker,
            interval_minutes=sync["interval_minutes"],
            backoff_minutes=sync["backoff_minutes"],
        )
        result = scheduler.run_with_retries()
        print(f"Sync {result.status.value}: {result.summaries_stored} apps stored")
        return 0 if result.status is SyncStatus.SUCCEEDED else 1
    finally:
        store.close()


def _print_pending(config: dict) -> None:
    store = open_store(config)
    try:
        records = [s.to_dict() for s in store.get_pending()]
        print(TextFormatter.format_usage("Pending Sync Batch", records))
    finally:
        store.close()


def _serve(config: dict) -> None:
    """Run the periodic sync and dashboard until interrupted."""
    from realitycheck.ui.web import start_dashboard

    provider = create_usage_provider(config)
    store = open_store(config)
    sync = get_section(config, "sync")
    dashboard = get_section(config, "dashboard")
    plugin = UsageStatsPlugin(provider, aggregator=build_aggregator(config))
    scheduler = SyncScheduler(
        build_tracker(config, provider, store, on_synced=plugin.send_usage_update),
        interval_minutes=sync["interval_minutes"],
        backoff_minutes=sync["backoff_minutes"],
    )
    scheduler.start()
    start_dashboard(plugin, store, host=dashboard["host"], port=dashboard["port"])
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        logger.info("Shutting down")
    finally:
        scheduler.stop()
        plugin.dispose()
        store.close()


def main(args: list[str] | None = None) -> int:
    """Entry point for RealityCheck.

    When *args* is ``None`` the arguments are read from ``sys.argv``.
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    parser = build_parser()
    parsed = parser.parse_args(args)

    config_path = parsed.config or get_default_config_path()
    config = load_config(str(config_path))

    try:
        if parsed.today or parsed.weekly:
            _print_usage(config, weekly=parsed.weekly)
        elif parsed.sync:
            return _run_sync(config)
        elif parsed.pending:
            _print_pending(config)
        else:
            _serve(config)
    except (OSError, UsageError) as exc:
        logger.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
