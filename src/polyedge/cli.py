"""Command-line entry point.

    polyedge edge [--min-volume N] [--top N]
    polyedge candidates
    polyedge signals [--history] [--no-dedup]
    polyedge follow add <wallet> [name] | remove <wallet|name> | list
    polyedge watch [--daemon]
    polyedge screen [--cached]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys

import structlog
from structlog.types import Processor

from polyedge.config import EdgeConfig
from polyedge.data_client import PolymarketClient
from polyedge.display import (
    print_table,
    render_edge_table,
    render_following_table,
    render_screen_report,
    render_signals_table,
)
from polyedge.following import FollowError, add_followed, remove_followed
from polyedge.notifier import AlertNotifier
from polyedge.pipeline import (
    collect_signals,
    detect_edge_traders,
    find_copy_candidates,
    generate_signals,
    run_watch_cycle,
    run_watch_daemon,
    screen_traders,
)
from polyedge.store import JsonStore, StoreError


# ---------------------------------------------------------------------------
# Structured logging configuration
# ---------------------------------------------------------------------------


def configure_logging(level: int = logging.INFO) -> None:
    """Configure structlog with console (default) or JSON rendering.

    ``LOG_FORMAT=json`` switches to JSON lines.  Stdlib loggers (httpx, the
    data client, the store) are rendered through the same pipeline.
    """
    use_json = os.environ.get("LOG_FORMAT", "").lower() == "json"

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if use_json:
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )

    # stderr keeps stdout for tables
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    logging.getLogger("httpx").setLevel(logging.WARNING)


log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="polyedge",
        description="Polymarket trader edge scoring, copy signals and whale alerts",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    edge = sub.add_parser("edge", help="Rank leaderboard traders by edge score")
    edge.add_argument("--min-volume", type=float, default=None, help="Minimum traded volume (default: config)")
    edge.add_argument("--top", type=int, default=None, help="Number of traders to return (default: config)")

    sub.add_parser("candidates", help="List copy candidates (win rate, efficiency, trade count gates)")

    signals = sub.add_parser("signals", help="Aggregate open positions of followed traders into signals")
    signals.add_argument("--history", action="store_true", help="Show the persisted signal log instead")
    signals.add_argument(
        "--no-dedup",
        action="store_true",
        help="Show all current signals without suppressing recent ones or alerting",
    )

    follow = sub.add_parser("follow", help="Manage the followed-traders list")
    follow_sub = follow.add_subparsers(dest="follow_command", required=True)
    follow_add = follow_sub.add_parser("add", help="Follow a wallet")
    follow_add.add_argument("wallet")
    follow_add.add_argument("name", nargs="?", default=None)
    follow_remove = follow_sub.add_parser("remove", help="Unfollow by wallet or name")
    follow_remove.add_argument("wallet_or_name")
    follow_sub.add_parser("list", help="Show followed traders")

    watch = sub.add_parser("watch", help="Poll watched whales for large new trades")
    watch.add_argument("--daemon", action="store_true", help="Keep polling every POLL_INTERVAL_SECONDS")

    screen = sub.add_parser("screen", help="Leaderboard screener across day, week, month and all-time")
    screen.add_argument("--cached", action="store_true", help="Render the last saved report without fetching")

    return parser.parse_args(argv)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _follow(args: argparse.Namespace, store: JsonStore) -> int:
    following = store.load_following()
    if args.follow_command == "list":
        print_table(render_following_table(following))
        return 0

    if args.follow_command == "add":
        following = add_followed(following, args.wallet, args.name)
        log.info("trader_followed", wallet=args.wallet, name=following[-1].name)
    else:
        following = remove_followed(following, args.wallet_or_name)
        log.info("trader_unfollowed", target=args.wallet_or_name)
    store.save_following(following)
    print_table(render_following_table(following))
    return 0


def _cached_screen(config: EdgeConfig, store: JsonStore) -> int:
    report = store.load_screen()
    if report is None:
        log.error("no_screen_report", hint="run `polyedge screen` first")
        return 1
    log.info("screen_report_loaded", fetched_at=report.fetched_at.isoformat())
    for table in render_screen_report(report, config):
        print_table(table)
    return 0


async def _run(args: argparse.Namespace, config: EdgeConfig, store: JsonStore) -> int:
    async with PolymarketClient(config) as client:
        if args.command == "edge":
            ranked = await detect_edge_traders(client, config, args.min_volume, args.top)
            store.save_scored("edge", ranked)
            print_table(render_edge_table(ranked))
            return 0

        if args.command == "candidates":
            candidates = await find_copy_candidates(client, config)
            store.save_scored("candidates", candidates)
            print_table(render_edge_table(candidates, title="Copy Candidates"))
            return 0

        if args.command == "screen":
            report = await screen_traders(client, config)
            store.save_screen(report)
            for table in render_screen_report(report, config):
                print_table(table)
            return 0

        async with AlertNotifier(config) as notifier:
            if args.command == "signals":
                following = store.load_following()
                if args.no_dedup:
                    current = await collect_signals(client, following, config)
                    print_table(render_signals_table(current))
                    return 0
                fresh, history = await generate_signals(client, following, store.load_signals(), config)
                store.save_signals(history)
                for signal in fresh:
                    await notifier.send_signal(signal)
                print_table(render_signals_table(fresh, title="New Signals"))
                return 0

            if args.daemon:
                await run_watch_daemon(client, store, notifier, config)
            else:
                await run_watch_cycle(client, store, notifier, config)
            return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO)
    config = EdgeConfig()
    store = JsonStore(config.DATA_DIR)

    try:
        if args.command == "signals" and args.history:
            print_table(render_signals_table(store.load_signals(), title="Signal History"))
            return 0
        if args.command == "follow":
            return _follow(args, store)
        if args.command == "screen" and args.cached:
            return _cached_screen(config, store)
        return asyncio.run(_run(args, config, store))
    except (FollowError, StoreError) as exc:
        log.error("command_failed", command=args.command, error=str(exc))
        return 1
    except KeyboardInterrupt:
        log.info("stopped_by_user")
        return 130
