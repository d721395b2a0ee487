"""Orchestration: fetch from the data API, run the scoring core, persist and alert.

Per-wallet fetch failures are logged and turned into empty results, so one
bad wallet contributes a neutral score (or no signal / no alert) instead of
aborting the whole pass.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Callable, Sequence
from datetime import datetime, timezone

import structlog
from pydantic import ValidationError

from polyedge.aggregator import aggregate_traders, build_watchlist, order_sources, rank_by_efficiency
from polyedge.config import EdgeConfig
from polyedge.data_client import PolymarketAPIError, PolymarketClient
from polyedge.models import (
    ClosedPosition,
    DetailedTrader,
    FollowedTrader,
    LeaderboardSnapshot,
    OpenPosition,
    ScoredTrader,
    ScreenerReport,
    Signal,
    TraderRecord,
    WatchedTrader,
    WatchState,
    WhaleTrade,
)
from polyedge.notifier import AlertNotifier
from polyedge.scoring import compute_edge_score, rank_traders, score_trader
from polyedge.screener import build_trader_index
from polyedge.screening import (
    apply_copy_candidate_filter,
    screen_copy_candidates,
    screening_metrics,
    to_watched_candidate,
)
from polyedge.signals import build_signals, merge_signal_history, suppress_recent_signals
from polyedge.store import JsonStore
from polyedge.tracker import track_new_activity

log = structlog.get_logger()

_FETCH_ERRORS = (PolymarketAPIError, ValidationError)


# ---------------------------------------------------------------------------
# Fetch helpers (failures -> empty lists)
# ---------------------------------------------------------------------------


async def fetch_leaderboards(client: PolymarketClient, config: EdgeConfig) -> list[list[TraderRecord]]:
    """Fetch every configured leaderboard window, in precedence order."""
    by_window: dict[str, list[TraderRecord]] = {}
    for window in config.LEADERBOARD_WINDOWS:
        limit = config.LEADERBOARD_LIMITS.get(window, 100)
        try:
            by_window[window] = await client.fetch_leaderboard(window, limit=limit)
        except _FETCH_ERRORS as exc:
            log.warning("leaderboard_fetch_failed", window=window, error=str(exc))
            by_window[window] = []
        log.info("leaderboard_fetched", window=window, count=len(by_window[window]))
    return order_sources(by_window, config.LEADERBOARD_WINDOWS)


async def _closed_positions(client: PolymarketClient, wallet: str, limit: int) -> list[ClosedPosition]:
    try:
        return await client.fetch_closed_positions(wallet, limit=limit)
    except _FETCH_ERRORS as exc:
        log.warning("closed_positions_fetch_failed", wallet=wallet, error=str(exc))
        return []


async def _open_positions(client: PolymarketClient, wallet: str, limit: int) -> list[OpenPosition]:
    try:
        return await client.fetch_open_positions(wallet, limit=limit)
    except _FETCH_ERRORS as exc:
        log.warning("open_positions_fetch_failed", wallet=wallet, error=str(exc))
        return []


# ---------------------------------------------------------------------------
# Edge detection and copy candidates
# ---------------------------------------------------------------------------


async def detect_edge_traders(
    client: PolymarketClient,
    config: EdgeConfig,
    min_volume: float | None = None,
    top_n: int | None = None,
) -> list[ScoredTrader]:
    """Rank profitable leaderboard traders by edge score.

    Scores up to ``2 * top_n`` candidates and returns the best ``top_n``.
    """
    min_volume = config.MIN_VOLUME if min_volume is None else min_volume
    top_n = config.TOP_N if top_n is None else top_n

    sources = await fetch_leaderboards(client, config)
    candidates = aggregate_traders(sources, min_volume)
    log.info("edge_candidates", count=len(candidates), min_volume=min_volume)

    scored: list[ScoredTrader] = []
    for i, trader in enumerate(candidates[: top_n * 2], start=1):
        log.debug("scoring_trader", index=i, trader=trader.display_name)
        closed = await _closed_positions(client, trader.wallet, config.CLOSED_POSITIONS_LIMIT)
        positions = await _open_positions(client, trader.wallet, config.OPEN_POSITIONS_LIMIT)
        scored.append(score_trader(trader, closed, positions[:10]))
        await asyncio.sleep(config.REQUEST_DELAY_SECONDS)

    ranked = rank_traders(scored, top_n)
    log.info("edge_detection_complete", scored=len(scored), returned=len(ranked))
    return ranked


async def find_copy_candidates(client: PolymarketClient, config: EdgeConfig) -> list[ScoredTrader]:
    """Traders passing the copy-candidate gates, most efficient first."""
    sources = await fetch_leaderboards(client, config)
    traders = aggregate_traders(sources, config.MIN_VOLUME)[: config.TOP_N]

    scored: list[ScoredTrader] = []
    for trader in traders:
        closed = await _closed_positions(client, trader.wallet, config.CLOSED_POSITIONS_LIMIT)
        positions = await _open_positions(client, trader.wallet, config.OPEN_POSITIONS_LIMIT)
        metrics = screening_metrics(closed)
        scored.append(
            ScoredTrader(
                trader=trader,
                metrics=metrics,
                edge=compute_edge_score(trader.pnl, trader.volume, metrics),
                positions=positions,
            )
        )
        await asyncio.sleep(config.REQUEST_DELAY_SECONDS)

    candidates = screen_copy_candidates(scored, config)
    log.info("copy_candidates_found", screened=len(scored), passed=len(candidates))
    return candidates


# ---------------------------------------------------------------------------
# Signals
# ---------------------------------------------------------------------------


async def _gather_positions(
    client: PolymarketClient,
    following: Sequence[FollowedTrader],
    config: EdgeConfig,
) -> list[tuple[OpenPosition, FollowedTrader]]:
    tagged: list[tuple[OpenPosition, FollowedTrader]] = []
    for trader in following:
        positions = await _open_positions(client, trader.wallet, config.OPEN_POSITIONS_LIMIT)
        tagged.extend((p, trader) for p in positions)
        await asyncio.sleep(config.REQUEST_DELAY_SECONDS)
    log.info("positions_gathered", traders=len(following), positions=len(tagged))
    return tagged


async def collect_signals(
    client: PolymarketClient,
    following: Sequence[FollowedTrader],
    config: EdgeConfig,
    now: datetime | None = None,
) -> list[Signal]:
    """Current signals without history suppression, capped at ``MAX_SIGNALS``."""
    tagged = await _gather_positions(client, following, config)
    return build_signals(tagged, config, now)[: config.MAX_SIGNALS]


async def generate_signals(
    client: PolymarketClient,
    following: Sequence[FollowedTrader],
    previous: Sequence[Signal],
    config: EdgeConfig,
    now: datetime | None = None,
) -> tuple[list[Signal], list[Signal]]:
    """Build signals and drop those already emitted in the last 24 hours.

    Returns ``(new_signals, updated_history)``.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    tagged = await _gather_positions(client, following, config)
    signals = build_signals(tagged, config, now)
    fresh = suppress_recent_signals(signals, previous, now)
    history = merge_signal_history(fresh, previous, config.SIGNAL_HISTORY_LIMIT)
    log.info("signals_generated", built=len(signals), new=len(fresh))
    return fresh, history


# ---------------------------------------------------------------------------
# Leaderboard screener
# ---------------------------------------------------------------------------


async def fetch_leaderboard_pages(
    client: PolymarketClient,
    window: str,
    order_by: str,
    config: EdgeConfig,
) -> list[TraderRecord]:
    """Page through one leaderboard until an empty page or ``SCREEN_MAX_PAGES``.

    A failed page ends pagination; the pages already fetched are kept.
    """
    records: list[TraderRecord] = []
    for page in range(config.SCREEN_MAX_PAGES):
        try:
            batch = await client.fetch_leaderboard(
                window,
                order_by=order_by,
                limit=config.SCREEN_PAGE_SIZE,
                offset=page * config.SCREEN_PAGE_SIZE,
            )
        except _FETCH_ERRORS as exc:
            log.warning("leaderboard_page_failed", window=window, order_by=order_by, page=page, error=str(exc))
            break
        if not batch:
            break
        records.extend(batch)
        await asyncio.sleep(config.REQUEST_DELAY_SECONDS)
    return records


async def screen_traders(
    client: PolymarketClient,
    config: EdgeConfig,
    now: datetime | None = None,
) -> ScreenerReport:
    """Snapshot every screened window by PnL and by volume, then detail the all-time leaders."""
    if now is None:
        now = datetime.now(timezone.utc)

    snapshots: dict[str, LeaderboardSnapshot] = {}
    for window in config.SCREEN_WINDOWS:
        by_pnl = await fetch_leaderboard_pages(client, window, "PNL", config)
        by_volume = await fetch_leaderboard_pages(client, window, "VOL", config)
        snapshots[window] = LeaderboardSnapshot(by_pnl=by_pnl, by_volume=by_volume, fetched_at=now)
        log.info("screen_window_fetched", window=window, by_pnl=len(by_pnl), by_volume=len(by_volume))

    index = build_trader_index(snapshots, config.SCREEN_WINDOWS)

    leaders = snapshots["all"].by_pnl[: config.SCREEN_DETAIL_COUNT] if "all" in snapshots else []
    detailed: list[DetailedTrader] = []
    for i, trader in enumerate(leaders, start=1):
        log.debug("detailing_trader", index=i, total=len(leaders), trader=trader.display_name)
        closed = await _closed_positions(client, trader.wallet, config.CLOSED_POSITIONS_LIMIT)
        detailed.append(DetailedTrader(trader=trader, metrics=screening_metrics(closed)))
        await asyncio.sleep(config.REQUEST_DELAY_SECONDS)

    log.info("screen_complete", indexed=len(index), detailed=len(detailed))
    return ScreenerReport(fetched_at=now, snapshots=snapshots, index=index, detailed=detailed)


# ---------------------------------------------------------------------------
# Whale watching
# ---------------------------------------------------------------------------


async def refresh_watchlist(client: PolymarketClient, state: WatchState, config: EdgeConfig) -> WatchState:
    """Rebuild the watchlist, flagging copy candidates among the most efficient traders."""
    sources = await fetch_leaderboards(client, config)
    traders = aggregate_traders(sources, config.WATCH_MIN_VOLUME)

    candidates: dict[str, WatchedTrader] = {}
    for trader in rank_by_efficiency(traders, config.CANDIDATE_CHECK_COUNT):
        closed = await _closed_positions(client, trader.wallet, config.CLOSED_POSITIONS_LIMIT)
        metrics = screening_metrics(closed)
        ok, _ = apply_copy_candidate_filter(trader, metrics, config)
        if ok:
            candidates[trader.wallet] = to_watched_candidate(trader, metrics)
            log.info(
                "copy_candidate_detected",
                trader=trader.display_name,
                trades=metrics.total_trades,
                win_rate=round(metrics.win_rate, 3),
            )
        await asyncio.sleep(config.REQUEST_DELAY_SECONDS)

    watchlist = build_watchlist(traders, candidates, config.WATCH_COUNT)
    log.info(
        "watchlist_updated",
        watching=len(watchlist),
        copy_candidates=sum(1 for t in watchlist if t.is_copy_candidate),
    )
    return state.model_copy(
        update={
            "watchlist": watchlist,
            "copy_candidates": [t.wallet for t in watchlist if t.is_copy_candidate],
        }
    )


async def run_watch_cycle(
    client: PolymarketClient,
    store: JsonStore,
    notifier: AlertNotifier,
    config: EdgeConfig,
    now_ms: int | None = None,
    rng: Callable[[], float] = random.random,
) -> list[WhaleTrade]:
    """One polling pass over the watchlist.  Returns the new whale trades.

    A wallet whose activity fetch fails keeps its watermark and is simply
    re-evaluated next cycle.
    """
    state = store.load_state(now_ms)
    history = store.load_activity()

    if not state.watchlist or rng() < config.WATCHLIST_REFRESH_PROBABILITY:
        state = await refresh_watchlist(client, state, config)
        store.save_state(state)

    log.info("watch_cycle_started", traders=len(state.watchlist))

    new_trades: list[WhaleTrade] = []
    # watermarks already advanced are persisted even if a later wallet blows up
    try:
        for trader in state.watchlist:
            try:
                activity = await client.fetch_activity(trader.wallet, limit=config.ACTIVITY_PAGE_SIZE)
            except _FETCH_ERRORS as exc:
                log.warning("activity_fetch_failed", trader=trader.user_name, error=str(exc))
                continue

            trades, state = track_new_activity(trader.wallet, activity, state, config.MIN_TRADE_SIZE, now_ms)
            for trade in trades:
                new_trades.append(trade)
                await notifier.send_trade_alert(trade)
            await asyncio.sleep(config.REQUEST_DELAY_SECONDS)
    finally:
        store.save_state(state)
        newest_first = sorted(new_trades, key=lambda t: t.timestamp_ms, reverse=True)
        store.save_activity([*newest_first, *history], config.ACTIVITY_HISTORY_LIMIT)

    log.info("watch_cycle_complete", new_trades=len(new_trades))
    return new_trades


async def run_watch_daemon(
    client: PolymarketClient,
    store: JsonStore,
    notifier: AlertNotifier,
    config: EdgeConfig,
    max_cycles: int | None = None,
) -> None:
    """Run :func:`run_watch_cycle` every ``POLL_INTERVAL_SECONDS``.

    Cycle errors are logged so the loop never dies.  *max_cycles* bounds the
    loop (``None`` runs forever).
    """
    log.info(
        "watch_daemon_started",
        watch_count=config.WATCH_COUNT,
        min_trade_size=config.MIN_TRADE_SIZE,
        poll_interval=config.POLL_INTERVAL_SECONDS,
    )
    cycles = 0
    while max_cycles is None or cycles < max_cycles:
        try:
            await run_watch_cycle(client, store, notifier, config)
        except Exception:
            log.exception("watch_cycle_failed")
        cycles += 1
        if max_cycles is None or cycles < max_cycles:
            await asyncio.sleep(config.POLL_INTERVAL_SECONDS)
