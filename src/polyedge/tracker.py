"""Incremental activity tracking with per-wallet watermarks.

Each watched wallet carries a watermark: the newest trade timestamp seen so
far, in epoch milliseconds.  A poll returns only trades strictly newer than
the watermark and large enough to matter, then advances the watermark past
everything fetched (small trades included) so nothing is evaluated twice.

The tracker never mutates the state it is given; it returns an updated
copy.  Callers must not track the same wallet concurrently.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from polyedge.config import SECONDS_TIMESTAMP_CEILING
from polyedge.models import ActivityRecord, WatchedTrader, WatchState, WhaleTrade

logger = logging.getLogger(__name__)


def current_millis() -> int:
    return int(time.time() * 1000)


def normalize_timestamp(value: Any, seconds_ceiling: float = SECONDS_TIMESTAMP_CEILING) -> int | None:
    """Convert a raw activity timestamp to epoch milliseconds.

    Numbers (and numeric strings) below *seconds_ceiling* are epoch seconds
    and get multiplied by 1000.  Other strings are parsed as ISO-8601, naive
    values taken as UTC.  Returns ``None`` for anything unparseable.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            value = float(text)
        except ValueError:
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                return None
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return int(parsed.timestamp() * 1000)

    if not isinstance(value, (int, float)) or not math.isfinite(value) or value < 0:
        return None
    if value < seconds_ceiling:
        value = value * 1000
    return int(value)


def new_watch_state(now_ms: int | None = None) -> WatchState:
    """Fresh state whose watermarks start at *now_ms*, not the epoch."""
    return WatchState(initialized=now_ms if now_ms is not None else current_millis())


def _find_trader(state: WatchState, wallet: str) -> WatchedTrader | None:
    return next((t for t in state.watchlist if t.wallet == wallet), None)


def track_new_activity(
    wallet: str,
    activity: Iterable[ActivityRecord],
    state: WatchState,
    min_trade_size: float,
    now_ms: int | None = None,
    seconds_ceiling: float = SECONDS_TIMESTAMP_CEILING,
) -> tuple[list[WhaleTrade], WatchState]:
    """Return the new qualifying trades for *wallet* and the advanced state.

    The watermark for a wallet never seen before is ``state.initialized``,
    falling back to *now_ms*.  A trade qualifies when its timestamp is
    strictly greater than the watermark and its size is at least
    *min_trade_size*.  Records with unparseable timestamps are skipped.

    The returned state stores ``max(watermark, newest fetched timestamp)``
    for the wallet, so the watermark never moves backwards.
    """
    watermark = state.last_seen.get(wallet)
    if watermark is None:
        watermark = state.initialized if state.initialized is not None else (
            now_ms if now_ms is not None else current_millis()
        )

    trader = _find_trader(state, wallet)
    is_copy_candidate = wallet in state.copy_candidates or bool(trader and trader.is_copy_candidate)

    newest = watermark
    new_trades: list[WhaleTrade] = []
    for record in activity:
        ts = normalize_timestamp(record.timestamp, seconds_ceiling)
        if ts is None:
            logger.debug("Skipping activity for %s with unparseable timestamp %r", wallet, record.timestamp)
            continue
        newest = max(newest, ts)

        if ts <= watermark:
            continue
        if record.trade_size < min_trade_size:
            continue

        new_trades.append(
            WhaleTrade(
                wallet=wallet,
                user_name=trader.user_name if trader else wallet[:10],
                side=record.trade_side,
                outcome=record.outcome or record.title or "",
                market=record.market_label,
                size=record.trade_size,
                price=record.price,
                timestamp=record.timestamp,
                timestamp_ms=ts,
                trader_pnl=trader.pnl if trader else None,
                trader_volume=trader.volume if trader else None,
                is_copy_candidate=is_copy_candidate,
            )
        )

    updated = state.model_copy(update={"last_seen": {**state.last_seen, wallet: newest}})
    return new_trades, updated
