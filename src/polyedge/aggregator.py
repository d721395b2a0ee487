"""Trader Aggregator

Merges leaderboard snapshots from several time windows into one candidate
set and turns candidates into a whale-watching watchlist.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence

from polyedge.models import TraderRecord, WatchedTrader

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_PRECEDENCE = ("all", "month", "week")


# ---------------------------------------------------------------------------
# Multi-window merge
# ---------------------------------------------------------------------------


def order_sources(
    by_window: Mapping[str, Sequence[TraderRecord]],
    precedence: Sequence[str] = DEFAULT_WINDOW_PRECEDENCE,
) -> list[Sequence[TraderRecord]]:
    """Arrange per-window leaderboards in merge order.

    Windows listed in *precedence* come first, in that order.  Any other
    windows follow in mapping order.
    """
    ordered = [by_window[w] for w in precedence if w in by_window]
    ordered.extend(records for w, records in by_window.items() if w not in precedence)
    return ordered


def aggregate_traders(
    sources: Iterable[Iterable[TraderRecord]],
    min_volume: float,
) -> list[TraderRecord]:
    """Deduplicate traders across leaderboard windows, first-seen-wins.

    *sources* is processed in the given order.  When a wallet appears more
    than once, the earliest record is kept verbatim and later ones are
    dropped, not merged.  Deduplication happens before filtering, so a
    wallet whose first record fails the filter is excluded even if a later
    window would have passed.

    Survivors must have ``pnl > 0`` and ``volume >= min_volume``.  The
    result keeps first-seen order, which makes the function idempotent.
    """
    first_seen: dict[str, TraderRecord] = {}
    for records in sources:
        for record in records:
            if record.wallet not in first_seen:
                first_seen[record.wallet] = record

    candidates = [
        t for t in first_seen.values()
        if t.pnl > 0 and t.volume >= min_volume
    ]
    logger.debug(
        "Aggregated %d unique wallets into %d candidates (min_volume=%.0f)",
        len(first_seen),
        len(candidates),
        min_volume,
    )
    return candidates


# ---------------------------------------------------------------------------
# Watchlist
# ---------------------------------------------------------------------------


def rank_by_efficiency(traders: Iterable[TraderRecord], limit: int | None = None) -> list[TraderRecord]:
    """Most capital-efficient traders first."""
    ranked = sorted(traders, key=lambda t: t.efficiency, reverse=True)
    return ranked[:limit] if limit is not None else ranked


def build_watchlist(
    traders: Iterable[TraderRecord],
    candidates: Mapping[str, WatchedTrader] | None = None,
    watch_count: int = 50,
) -> list[WatchedTrader]:
    """Build the whale-watching list.

    *candidates* maps wallet -> screened entry for traders that passed the
    copy-candidate filter; those entries replace the plain ones.  Copy
    candidates come first, then everyone else by efficiency descending.
    """
    candidates = candidates or {}
    entries: list[WatchedTrader] = []
    for trader in traders:
        if trader.wallet in candidates:
            entries.append(candidates[trader.wallet])
            continue
        entries.append(
            WatchedTrader(
                wallet=trader.wallet,
                user_name=trader.display_name,
                pnl=trader.pnl,
                volume=trader.volume,
                efficiency=trader.efficiency,
            )
        )

    entries.sort(key=lambda e: (not e.is_copy_candidate, -e.efficiency))
    return entries[:watch_count]
