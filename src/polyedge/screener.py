"""Leaderboard Screener

Cross-window trader index and the report sections built from leaderboard
snapshots plus detailed stats of the all-time leaders:

- top by all-time profit
- hot hands (today's PnL leaders)
- volume leaders
- top by efficiency (PnL per unit volume, volume floor applied)
- consistent winners (win rate, volume and trade-count gates)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence

from polyedge.aggregator import rank_by_efficiency
from polyedge.config import EdgeConfig
from polyedge.models import (
    DetailedTrader,
    IndexedTrader,
    LeaderboardSnapshot,
    ScreenerReport,
    TraderRecord,
    WindowRanking,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Trader index
# ---------------------------------------------------------------------------


def build_trader_index(
    snapshots: Mapping[str, LeaderboardSnapshot],
    windows: Sequence[str] | None = None,
) -> list[IndexedTrader]:
    """Deduplicate wallets across windows and record each window's ranking.

    Windows are walked in *windows* order (default: mapping order), PnL
    board before volume board.  The first record seen for a wallet fixes
    its identity fields.  Within one window a later record overwrites the
    earlier ranking, so a wallet on both boards keeps its volume-board row.
    """
    index: dict[str, IndexedTrader] = {}
    for window in windows if windows is not None else list(snapshots):
        snapshot = snapshots.get(window)
        if snapshot is None:
            continue
        for record in [*snapshot.by_pnl, *snapshot.by_volume]:
            entry = index.get(record.wallet)
            if entry is None:
                entry = IndexedTrader(
                    wallet=record.wallet,
                    user_name=record.user_name,
                    profile_image=record.profile_image,
                    x_username=record.x_username,
                )
                index[record.wallet] = entry
            entry.rankings[window] = WindowRanking(pnl_rank=record.rank, pnl=record.pnl, volume=record.volume)

    logger.debug("Indexed %d unique wallets across %d windows", len(index), len(snapshots))
    return list(index.values())


# ---------------------------------------------------------------------------
# Report sections
# ---------------------------------------------------------------------------


def _board(report: ScreenerReport, window: str, order: str) -> list[TraderRecord]:
    snapshot = report.snapshots.get(window)
    if snapshot is None:
        return []
    return snapshot.by_pnl if order == "pnl" else snapshot.by_volume


def top_by_profit(report: ScreenerReport, limit: int = 20) -> list[TraderRecord]:
    return _board(report, "all", "pnl")[:limit]


def hot_hands(report: ScreenerReport, limit: int = 10) -> list[TraderRecord]:
    """Today's biggest winners."""
    return _board(report, "day", "pnl")[:limit]


def volume_leaders(report: ScreenerReport, limit: int = 10) -> list[TraderRecord]:
    return _board(report, "all", "volume")[:limit]


def top_by_efficiency(
    detailed: Iterable[DetailedTrader],
    min_volume: float,
    limit: int = 10,
) -> list[DetailedTrader]:
    """Detailed traders with ``volume > min_volume``, most efficient first."""
    eligible = {d.wallet: d for d in detailed if d.trader.volume > min_volume}
    ranked = rank_by_efficiency((d.trader for d in eligible.values()), limit)
    return [eligible[t.wallet] for t in ranked]


def consistent_winners(
    detailed: Iterable[DetailedTrader],
    config: EdgeConfig,
    limit: int = 10,
) -> list[DetailedTrader]:
    """High win rate traders with real volume and enough decisive trades.

    Gates: ``win_rate >= CONSISTENT_MIN_WIN_RATE``, ``volume >
    CONSISTENT_MIN_VOLUME`` and ``total_trades >= CONSISTENT_MIN_TRADES``.
    Sorted by win rate descending; ties keep input order.
    """
    passing = [
        d for d in detailed
        if d.metrics.win_rate >= config.CONSISTENT_MIN_WIN_RATE
        and d.trader.volume > config.CONSISTENT_MIN_VOLUME
        and d.metrics.total_trades >= config.CONSISTENT_MIN_TRADES
    ]
    passing.sort(key=lambda d: d.metrics.win_rate, reverse=True)
    return passing[:limit]
