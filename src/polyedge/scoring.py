"""Edge scoring and ranking of traders."""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence

from polyedge.config import (
    CONSISTENCY_FULL_TRADES,
    EDGE_WEIGHTS,
    EFFICIENCY_SCALE,
    PROFIT_FACTOR_SCALE,
    SIZE_LOG_SCALE,
    SUB_SCORE_MAX,
    WIN_RATE_NEUTRAL_EDGE,
)
from polyedge.metrics import compute_trade_metrics
from polyedge.models import (
    ClosedPosition,
    EdgeScore,
    OpenPosition,
    ScoredTrader,
    TradeMetrics,
    TraderRecord,
)


def _clamp(value: float) -> float:
    if math.isnan(value):
        return 0.0
    return min(max(value, 0.0), SUB_SCORE_MAX)


def compute_edge_score(pnl: float, volume: float, metrics: TradeMetrics) -> EdgeScore:
    """Compute the composite EDGE_SCORE.

    Formula:
        0.30 * efficiency_score + 0.25 * win_rate_score
        + 0.20 * profit_factor_score + 0.15 * consistency_score
        + 0.10 * size_score

    where
        efficiency_score    = min(pnl / max(volume, 1) * 200, 100)
        win_rate_score      = win_rate * 100
        profit_factor_score = min(profit_factor * 20, 100)
        consistency_score   = min(total_trades / 20, 1) * 100
        size_score          = min(log10(volume + 1) * 15, 100)

    Each sub-score is clamped to [0, 100] before weighting, so a losing
    trader's negative efficiency contributes 0 rather than dragging the
    total below zero.  Only the final score is rounded (one decimal).
    """
    efficiency = pnl / max(volume, 1.0)
    if not math.isfinite(efficiency):
        efficiency = 0.0

    efficiency_score = _clamp(efficiency * EFFICIENCY_SCALE)
    win_rate_score = _clamp(metrics.win_rate * 100)
    profit_factor_score = _clamp(metrics.profit_factor * PROFIT_FACTOR_SCALE)
    if metrics.total_trades >= CONSISTENCY_FULL_TRADES:
        consistency_score = SUB_SCORE_MAX
    else:
        consistency_score = _clamp(metrics.total_trades / CONSISTENCY_FULL_TRADES * 100)
    # log10 argument is at least 1 for any non-negative volume
    size_score = _clamp(math.log10(max(volume, 0.0) + 1) * SIZE_LOG_SCALE)

    raw_score = (
        EDGE_WEIGHTS["efficiency"] * efficiency_score
        + EDGE_WEIGHTS["win_rate"] * win_rate_score
        + EDGE_WEIGHTS["profit_factor"] * profit_factor_score
        + EDGE_WEIGHTS["consistency"] * consistency_score
        + EDGE_WEIGHTS["size"] * size_score
    )

    return EdgeScore(
        edge_score=round(raw_score, 1),
        efficiency=efficiency,
        efficiency_score=efficiency_score,
        win_rate_score=win_rate_score,
        profit_factor_score=profit_factor_score,
        consistency_score=consistency_score,
        size_score=size_score,
    )


def score_trader(
    trader: TraderRecord,
    closed_positions: Iterable[ClosedPosition],
    open_positions: Sequence[OpenPosition] | None = None,
) -> ScoredTrader:
    """Score one trader from its leaderboard record and closed positions.

    An empty ``closed_positions`` list (e.g. a failed fetch) yields the
    neutral win rate and profit factor rather than an error.
    """
    metrics = compute_trade_metrics(closed_positions, neutral_win_rate=WIN_RATE_NEUTRAL_EDGE)
    edge = compute_edge_score(trader.pnl, trader.volume, metrics)
    return ScoredTrader(
        trader=trader,
        metrics=metrics,
        edge=edge,
        positions=list(open_positions or []),
    )


def rank_traders(scored: Iterable[ScoredTrader], top_n: int | None = None) -> list[ScoredTrader]:
    """Sort by edge score descending and keep the first *top_n*."""
    ranked = sorted(scored, key=lambda s: s.edge.edge_score, reverse=True)
    if top_n is not None:
        ranked = ranked[:top_n]
    return ranked
