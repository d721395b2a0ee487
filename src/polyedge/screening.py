"""Copy-Candidate Screening

Hard gates a trader must clear before being flagged as worth copying:
a minimum number of decisive closed positions, a minimum win rate and a
minimum PnL/volume efficiency.  Screening uses a neutral win rate of 0, so
a wallet with no closed history never passes.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from polyedge.config import EdgeConfig, WIN_RATE_NEUTRAL_SCREENING
from polyedge.metrics import compute_trade_metrics
from polyedge.models import ClosedPosition, ScoredTrader, TradeMetrics, TraderRecord, WatchedTrader

logger = logging.getLogger(__name__)


def apply_copy_candidate_filter(
    trader: TraderRecord,
    metrics: TradeMetrics,
    config: EdgeConfig,
) -> tuple[bool, str]:
    """Check trade count, win rate and efficiency.

    Returns
    -------
    tuple[bool, str]
        ``(passes, reason_if_failed)``.  When the trader passes all gates
        the reason is ``"passed"``.
    """
    if metrics.total_trades < config.COPY_MIN_TRADES:
        return False, f"Insufficient trades: {metrics.total_trades} < {config.COPY_MIN_TRADES}"

    if metrics.win_rate < config.COPY_MIN_WIN_RATE:
        return False, f"Win rate {metrics.win_rate:.2f} < {config.COPY_MIN_WIN_RATE:.2f}"

    if trader.efficiency < config.COPY_MIN_EFFICIENCY:
        return False, f"Efficiency {trader.efficiency:.2f} < {config.COPY_MIN_EFFICIENCY:.2f}"

    return True, "passed"


def screening_metrics(closed_positions: Iterable[ClosedPosition]) -> TradeMetrics:
    """Metrics with the screening neutral win rate."""
    return compute_trade_metrics(closed_positions, neutral_win_rate=WIN_RATE_NEUTRAL_SCREENING)


def screen_copy_candidates(scored: Iterable[ScoredTrader], config: EdgeConfig) -> list[ScoredTrader]:
    """Keep traders that pass :func:`apply_copy_candidate_filter`, most efficient first."""
    passing: list[ScoredTrader] = []
    for s in scored:
        ok, reason = apply_copy_candidate_filter(s.trader, s.metrics, config)
        if ok:
            passing.append(s)
        else:
            logger.debug("Trader %s screened out: %s", s.wallet, reason)
    passing.sort(key=lambda s: s.trader.efficiency, reverse=True)
    return passing


def to_watched_candidate(trader: TraderRecord, metrics: TradeMetrics) -> WatchedTrader:
    """Watchlist entry for a trader that passed screening."""
    return WatchedTrader(
        wallet=trader.wallet,
        user_name=trader.display_name,
        pnl=trader.pnl,
        volume=trader.volume,
        efficiency=trader.efficiency,
        is_copy_candidate=True,
        win_rate=metrics.win_rate,
        total_trades=metrics.total_trades,
    )
