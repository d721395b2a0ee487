"""
Metrics Calculator

Computes win/loss statistics for one wallet from its closed positions:
- Win rate over decisive positions (zero PnL counts as neither)
- Average win / average loss (as positive magnitudes)
- Profit factor with a fixed ceiling when there are no losses
"""

from __future__ import annotations

from collections.abc import Iterable

from polyedge.config import (
    PROFIT_FACTOR_CEILING,
    PROFIT_FACTOR_NEUTRAL,
    WIN_RATE_NEUTRAL_EDGE,
)
from polyedge.models import ClosedPosition, TradeMetrics


def compute_profit_factor(total_wins: float, total_losses: float) -> float:
    """Gross wins over gross losses.

    Returns ``PROFIT_FACTOR_CEILING`` when there are wins but no losses and
    ``PROFIT_FACTOR_NEUTRAL`` when there is neither.
    """
    if total_losses > 0:
        return total_wins / total_losses
    if total_wins > 0:
        return PROFIT_FACTOR_CEILING
    return PROFIT_FACTOR_NEUTRAL


def compute_trade_metrics(
    positions: Iterable[ClosedPosition],
    neutral_win_rate: float = WIN_RATE_NEUTRAL_EDGE,
) -> TradeMetrics:
    """
    Compute win-rate and profit statistics from closed positions.

    Args:
        positions: Closed positions for a single wallet, in any order
        neutral_win_rate: Win rate to report when there are no decisive
            positions.  Edge scoring uses ``WIN_RATE_NEUTRAL_EDGE`` (0.5),
            copy-candidate screening ``WIN_RATE_NEUTRAL_SCREENING`` (0).

    Returns:
        TradeMetrics with ``wins + losses == total_trades``
    """
    records = list(positions)
    winning = [p.realized_pnl for p in records if p.realized_pnl > 0]
    losing = [p.realized_pnl for p in records if p.realized_pnl < 0]

    total_trades = len(winning) + len(losing)
    win_rate = len(winning) / total_trades if total_trades > 0 else neutral_win_rate

    total_wins = sum(winning)
    total_losses = abs(sum(losing))

    avg_win = total_wins / len(winning) if winning else 0.0
    avg_loss = total_losses / len(losing) if losing else 0.0

    return TradeMetrics(
        wins=len(winning),
        losses=len(losing),
        total_trades=total_trades,
        win_rate=win_rate,
        avg_win=avg_win,
        avg_loss=avg_loss,
        total_wins=total_wins,
        total_losses=total_losses,
        profit_factor=compute_profit_factor(total_wins, total_losses),
    )
