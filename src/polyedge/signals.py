"""Signal aggregation across followed traders' open positions."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta, timezone

from polyedge.config import EdgeConfig, SIGNAL_SUPPRESSION_HOURS
from polyedge.models import (
    FollowedTrader,
    OpenPosition,
    Signal,
    SignalContributor,
    SignalSide,
    SignalTier,
)

logger = logging.getLogger(__name__)


def classify_confidence(
    trader_count: int,
    total_size: float,
    config: EdgeConfig,
) -> SignalTier | None:
    """Map a group's breadth and size to a confidence tier.

    HIGH needs ``SIGNAL_HIGH_MIN_TRADERS`` distinct traders.  MEDIUM needs
    ``SIGNAL_MEDIUM_MIN_TRADERS`` traders *or* more than
    ``SIGNAL_MEDIUM_MIN_SIZE``.  LOW needs more than ``SIGNAL_LOW_MIN_SIZE``.
    Anything else gets no tier and is dropped.
    """
    if trader_count >= config.SIGNAL_HIGH_MIN_TRADERS:
        return SignalTier.HIGH
    if trader_count >= config.SIGNAL_MEDIUM_MIN_TRADERS or total_size > config.SIGNAL_MEDIUM_MIN_SIZE:
        return SignalTier.MEDIUM
    if total_size > config.SIGNAL_LOW_MIN_SIZE:
        return SignalTier.LOW
    return None


def build_signals(
    positions: Iterable[tuple[OpenPosition, FollowedTrader]],
    config: EdgeConfig,
    now: datetime | None = None,
) -> list[Signal]:
    """Group followed traders' positions into ranked signals.

    Positions are grouped by ``(condition_id, outcome)``.  Per group:
    ``total_size`` is the sum of absolute exposures, ``avg_price`` the
    simple (unweighted) mean of each position's price, ``trader_count`` the
    number of distinct wallets.  Groups under ``MIN_SIGNAL_SIZE`` or without
    a confidence tier are dropped.  Result is sorted by ``total_size``
    descending.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    groups: dict[tuple[str, str], list[tuple[OpenPosition, FollowedTrader]]] = {}
    for pos, trader in positions:
        groups.setdefault((pos.condition_id, pos.outcome), []).append((pos, trader))

    signals: list[Signal] = []
    for (condition_id, outcome), members in groups.items():
        total_size = sum(p.exposure for p, _ in members)
        if total_size < config.MIN_SIGNAL_SIZE:
            continue

        avg_price = sum(p.price for p, _ in members) / len(members)
        trader_count = len({t.wallet for _, t in members})

        tier = classify_confidence(trader_count, total_size, config)
        if tier is None:
            logger.debug("Dropping %s/%s: size %.0f below every tier", condition_id, outcome, total_size)
            continue

        side = SignalSide.LONG if any(p.size > 0 for p, _ in members) else SignalSide.SHORT
        market = next((p.market for p, _ in members if p.market), "")

        signals.append(
            Signal(
                id=f"{condition_id}-{outcome}",
                condition_id=condition_id,
                market=market,
                outcome=outcome,
                side=side,
                tier=tier,
                confidence=config.SIGNAL_CONFIDENCE[tier.value],
                total_size=total_size,
                avg_price=avg_price,
                trader_count=trader_count,
                traders=[
                    SignalContributor(wallet=t.wallet, name=t.name, size=p.current_value or p.size)
                    for p, t in members
                ],
                timestamp=now,
            )
        )

    signals.sort(key=lambda s: s.total_size, reverse=True)
    return signals


# ---------------------------------------------------------------------------
# Signal history
# ---------------------------------------------------------------------------


def suppress_recent_signals(
    signals: Iterable[Signal],
    previous: Iterable[Signal],
    now: datetime | None = None,
    window: timedelta = timedelta(hours=SIGNAL_SUPPRESSION_HOURS),
) -> list[Signal]:
    """Drop signals whose key was already emitted within *window* of *now*."""
    if now is None:
        now = datetime.now(timezone.utc)

    recent_keys = {s.key for s in previous if now - s.timestamp < window}
    fresh = [s for s in signals if s.key not in recent_keys]
    if recent_keys:
        logger.debug("Suppressed signals against %d recent keys", len(recent_keys))
    return fresh


def merge_signal_history(
    new_signals: Sequence[Signal],
    previous: Sequence[Signal],
    limit: int,
) -> list[Signal]:
    """Newest first, trimmed to *limit* entries."""
    return [*new_signals, *previous][:limit]
