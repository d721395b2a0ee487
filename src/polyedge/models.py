"""Pydantic models for Polymarket data API records and derived values.

Upstream records keep the camelCase names of the data API as aliases and
support instantiation by field name as well (``populate_by_name=True``).
Numeric fields that the API may omit or null are coerced to ``0.0`` so the
scoring code degrades to neutral values instead of failing.
"""

from __future__ import annotations

import math
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _zero_if_missing(value: Any) -> Any:
    """None, empty strings and non-finite numbers (NaN, inf) become 0.0."""
    if value is None or value == "":
        return 0.0
    if isinstance(value, (int, float, str)) and not isinstance(value, bool):
        try:
            number = float(value)
        except ValueError:
            return value
        if not math.isfinite(number):
            return 0.0
    return value


# ---------------------------------------------------------------------------
# Leaderboard (GET /v1/leaderboard)
# ---------------------------------------------------------------------------

class TraderRecord(BaseModel):
    """A single leaderboard row: one wallet's cumulative PnL and volume.

    Immutable snapshot; the same wallet may appear in several leaderboard
    windows and is reconciled by :func:`polyedge.aggregator.aggregate_traders`.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    wallet: str = Field(alias="proxyWallet")
    user_name: str | None = Field(default=None, alias="userName")
    pnl: float = 0.0
    volume: float = Field(default=0.0, alias="vol")
    rank: int | str | None = None
    profile_image: str | None = Field(default=None, alias="profileImage")
    x_username: str | None = Field(default=None, alias="xUsername")

    @field_validator("pnl", "volume", mode="before")
    @classmethod
    def _coerce_numeric(cls, value: Any) -> Any:
        return _zero_if_missing(value)

    @property
    def display_name(self) -> str:
        return self.user_name or self.wallet[:10]

    @property
    def efficiency(self) -> float:
        """PnL per unit of traded volume; volume is floored at 1."""
        return self.pnl / max(self.volume, 1.0)


# ---------------------------------------------------------------------------
# Closed positions (GET /closed-positions)
# ---------------------------------------------------------------------------

class ClosedPosition(BaseModel):
    """A realized trade outcome.

    A position with ``realized_pnl > 0`` is a win, ``< 0`` a loss, and
    exactly zero is neither.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    realized_pnl: float = Field(default=0.0, alias="realizedPnl")
    condition_id: str | None = Field(default=None, alias="conditionId")
    title: str | None = None
    outcome: str | None = None

    @field_validator("realized_pnl", mode="before")
    @classmethod
    def _coerce_numeric(cls, value: Any) -> Any:
        return _zero_if_missing(value)


# ---------------------------------------------------------------------------
# Open positions (GET /positions)
# ---------------------------------------------------------------------------

class OpenPosition(BaseModel):
    """An unrealized holding.  ``size`` is signed: negative means short."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    condition_id: str = Field(default="", alias="conditionId")
    outcome: str = ""
    title: str | None = None
    event_slug: str | None = Field(default=None, alias="eventSlug")
    size: float = 0.0
    current_value: float = Field(default=0.0, alias="currentValue")
    avg_price: float = Field(default=0.0, alias="avgPrice")
    cur_price: float = Field(default=0.0, alias="curPrice")
    cash_pnl: float = Field(default=0.0, alias="cashPnl")

    @field_validator("size", "current_value", "avg_price", "cur_price", "cash_pnl", mode="before")
    @classmethod
    def _coerce_numeric(cls, value: Any) -> Any:
        return _zero_if_missing(value)

    @property
    def market(self) -> str:
        return self.title or self.event_slug or ""

    @property
    def exposure(self) -> float:
        """Absolute position value, falling back to share size."""
        return abs(self.current_value or self.size)

    @property
    def price(self) -> float:
        """Average entry price, falling back to the current market price."""
        return self.avg_price or self.cur_price


# ---------------------------------------------------------------------------
# Activity (GET /activity)
# ---------------------------------------------------------------------------

class ActivityRecord(BaseModel):
    """A single entry from a wallet's activity feed.

    ``timestamp`` is kept raw: the API reports epoch seconds, but older
    payloads carry milliseconds or ISO strings.  Normalization happens in
    :mod:`polyedge.tracker`.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    timestamp: int | float | str | None = None
    size: float = 0.0
    usdc_size: float = Field(default=0.0, alias="usdcSize")
    side: str | None = None
    type: str | None = None
    outcome: str | None = None
    title: str | None = None
    event_title: str | None = Field(default=None, alias="eventTitle")
    market: str | None = None
    slug: str | None = None
    price: float | None = None
    transaction_hash: str | None = Field(default=None, alias="transactionHash")

    @field_validator("size", "usdc_size", mode="before")
    @classmethod
    def _coerce_numeric(cls, value: Any) -> Any:
        return _zero_if_missing(value)

    @property
    def trade_size(self) -> float:
        """USDC notional of the trade, falling back to share size."""
        return abs(self.usdc_size or self.size)

    @property
    def trade_side(self) -> str:
        if self.side:
            return self.side
        return "BUY" if (self.type or "").lower() == "buy" else "SELL"

    @property
    def market_label(self) -> str:
        return self.event_title or self.market or self.slug or ""


# ---------------------------------------------------------------------------
# Followed traders
# ---------------------------------------------------------------------------

class FollowedTrader(BaseModel):
    """A wallet whose open positions feed the signal generator."""

    wallet: str
    name: str


# ---------------------------------------------------------------------------
# Computed metrics and scores
# ---------------------------------------------------------------------------

class TradeMetrics(BaseModel):
    """Win/loss statistics derived from one wallet's closed positions.

    ``avg_loss`` and ``total_losses`` are positive magnitudes.
    """

    wins: int
    losses: int
    total_trades: int
    win_rate: float
    avg_win: float
    avg_loss: float
    total_wins: float
    total_losses: float
    profit_factor: float


class EdgeScore(BaseModel):
    """Composite edge score with its unrounded sub-scores (each 0-100)."""

    edge_score: float
    efficiency: float
    efficiency_score: float
    win_rate_score: float
    profit_factor_score: float
    consistency_score: float
    size_score: float

    def components(self) -> dict[str, float]:
        """Sub-scores rounded to one decimal place, for display."""
        return {
            "efficiency": round(self.efficiency_score, 1),
            "win_rate": round(self.win_rate_score, 1),
            "profit_factor": round(self.profit_factor_score, 1),
            "consistency": round(self.consistency_score, 1),
            "size": round(self.size_score, 1),
        }


class ScoredTrader(BaseModel):
    """A trader together with the metrics and edge score computed for it."""

    trader: TraderRecord
    metrics: TradeMetrics
    edge: EdgeScore
    positions: list[OpenPosition] = Field(default_factory=list)

    @property
    def wallet(self) -> str:
        return self.trader.wallet

    @property
    def efficiency(self) -> float:
        return self.edge.efficiency


# ---------------------------------------------------------------------------
# Leaderboard screener
# ---------------------------------------------------------------------------

class WindowRanking(BaseModel):
    """Where a wallet sits on one leaderboard window."""

    pnl_rank: int | str | None = None
    pnl: float = 0.0
    volume: float = 0.0


class IndexedTrader(BaseModel):
    """One wallet deduplicated across every screened window."""

    wallet: str
    user_name: str | None = None
    profile_image: str | None = None
    x_username: str | None = None
    rankings: dict[str, WindowRanking] = Field(default_factory=dict)


class LeaderboardSnapshot(BaseModel):
    by_pnl: list[TraderRecord] = Field(default_factory=list)
    by_volume: list[TraderRecord] = Field(default_factory=list)
    fetched_at: datetime


class DetailedTrader(BaseModel):
    """An all-time leader with win/loss statistics from its closed positions."""

    trader: TraderRecord
    metrics: TradeMetrics

    @property
    def wallet(self) -> str:
        return self.trader.wallet

    @property
    def efficiency(self) -> float:
        return self.trader.efficiency


class ScreenerReport(BaseModel):
    fetched_at: datetime
    snapshots: dict[str, LeaderboardSnapshot] = Field(default_factory=dict)
    index: list[IndexedTrader] = Field(default_factory=list)
    detailed: list[DetailedTrader] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Signals
# ---------------------------------------------------------------------------

class SignalSide(str, Enum):
    LONG = "LONG"
    SHORT = "SHORT"


class SignalTier(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class SignalContributor(BaseModel):
    wallet: str
    name: str
    size: float


class Signal(BaseModel):
    """Aggregated directional view on one ``(condition_id, outcome)`` pair."""

    id: str
    condition_id: str
    market: str
    outcome: str
    side: SignalSide
    tier: SignalTier
    confidence: float
    total_size: float
    avg_price: float
    trader_count: int
    traders: list[SignalContributor]
    timestamp: datetime

    @property
    def key(self) -> tuple[str, str]:
        return (self.condition_id, self.outcome)


# ---------------------------------------------------------------------------
# Whale watching
# ---------------------------------------------------------------------------

class WatchedTrader(BaseModel):
    """A watchlist entry."""

    wallet: str
    user_name: str
    pnl: float = 0.0
    volume: float = 0.0
    efficiency: float = 0.0
    is_copy_candidate: bool = False
    win_rate: float | None = None
    total_trades: int | None = None


class WatchState(BaseModel):
    """Persisted state of the whale watcher.

    ``last_seen`` maps wallet -> watermark in epoch milliseconds.
    ``initialized`` seeds the watermark of wallets seen for the first time
    so historical backlog is not alerted on.
    """

    last_seen: dict[str, int] = Field(default_factory=dict)
    watchlist: list[WatchedTrader] = Field(default_factory=list)
    initialized: int | None = None
    copy_candidates: list[str] = Field(default_factory=list)


class WhaleTrade(BaseModel):
    """A new, size-qualifying trade by a watched wallet."""

    wallet: str
    user_name: str
    side: str
    outcome: str
    market: str
    size: float
    price: float | None = None
    timestamp: int | float | str | None = None
    timestamp_ms: int
    trader_pnl: float | None = None
    trader_volume: float | None = None
    is_copy_candidate: bool = False
