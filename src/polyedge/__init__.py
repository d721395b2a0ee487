"""Polymarket trader edge scoring, copy signals and whale alerts."""

from polyedge.models import (
    EdgeScore,
    ScoredTrader,
    Signal,
    SignalSide,
    SignalTier,
    TradeMetrics,
    TraderRecord,
    WhaleTrade,
)
from polyedge.metrics import compute_trade_metrics
from polyedge.scoring import compute_edge_score, score_trader
from polyedge.aggregator import aggregate_traders
from polyedge.signals import build_signals
from polyedge.tracker import normalize_timestamp, track_new_activity

__version__ = "0.1.0"
