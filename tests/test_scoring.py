"""Tests for the composite edge score and trader ranking."""

from __future__ import annotations

import math

import pytest

from polyedge.metrics import compute_trade_metrics
from polyedge.models import ClosedPosition, OpenPosition, TraderRecord
from polyedge.scoring import compute_edge_score, rank_traders, score_trader

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _trader(wallet: str = "0xabc", pnl: float = 50_000, volume: float = 100_000) -> TraderRecord:
    return TraderRecord(wallet=wallet, user_name=f"user-{wallet[-3:]}", pnl=pnl, volume=volume)


def _closed(*pnls: float) -> list[ClosedPosition]:
    return [ClosedPosition(realized_pnl=p) for p in pnls]


# ---------------------------------------------------------------------------
# compute_edge_score
# ---------------------------------------------------------------------------


class TestEdgeScore:
    def test_mixed_history_scores_61_7(self):
        metrics = compute_trade_metrics(_closed(100, -50, 30, -10))
        score = compute_edge_score(50_000, 100_000, metrics)

        assert score.efficiency == pytest.approx(0.5)
        assert score.efficiency_score == pytest.approx(100.0)
        assert score.win_rate_score == pytest.approx(50.0)
        assert score.profit_factor_score == pytest.approx(43.33, abs=0.01)
        assert score.consistency_score == pytest.approx(20.0)
        assert score.size_score == pytest.approx(75.0, abs=0.001)
        assert score.edge_score == 61.7

    def test_components_rounded(self):
        metrics = compute_trade_metrics(_closed(100, -50, 30, -10))
        components = compute_edge_score(50_000, 100_000, metrics).components()
        assert components == {
            "efficiency": 100.0,
            "win_rate": 50.0,
            "profit_factor": 43.3,
            "consistency": 20.0,
            "size": 75.0,
        }

    def test_negative_efficiency_contributes_zero(self):
        metrics = compute_trade_metrics([])
        score = compute_edge_score(-1_000, 10_000, metrics)
        assert score.efficiency_score == 0.0
        # 0.25*50 + 0.20*20 + 0.10*60
        assert score.edge_score == pytest.approx(22.5)

    def test_zero_volume_is_floored(self):
        metrics = compute_trade_metrics(_closed(5))
        score = compute_edge_score(10, 0, metrics)
        assert score.efficiency == pytest.approx(10.0)
        assert score.efficiency_score == 100.0
        assert score.size_score == 0.0

    def test_consistency_saturates_at_twenty_trades(self):
        metrics = compute_trade_metrics(_closed(*([10] * 25)))
        score = compute_edge_score(1_000, 10_000, metrics)
        assert score.consistency_score == 100.0

    def test_perfect_trader_caps_at_hundred(self):
        metrics = compute_trade_metrics(_closed(*([1_000] * 30)))
        score = compute_edge_score(5_000_000, 10_000_000, metrics)
        assert score.profit_factor_score == 100.0
        assert score.size_score == 100.0
        assert score.edge_score == 100.0

    @pytest.mark.parametrize(
        "pnl, volume, pnls",
        [
            (0, 0, []),
            (-1e9, 1, [-1, -2]),
            (1e9, 1, [1e6]),
            (123.4, 98765, [3, -1, 0, 7]),
            (10, -50, [1, -1]),
            (math.nan, 1000, [1]),
            (1000, math.nan, [1]),
            (math.inf, math.inf, [1, -1]),
            (-math.inf, 1000, [float("nan")]),
        ],
    )
    def test_edge_score_stays_in_range(self, pnl, volume, pnls):
        score = compute_edge_score(pnl, volume, compute_trade_metrics(_closed(*pnls)))
        assert 0.0 <= score.edge_score <= 100.0


# ---------------------------------------------------------------------------
# score_trader / rank_traders
# ---------------------------------------------------------------------------


def test_score_trader_without_history_is_neutral():
    scored = score_trader(_trader(), [])
    assert scored.metrics.win_rate == pytest.approx(0.5)
    assert scored.metrics.profit_factor == pytest.approx(1.0)
    assert scored.positions == []


def test_score_trader_keeps_positions():
    positions = [OpenPosition(condition_id="c1", outcome="Yes", size=100)]
    scored = score_trader(_trader(), _closed(10), positions)
    assert scored.positions == positions
    assert scored.wallet == "0xabc"
    assert scored.efficiency == pytest.approx(0.5)


def test_rank_traders_orders_and_truncates():
    low = score_trader(_trader("0x001", pnl=100, volume=100_000), [])
    mid = score_trader(_trader("0x002", pnl=20_000, volume=100_000), _closed(10, -5))
    high = score_trader(_trader("0x003", pnl=60_000, volume=100_000), _closed(*([10] * 20)))

    ranked = rank_traders([low, high, mid], top_n=2)

    assert [s.wallet for s in ranked] == ["0x003", "0x002"]


def test_rank_traders_without_limit():
    scored = [score_trader(_trader(f"0x00{i}", pnl=i * 1_000), []) for i in range(1, 4)]
    assert len(rank_traders(scored)) == 3


def test_nan_leaderboard_numbers_score_as_zero():
    trader = TraderRecord.model_validate({"proxyWallet": "0x1", "pnl": "NaN", "vol": 1000})
    closed = [ClosedPosition.model_validate({"realizedPnl": "NaN"}), ClosedPosition(realized_pnl=5)]

    scored = score_trader(trader, closed)

    assert trader.pnl == 0.0
    assert closed[0].realized_pnl == 0.0
    assert scored.edge.efficiency == 0.0
    assert not math.isnan(scored.edge.edge_score)
