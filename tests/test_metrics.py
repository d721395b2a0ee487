"""Tests for win/loss metrics over closed positions."""

from __future__ import annotations

import pytest

from polyedge.config import PROFIT_FACTOR_CEILING, PROFIT_FACTOR_NEUTRAL
from polyedge.metrics import compute_profit_factor, compute_trade_metrics
from polyedge.models import ClosedPosition

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _closed(*pnls: float | None) -> list[ClosedPosition]:
    return [ClosedPosition.model_validate({"realizedPnl": p}) for p in pnls]


# ---------------------------------------------------------------------------
# compute_trade_metrics
# ---------------------------------------------------------------------------


def test_mixed_wins_and_losses():
    m = compute_trade_metrics(_closed(100, -50, 30, -10))
    assert m.wins == 2
    assert m.losses == 2
    assert m.total_trades == 4
    assert m.win_rate == pytest.approx(0.5)
    assert m.total_wins == pytest.approx(130)
    assert m.total_losses == pytest.approx(60)
    assert m.profit_factor == pytest.approx(2.1667, rel=1e-4)


def test_averages_are_positive_magnitudes():
    m = compute_trade_metrics(_closed(100, -50, 30, -10))
    assert m.avg_win == pytest.approx(65)
    assert m.avg_loss == pytest.approx(30)


def test_zero_pnl_counts_as_neither():
    m = compute_trade_metrics(_closed(0, 0, 50))
    assert m.wins == 1
    assert m.losses == 0
    assert m.total_trades == 1
    assert m.win_rate == pytest.approx(1.0)


def test_missing_pnl_is_treated_as_zero():
    m = compute_trade_metrics(_closed(None, "", 10))
    assert m.total_trades == 1


def test_wins_plus_losses_never_exceed_records():
    positions = _closed(5, -3, 0, 0, 12, -1, 0)
    m = compute_trade_metrics(positions)
    assert m.wins + m.losses <= len(positions)
    assert 0.0 <= m.win_rate <= 1.0


def test_empty_uses_neutral_win_rate():
    m = compute_trade_metrics([])
    assert m.total_trades == 0
    assert m.win_rate == pytest.approx(0.5)
    assert m.avg_win == 0.0
    assert m.avg_loss == 0.0
    assert m.profit_factor == PROFIT_FACTOR_NEUTRAL


def test_empty_with_screening_neutral():
    m = compute_trade_metrics([], neutral_win_rate=0.0)
    assert m.win_rate == 0.0


def test_accepts_generator():
    m = compute_trade_metrics(p for p in _closed(10, -5))
    assert m.total_trades == 2
    assert m.total_wins == pytest.approx(10)


# ---------------------------------------------------------------------------
# compute_profit_factor
# ---------------------------------------------------------------------------


class TestProfitFactor:
    def test_ratio(self):
        assert compute_profit_factor(300, 100) == pytest.approx(3.0)

    def test_no_losses_hits_ceiling(self):
        assert compute_profit_factor(500, 0) == PROFIT_FACTOR_CEILING

    def test_nothing_is_neutral(self):
        assert compute_profit_factor(0, 0) == PROFIT_FACTOR_NEUTRAL

    def test_only_losses(self):
        assert compute_profit_factor(0, 40) == 0.0
