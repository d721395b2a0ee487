"""Tests for incremental activity tracking and timestamp normalization."""

from __future__ import annotations

import math

import pytest

from polyedge.models import ActivityRecord, WatchedTrader, WatchState
from polyedge.tracker import new_watch_state, normalize_timestamp, track_new_activity

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

WALLET = "0xwhale000000000000"
BASE_MS = 1_700_000_000_000  # 2023-11-14T22:13:20Z
BASE_S = BASE_MS // 1000


def _activity(timestamp, usdc: float = 20_000, side: str | None = "BUY", **extra) -> ActivityRecord:
    return ActivityRecord.model_validate(
        {
            "timestamp": timestamp,
            "usdcSize": usdc,
            "side": side,
            "outcome": "Yes",
            "eventTitle": "Big event",
            "price": 0.42,
            **extra,
        }
    )


def _state(watermark: int | None = None, **kwargs) -> WatchState:
    last_seen = {WALLET: watermark} if watermark is not None else {}
    return WatchState(last_seen=last_seen, **kwargs)


# ---------------------------------------------------------------------------
# normalize_timestamp
# ---------------------------------------------------------------------------


class TestNormalizeTimestamp:
    def test_seconds_become_millis(self):
        assert normalize_timestamp(BASE_S) == BASE_MS

    def test_millis_unchanged(self):
        assert normalize_timestamp(BASE_MS) == BASE_MS

    def test_numeric_string(self):
        assert normalize_timestamp(str(BASE_S)) == BASE_MS

    def test_iso_string(self):
        assert normalize_timestamp("2023-11-14T22:13:20Z") == BASE_MS

    def test_naive_iso_is_utc(self):
        assert normalize_timestamp("2023-11-14T22:13:20") == BASE_MS

    @pytest.mark.parametrize("value", [None, "", "not a date", -5, math.nan, math.inf, True, [1]])
    def test_unparseable(self, value):
        assert normalize_timestamp(value) is None

    def test_custom_ceiling(self):
        assert normalize_timestamp(1_000_002, seconds_ceiling=0) == 1_000_002


# ---------------------------------------------------------------------------
# track_new_activity
# ---------------------------------------------------------------------------


class TestTrackNewActivity:
    def test_raw_millisecond_watermark(self):
        # raw millisecond values, seconds detection disabled
        activity = [
            _activity(999_999),
            _activity(1_000_001, usdc=50),
            _activity(1_000_002, usdc=20_000),
        ]
        trades, state = track_new_activity(
            WALLET, activity, _state(1_000_000), min_trade_size=10_000, seconds_ceiling=0
        )

        assert [t.timestamp_ms for t in trades] == [1_000_002]
        assert state.last_seen[WALLET] == 1_000_002

    def test_epoch_seconds_feed(self):
        activity = [
            _activity(BASE_S + 120, usdc=15_000),
            _activity(BASE_S + 60, usdc=500),
            _activity(BASE_S - 60, usdc=99_000),
        ]
        trades, state = track_new_activity(WALLET, activity, _state(BASE_MS), min_trade_size=10_000)

        assert len(trades) == 1
        trade = trades[0]
        assert trade.timestamp_ms == (BASE_S + 120) * 1000
        assert trade.size == pytest.approx(15_000)
        assert trade.side == "BUY"
        assert trade.market == "Big event"
        assert trade.price == pytest.approx(0.42)
        assert state.last_seen[WALLET] == (BASE_S + 120) * 1000

    def test_never_returns_at_or_below_watermark(self):
        activity = [_activity(BASE_S), _activity(BASE_S - 1)]
        trades, _ = track_new_activity(WALLET, activity, _state(BASE_MS), min_trade_size=0)
        assert trades == []

    def test_watermark_advances_when_everything_is_too_small(self):
        activity = [_activity(BASE_S + 30, usdc=100)]
        trades, state = track_new_activity(WALLET, activity, _state(BASE_MS), min_trade_size=10_000)
        assert trades == []
        assert state.last_seen[WALLET] == (BASE_S + 30) * 1000

    def test_watermark_never_moves_backwards(self):
        activity = [_activity(BASE_S - 3_600)]
        _, state = track_new_activity(WALLET, activity, _state(BASE_MS), min_trade_size=0)
        assert state.last_seen[WALLET] == BASE_MS

    def test_unparseable_timestamps_are_skipped(self):
        activity = [_activity("garbage"), _activity(None), _activity(BASE_S + 5)]
        trades, state = track_new_activity(WALLET, activity, _state(BASE_MS), min_trade_size=0)
        assert [t.timestamp_ms for t in trades] == [(BASE_S + 5) * 1000]
        assert state.last_seen[WALLET] == (BASE_S + 5) * 1000

    def test_input_state_not_mutated(self):
        state = _state(BASE_MS)
        _, updated = track_new_activity(WALLET, [_activity(BASE_S + 10)], state, min_trade_size=0)
        assert state.last_seen[WALLET] == BASE_MS
        assert updated is not state

    def test_first_sight_uses_initialized(self):
        state = new_watch_state(now_ms=BASE_MS)
        activity = [_activity(BASE_S - 10), _activity(BASE_S + 10)]

        trades, updated = track_new_activity(WALLET, activity, state, min_trade_size=0)

        assert [t.timestamp_ms for t in trades] == [(BASE_S + 10) * 1000]
        assert updated.last_seen[WALLET] == (BASE_S + 10) * 1000

    def test_first_sight_without_initialized_uses_now(self):
        trades, updated = track_new_activity(
            WALLET, [_activity(BASE_S - 10)], WatchState(), min_trade_size=0, now_ms=BASE_MS
        )
        assert trades == []
        assert updated.last_seen[WALLET] == BASE_MS

    def test_other_wallets_untouched(self):
        state = WatchState(last_seen={WALLET: BASE_MS, "0xother": 42})
        _, updated = track_new_activity(WALLET, [], state, min_trade_size=0)
        assert updated.last_seen == {WALLET: BASE_MS, "0xother": 42}

    def test_trader_context_attached(self):
        watched = WatchedTrader(
            wallet=WALLET, user_name="Moby", pnl=1e6, volume=5e6, efficiency=0.2, is_copy_candidate=True
        )
        state = _state(BASE_MS, watchlist=[watched])

        trades, _ = track_new_activity(WALLET, [_activity(BASE_S + 1)], state, min_trade_size=0)

        assert trades[0].user_name == "Moby"
        assert trades[0].trader_pnl == pytest.approx(1e6)
        assert trades[0].is_copy_candidate

    def test_copy_candidate_list_flags_trade(self):
        state = _state(BASE_MS, copy_candidates=[WALLET])
        trades, _ = track_new_activity(WALLET, [_activity(BASE_S + 1)], state, min_trade_size=0)
        assert trades[0].is_copy_candidate
        assert trades[0].user_name == WALLET[:10]

    def test_side_inferred_from_type(self):
        record = _activity(BASE_S + 1, side=None, type="sell")
        trades, _ = track_new_activity(WALLET, [record], _state(BASE_MS), min_trade_size=0)
        assert trades[0].side == "SELL"

    def test_size_falls_back_to_shares(self):
        record = ActivityRecord.model_validate({"timestamp": BASE_S + 1, "size": -12_000})
        trades, _ = track_new_activity(WALLET, [record], _state(BASE_MS), min_trade_size=10_000)
        assert trades[0].size == pytest.approx(12_000)
