"""Tests for the flat-file JSON store."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from polyedge.models import (
    ClosedPosition,
    DetailedTrader,
    FollowedTrader,
    LeaderboardSnapshot,
    ScreenerReport,
    Signal,
    SignalContributor,
    SignalSide,
    SignalTier,
    TraderRecord,
    WhaleTrade,
)
from polyedge.scoring import score_trader
from polyedge.screener import build_trader_index
from polyedge.screening import screening_metrics
from polyedge.store import (
    DEFAULT_FOLLOW,
    DETAILED_FILE,
    EDGE_FILE,
    LEADERBOARD_FILE,
    STATE_FILE,
    StoreError,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def _trade(ts_ms: int) -> WhaleTrade:
    return WhaleTrade(
        wallet="0xw",
        user_name="whale",
        side="BUY",
        outcome="Yes",
        market="m",
        size=20_000,
        timestamp=ts_ms // 1000,
        timestamp_ms=ts_ms,
    )


def _signal(condition_id: str = "c1") -> Signal:
    return Signal(
        id=f"{condition_id}-Yes",
        condition_id=condition_id,
        market="Will it happen?",
        outcome="Yes",
        side=SignalSide.LONG,
        tier=SignalTier.MEDIUM,
        confidence=0.6,
        total_size=55_000,
        avg_price=0.5,
        trader_count=2,
        traders=[SignalContributor(wallet="0xa", name="a", size=30_000)],
        timestamp=NOW,
    )


# ---------------------------------------------------------------------------
# Watch state
# ---------------------------------------------------------------------------


class TestWatchState:
    def test_missing_state_is_seeded_with_now(self, store):
        state = store.load_state(now_ms=1_700_000_000_000)
        assert state.initialized == 1_700_000_000_000
        assert state.last_seen == {}
        assert state.watchlist == []

    def test_round_trip(self, store):
        state = store.load_state(now_ms=5).model_copy(update={"last_seen": {"0xw": 10}, "copy_candidates": ["0xw"]})
        store.save_state(state)
        assert store.load_state() == state

    def test_corrupt_state_raises(self, store):
        store.data_dir.mkdir(parents=True)
        (store.data_dir / STATE_FILE).write_text("{not json", encoding="utf-8")
        with pytest.raises(StoreError, match="Corrupt JSON"):
            store.load_state()

    def test_invalid_state_raises(self, store):
        store.data_dir.mkdir(parents=True)
        (store.data_dir / STATE_FILE).write_text(json.dumps({"last_seen": "nope"}), encoding="utf-8")
        with pytest.raises(StoreError, match="Invalid watch state"):
            store.load_state()

    def test_write_leaves_no_temp_files(self, store):
        store.save_state(store.load_state(now_ms=1))
        assert [p.name for p in store.data_dir.iterdir()] == [STATE_FILE]


# ---------------------------------------------------------------------------
# Activity / signals / following
# ---------------------------------------------------------------------------


def test_activity_trimmed_to_limit(store):
    trades = [_trade(1_700_000_000_000 + i) for i in range(5)]
    store.save_activity(trades, limit=3)
    assert store.load_activity() == trades[:3]


def test_missing_files_yield_defaults(store):
    assert store.load_activity() == []
    assert store.load_signals() == []
    assert store.load_following() == DEFAULT_FOLLOW


def test_signals_round_trip(store):
    signals = [_signal("c1"), _signal("c2")]
    store.save_signals(signals)
    loaded = store.load_signals()
    assert loaded == signals
    assert loaded[0].timestamp.tzinfo is not None


def test_following_round_trip(store):
    following = [FollowedTrader(wallet="0x1", name="one")]
    store.save_following(following)
    assert store.load_following() == following


def test_save_scored(store):
    scored = [score_trader(TraderRecord(wallet="0xa", pnl=1_000, volume=10_000), [])]
    store.save_scored("edge", scored, now=NOW)

    payload = json.loads((store.data_dir / EDGE_FILE).read_text(encoding="utf-8"))
    assert payload["count"] == 1
    assert payload["fetched_at"] == NOW.isoformat()
    assert payload["traders"][0]["trader"]["wallet"] == "0xa"
    assert payload["traders"][0]["edge"]["edge_score"] == scored[0].edge.edge_score


class TestScreenReport:
    def _report(self) -> ScreenerReport:
        leader = TraderRecord(wallet="0xa", user_name="alpha", pnl=9_000, volume=50_000, rank=1)
        snapshots = {
            "day": LeaderboardSnapshot(by_pnl=[], by_volume=[], fetched_at=NOW),
            "all": LeaderboardSnapshot(by_pnl=[leader], by_volume=[leader], fetched_at=NOW),
        }
        closed = [ClosedPosition(realized_pnl=10), ClosedPosition(realized_pnl=-5)]
        return ScreenerReport(
            fetched_at=NOW,
            snapshots=snapshots,
            index=build_trader_index(snapshots),
            detailed=[DetailedTrader(trader=leader, metrics=screening_metrics(closed))],
        )

    def test_round_trip(self, store):
        report = self._report()
        store.save_screen(report)
        assert store.load_screen() == report

    def test_files_written(self, store):
        store.save_screen(self._report())

        snapshots = json.loads((store.data_dir / LEADERBOARD_FILE).read_text(encoding="utf-8"))
        detailed = json.loads((store.data_dir / DETAILED_FILE).read_text(encoding="utf-8"))
        assert set(snapshots) == {"day", "all"}
        assert snapshots["all"]["by_pnl"][0]["wallet"] == "0xa"
        assert detailed[0]["metrics"]["wins"] == 1

    def test_missing_report(self, store):
        assert store.load_screen() is None

    def test_detailed_file_optional(self, store):
        store.save_screen(self._report())
        (store.data_dir / DETAILED_FILE).unlink()
        assert store.load_screen().detailed == []
