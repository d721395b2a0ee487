"""Flat-file JSON persistence for watcher state, signals and results."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter, ValidationError

from polyedge.models import (
    DetailedTrader,
    FollowedTrader,
    IndexedTrader,
    LeaderboardSnapshot,
    ScoredTrader,
    ScreenerReport,
    Signal,
    WatchState,
    WhaleTrade,
)
from polyedge.tracker import new_watch_state

logger = logging.getLogger(__name__)

STATE_FILE = "whale-state.json"
ACTIVITY_FILE = "whale-activity.json"
SIGNALS_FILE = "signals.json"
FOLLOWING_FILE = "following.json"
EDGE_FILE = "edge-traders.json"
CANDIDATES_FILE = "copy-candidates.json"
LEADERBOARD_FILE = "leaderboard.json"
TRADERS_FILE = "traders.json"
DETAILED_FILE = "top-traders-detailed.json"

DEFAULT_FOLLOW = [
    FollowedTrader(wallet="0x6a72f61820b26b1fe4d956e17b6dc2a1ea3033ee", name="kch123"),
    FollowedTrader(wallet="0xd91d2cbbfa4342cf425b5f10f734eb5d4e3cda67", name="Theo4"),
    FollowedTrader(wallet="0xb8c0c7f24ebc8f67f8e86fb8d8a16e89e2e1f63d", name="Fredi9999"),
]

_signals_adapter = TypeAdapter(list[Signal])
_trades_adapter = TypeAdapter(list[WhaleTrade])
_following_adapter = TypeAdapter(list[FollowedTrader])
_snapshots_adapter = TypeAdapter(dict[str, LeaderboardSnapshot])
_index_adapter = TypeAdapter(list[IndexedTrader])
_detailed_adapter = TypeAdapter(list[DetailedTrader])


class StoreError(Exception):
    """Raised when a persisted file exists but cannot be decoded."""


class JsonStore:
    """Reads and writes the JSON files under *data_dir*.

    Missing files yield empty defaults.  Every write goes to a temp file in
    the same directory and is renamed into place.
    """

    def __init__(self, data_dir: str | Path) -> None:
        self.data_dir = Path(data_dir)

    # -- raw I/O --------------------------------------------------------------

    def _path(self, name: str) -> Path:
        return self.data_dir / name

    def _read(self, name: str) -> Any | None:
        path = self._path(name)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise StoreError(f"Corrupt JSON in {path}: {exc}") from exc

    def _write(self, name: str, payload: Any) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        target = self._path(name)
        fd, tmp_path = tempfile.mkstemp(dir=self.data_dir, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            os.replace(tmp_path, target)
        except Exception:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        logger.debug("Wrote %s", target)

    def _validate(self, name: str, adapter: TypeAdapter, raw: Any) -> Any:
        try:
            return adapter.validate_python(raw)
        except ValidationError as exc:
            raise StoreError(f"Invalid contents in {self._path(name)}: {exc}") from exc

    # -- watch state ----------------------------------------------------------

    def load_state(self, now_ms: int | None = None) -> WatchState:
        """Load the watcher state, seeding a fresh one on first run."""
        raw = self._read(STATE_FILE)
        if raw is None:
            logger.info("No watch state found, initializing to capture only new trades")
            return new_watch_state(now_ms)
        try:
            return WatchState.model_validate(raw)
        except ValidationError as exc:
            raise StoreError(f"Invalid watch state in {self._path(STATE_FILE)}: {exc}") from exc

    def save_state(self, state: WatchState) -> None:
        self._write(STATE_FILE, state.model_dump(mode="json"))

    # -- whale activity -------------------------------------------------------

    def load_activity(self) -> list[WhaleTrade]:
        raw = self._read(ACTIVITY_FILE)
        return [] if raw is None else self._validate(ACTIVITY_FILE, _trades_adapter, raw)

    def save_activity(self, trades: list[WhaleTrade], limit: int) -> None:
        """Persist newest-first activity, keeping at most *limit* entries."""
        self._write(ACTIVITY_FILE, _trades_adapter.dump_python(trades[:limit], mode="json"))

    # -- signals --------------------------------------------------------------

    def load_signals(self) -> list[Signal]:
        raw = self._read(SIGNALS_FILE)
        return [] if raw is None else self._validate(SIGNALS_FILE, _signals_adapter, raw)

    def save_signals(self, signals: list[Signal]) -> None:
        self._write(SIGNALS_FILE, _signals_adapter.dump_python(signals, mode="json"))

    # -- following ------------------------------------------------------------

    def load_following(self) -> list[FollowedTrader]:
        raw = self._read(FOLLOWING_FILE)
        if raw is None:
            return list(DEFAULT_FOLLOW)
        return self._validate(FOLLOWING_FILE, _following_adapter, raw)

    def save_following(self, following: list[FollowedTrader]) -> None:
        self._write(FOLLOWING_FILE, _following_adapter.dump_python(following, mode="json"))

    # -- ranked results -------------------------------------------------------

    def save_scored(self, kind: str, scored: list[ScoredTrader], now: datetime | None = None) -> None:
        """Persist edge results (``kind="edge"``) or copy candidates (``kind="candidates"``)."""
        name = {"edge": EDGE_FILE, "candidates": CANDIDATES_FILE}[kind]
        fetched_at = (now or datetime.now(timezone.utc)).isoformat()
        self._write(
            name,
            {
                "fetched_at": fetched_at,
                "count": len(scored),
                "traders": [s.model_dump(mode="json") for s in scored],
            },
        )

    # -- leaderboard screener -------------------------------------------------

    def save_screen(self, report: ScreenerReport) -> None:
        """Write the window snapshots, the trader index and the detailed leaders."""
        self._write(LEADERBOARD_FILE, _snapshots_adapter.dump_python(report.snapshots, mode="json"))
        self._write(TRADERS_FILE, _index_adapter.dump_python(report.index, mode="json"))
        self._write(DETAILED_FILE, _detailed_adapter.dump_python(report.detailed, mode="json"))

    def load_screen(self) -> ScreenerReport | None:
        """Rebuild the last screener report, or ``None`` if none was saved.

        The index and detailed files are optional; the snapshots are not.
        """
        raw = self._read(LEADERBOARD_FILE)
        if not raw:
            return None
        snapshots = self._validate(LEADERBOARD_FILE, _snapshots_adapter, raw)
        raw_index = self._read(TRADERS_FILE)
        raw_detailed = self._read(DETAILED_FILE)
        return ScreenerReport(
            fetched_at=max(s.fetched_at for s in snapshots.values()),
            snapshots=snapshots,
            index=[] if raw_index is None else self._validate(TRADERS_FILE, _index_adapter, raw_index),
            detailed=[] if raw_detailed is None else self._validate(DETAILED_FILE, _detailed_adapter, raw_detailed),
        )
