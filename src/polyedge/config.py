"""Centralized configuration for trader scoring, signals and whale watching.

Fixed formula constants live at module level so every caller shares one
value.  Tunable thresholds live on :class:`EdgeConfig` and can be
overridden through ``POLYEDGE_*`` environment variables.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

# ---------------------------------------------------------------------------
# Edge score weights (fixed, not runtime-configurable)
# ---------------------------------------------------------------------------

EDGE_WEIGHTS = {
    "efficiency": 0.30,
    "win_rate": 0.25,
    "profit_factor": 0.20,
    "consistency": 0.15,
    "size": 0.10,
}

EFFICIENCY_SCALE = 200        # 50% efficiency -> 100
PROFIT_FACTOR_SCALE = 20      # profit factor of 5 -> 100
SIZE_LOG_SCALE = 15           # log10(volume + 1) * 15
CONSISTENCY_FULL_TRADES = 20  # trade count that earns a full consistency score
SUB_SCORE_MAX = 100.0

# ---------------------------------------------------------------------------
# Ratio sentinels
# ---------------------------------------------------------------------------

# Profit factor when there are wins but no losses.  One value for every
# caller (screening and edge scoring alike).
PROFIT_FACTOR_CEILING = 10.0
# Profit factor with no realized wins and no realized losses.
PROFIT_FACTOR_NEUTRAL = 1.0

# Win rate reported for a wallet with no decisive closed positions.
WIN_RATE_NEUTRAL_SCREENING = 0.0   # copy-candidate screening
WIN_RATE_NEUTRAL_EDGE = 0.5        # edge scoring

# ---------------------------------------------------------------------------
# Activity tracking
# ---------------------------------------------------------------------------

# Numeric timestamps below this magnitude are epoch seconds, not milliseconds.
SECONDS_TIMESTAMP_CEILING = 10_000_000_000

# ---------------------------------------------------------------------------
# Signal history
# ---------------------------------------------------------------------------

SIGNAL_SUPPRESSION_HOURS = 24


class EdgeConfig(BaseSettings):
    """Tunable thresholds, overridable via POLYEDGE_* env vars."""

    # --- Edge detection ---
    MIN_VOLUME: float = 50_000
    TOP_N: int = 50
    # Order is precedence: first window to mention a wallet wins.
    LEADERBOARD_WINDOWS: list[str] = Field(default=["all", "month", "week"])
    LEADERBOARD_LIMITS: dict[str, int] = Field(default={
        "all": 200,
        "month": 100,
        "week": 100,
    })
    CLOSED_POSITIONS_LIMIT: int = 100
    OPEN_POSITIONS_LIMIT: int = 50

    # --- Copy-candidate screening ---
    COPY_MIN_TRADES: int = 15
    COPY_MIN_WIN_RATE: float = 0.70
    COPY_MIN_EFFICIENCY: float = 0.30

    # --- Signals ---
    MIN_SIGNAL_SIZE: float = 5_000
    SIGNAL_HIGH_MIN_TRADERS: int = 3
    SIGNAL_MEDIUM_MIN_TRADERS: int = 2
    SIGNAL_MEDIUM_MIN_SIZE: float = 50_000
    SIGNAL_LOW_MIN_SIZE: float = 10_000
    SIGNAL_CONFIDENCE: dict[str, float] = Field(default={
        "HIGH": 0.8,
        "MEDIUM": 0.6,
        "LOW": 0.4,
    })
    MAX_SIGNALS: int = 20

    # --- Leaderboard screener ---
    SCREEN_WINDOWS: list[str] = Field(default=["day", "week", "month", "all"])
    SCREEN_MAX_PAGES: int = 5
    SCREEN_PAGE_SIZE: int = 100
    SCREEN_DETAIL_COUNT: int = 50
    SCREEN_EFFICIENCY_MIN_VOLUME: float = 10_000
    CONSISTENT_MIN_WIN_RATE: float = 0.60
    CONSISTENT_MIN_VOLUME: float = 50_000
    CONSISTENT_MIN_TRADES: int = 10

    # --- Whale watching ---
    MIN_TRADE_SIZE: float = 10_000
    WATCH_COUNT: int = 50
    WATCH_MIN_VOLUME: float = 10_000
    CANDIDATE_CHECK_COUNT: int = 40
    ACTIVITY_PAGE_SIZE: int = 10
    POLL_INTERVAL_SECONDS: int = 60
    WATCHLIST_REFRESH_PROBABILITY: float = 0.1

    # --- Delivery ---
    TELEGRAM_BOT_TOKEN: str = ""
    TELEGRAM_CHAT_ID: str = ""
    WEBHOOK_URL: str = ""
    SIGNAL_WEBHOOK_URL: str = ""

    # --- Persistence ---
    DATA_DIR: str = "./data"
    ACTIVITY_HISTORY_LIMIT: int = 1_000
    SIGNAL_HISTORY_LIMIT: int = 500

    # --- Data API client ---
    API_BASE_URL: str = "https://data-api.polymarket.com"
    REQUEST_TIMEOUT: float = 30.0
    REQUEST_DELAY_SECONDS: float = 0.25

    model_config = {
        "env_prefix": "POLYEDGE_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @field_validator("SIGNAL_CONFIDENCE")
    @classmethod
    def _every_tier_has_confidence(cls, value: dict[str, float]) -> dict[str, float]:
        missing = {"HIGH", "MEDIUM", "LOW"} - value.keys()
        if missing:
            raise ValueError(f"SIGNAL_CONFIDENCE is missing tiers: {sorted(missing)}")
        return value
