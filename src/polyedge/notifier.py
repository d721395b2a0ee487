"""Alert delivery to a generic webhook and Telegram."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from polyedge.config import EdgeConfig
from polyedge.models import Signal, WhaleTrade

log = structlog.get_logger()

TELEGRAM_API_URL = "https://api.telegram.org"
PROFILE_URL = "https://polymarket.com/profile/{wallet}"


def format_trade_message(trade: WhaleTrade, min_win_rate: float = 0.70, min_efficiency: float = 0.30) -> str:
    """Telegram Markdown text for a whale trade."""
    if trade.is_copy_candidate:
        header = "🎯 *Copy Signal*"
        footer = f"\n✨ _This trader has {min_win_rate:.0%}+ win rate & {min_efficiency:.0%}+ efficiency_\n"
    else:
        header = "🐋 *Whale Alert*"
        footer = ""
    return (
        f"{header}\n\n"
        f"*{trade.user_name}* {trade.side} *{trade.outcome}*\n"
        f"💰 Size: ${trade.size:,.0f}\n"
        f"📊 Market: {trade.market}\n"
        f"{footer}\n"
        f"[View Profile]({PROFILE_URL.format(wallet=trade.wallet)})"
    )


def format_signal_message(signal: Signal) -> str:
    """Telegram Markdown text for a copy signal."""
    names = ", ".join(t.name for t in signal.traders)
    return (
        f"📊 *New Signal* ({signal.tier.value}, {signal.confidence:.0%})\n\n"
        f"*{signal.side.value} {signal.outcome}*\n"
        f"Market: {signal.market}\n"
        f"Traders: {names}\n"
        f"Total Size: ${signal.total_size:,.0f}\n"
        f"Avg Price: {signal.avg_price * 100:.1f}¢"
    )


class AlertNotifier:
    """Sends alerts to every configured channel.

    Delivery errors are logged per channel and never raised, so a broken
    webhook cannot stop the watch loop.
    """

    def __init__(self, config: EdgeConfig, client: httpx.AsyncClient | None = None) -> None:
        self.telegram_token = config.TELEGRAM_BOT_TOKEN
        self.telegram_chat = config.TELEGRAM_CHAT_ID
        self.webhook_url = config.WEBHOOK_URL
        self.signal_webhook_url = config.SIGNAL_WEBHOOK_URL
        self.copy_min_win_rate = config.COPY_MIN_WIN_RATE
        self.copy_min_efficiency = config.COPY_MIN_EFFICIENCY
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(10.0))

    @property
    def telegram_configured(self) -> bool:
        return bool(self.telegram_token and self.telegram_chat)

    async def __aenter__(self) -> AlertNotifier:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _post(self, channel: str, url: str, payload: dict[str, Any]) -> bool:
        try:
            response = await self._client.post(url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            log.warning("alert_delivery_failed", channel=channel, error=str(exc))
            return False
        return True

    async def _send_telegram(self, text: str) -> bool:
        if not self.telegram_configured:
            return False
        return await self._post(
            "telegram",
            f"{TELEGRAM_API_URL}/bot{self.telegram_token}/sendMessage",
            {
                "chat_id": self.telegram_chat,
                "text": text,
                "parse_mode": "Markdown",
                "disable_web_page_preview": True,
            },
        )

    async def send_trade_alert(self, trade: WhaleTrade) -> int:
        """Deliver a whale-trade alert.  Returns the number of channels reached."""
        message = f"{trade.user_name} made a ${trade.size:,.0f} trade"
        log.info(
            "whale_trade",
            trader=trade.user_name,
            side=trade.side,
            outcome=trade.outcome,
            size=trade.size,
            market=trade.market,
            copy_candidate=trade.is_copy_candidate,
        )

        delivered = 0
        if self.webhook_url:
            payload = {"message": message, "trade": trade.model_dump(mode="json")}
            delivered += await self._post("webhook", self.webhook_url, payload)
        delivered += await self._send_telegram(
            format_trade_message(trade, self.copy_min_win_rate, self.copy_min_efficiency)
        )
        return delivered

    async def send_signal(self, signal: Signal) -> int:
        """Deliver a new copy signal.  Returns the number of channels reached."""
        log.info(
            "new_signal",
            market=signal.market,
            side=signal.side.value,
            outcome=signal.outcome,
            tier=signal.tier.value,
            total_size=signal.total_size,
            traders=signal.trader_count,
        )

        delivered = 0
        if self.signal_webhook_url:
            delivered += await self._post("signal_webhook", self.signal_webhook_url, signal.model_dump(mode="json"))
        delivered += await self._send_telegram(format_signal_message(signal))
        return delivered
