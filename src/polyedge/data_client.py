"""Async client for the public Polymarket data API.

Wraps the four read-only endpoints the scoring pipeline needs with retry on
network errors, 429 and 5xx responses.

Usage::

    async with PolymarketClient() as client:
        traders = await client.fetch_leaderboard("month", limit=100)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from polyedge.config import EdgeConfig
from polyedge.models import ActivityRecord, ClosedPosition, OpenPosition, TraderRecord

logger = logging.getLogger(__name__)

_M = TypeVar("_M", bound=BaseModel)

_MAX_RETRIES = 3
_BACKOFF_SCHEDULE = (1.0, 2.0, 4.0)  # seconds per retry attempt

# Status codes that should never be retried.
_NO_RETRY_CLIENT_ERRORS = frozenset({400, 401, 403, 404, 422})


# ---------------------------------------------------------------------------
# Custom exceptions
# ---------------------------------------------------------------------------


class PolymarketAPIError(Exception):
    """Raised when the data API returns an unrecoverable error."""

    def __init__(self, status_code: int, detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Polymarket API error {status_code}: {detail}")


class PolymarketRateLimitError(PolymarketAPIError):
    """Raised when rate limit is exceeded and all retries are exhausted."""

    def __init__(self, detail: str = "Rate limit exceeded") -> None:
        super().__init__(status_code=429, detail=detail)


# ---------------------------------------------------------------------------
# Record parsing
# ---------------------------------------------------------------------------


def _validate_items(model: type[_M], data: list[Any], endpoint: str) -> list[_M]:
    """Validate each record on its own; malformed records are skipped."""
    records: list[_M] = []
    for index, item in enumerate(data):
        try:
            records.append(model.model_validate(item))
        except ValidationError as exc:
            logger.debug(
                "Skipping malformed record endpoint=%s index=%d errors=%d",
                endpoint,
                index,
                exc.error_count(),
            )
    return records


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class PolymarketClient:
    """Async wrapper around the Polymarket data API.

    Parameters
    ----------
    config:
        Supplies ``API_BASE_URL`` and ``REQUEST_TIMEOUT``.
    client:
        Optional pre-built ``httpx.AsyncClient`` (tests inject one backed by
        ``httpx.MockTransport``).  The client is closed on :meth:`close`
        only when it was created here.
    """

    def __init__(
        self,
        config: EdgeConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        config = config or EdgeConfig()
        self.base_url = config.API_BASE_URL.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(config.REQUEST_TIMEOUT),
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
        )

    # ------------------------------------------------------------------
    # Context-manager protocol
    # ------------------------------------------------------------------

    async def __aenter__(self) -> PolymarketClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Core request with retry
    # ------------------------------------------------------------------

    async def _request(self, endpoint: str, params: dict[str, Any]) -> Any:
        """Send a retried GET request to *endpoint* and return parsed JSON.

        Raises
        ------
        PolymarketRateLimitError
            On 429 after all retries exhausted.
        PolymarketAPIError
            On non-retryable client errors, or server/network errors after
            retries exhausted.
        """
        last_exc: Exception | None = None

        for attempt in range(_MAX_RETRIES):
            backoff = _BACKOFF_SCHEDULE[min(attempt, len(_BACKOFF_SCHEDULE) - 1)]
            logger.debug("Polymarket request attempt=%d endpoint=%s params=%s", attempt + 1, endpoint, params)

            try:
                response = await self._client.get(endpoint, params=params)
            except httpx.HTTPError as exc:
                last_exc = exc
                logger.warning(
                    "Polymarket network error attempt=%d endpoint=%s error=%s",
                    attempt + 1,
                    endpoint,
                    exc,
                )
                if attempt < _MAX_RETRIES - 1:
                    await asyncio.sleep(backoff)
                continue

            status = response.status_code

            if 200 <= status < 300:
                try:
                    return response.json()
                except ValueError as exc:
                    logger.error("Polymarket non-JSON body status=%d endpoint=%s", status, endpoint)
                    raise PolymarketAPIError(status_code=status, detail=f"Invalid JSON from {endpoint}") from exc

            if status in _NO_RETRY_CLIENT_ERRORS:
                logger.error(
                    "Polymarket client error status=%d endpoint=%s body=%s",
                    status,
                    endpoint,
                    response.text,
                )
                raise PolymarketAPIError(status_code=status, detail=response.text)

            if status == 429:
                logger.warning("Polymarket rate limit hit attempt=%d endpoint=%s", attempt + 1, endpoint)
                last_exc = PolymarketRateLimitError(detail=f"429 on attempt {attempt + 1} for {endpoint}")
                if attempt < _MAX_RETRIES - 1:
                    await asyncio.sleep(backoff)
                continue

            if status >= 500:
                logger.warning(
                    "Polymarket server error status=%d attempt=%d endpoint=%s",
                    status,
                    attempt + 1,
                    endpoint,
                )
                last_exc = PolymarketAPIError(status_code=status, detail=response.text)
                if attempt < _MAX_RETRIES - 1:
                    await asyncio.sleep(backoff)
                continue

            raise PolymarketAPIError(status_code=status, detail=response.text)

        if isinstance(last_exc, PolymarketAPIError):
            raise last_exc
        raise PolymarketAPIError(
            status_code=0,
            detail=f"All {_MAX_RETRIES} attempts failed for {endpoint}: {last_exc}",
        )

    async def _request_list(self, endpoint: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        data = await self._request(endpoint, params)
        if not isinstance(data, list):
            raise PolymarketAPIError(status_code=0, detail=f"Expected a JSON array from {endpoint}")
        return data

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def fetch_leaderboard(
        self,
        window: str = "all",
        order_by: str = "PNL",
        limit: int = 100,
        offset: int = 0,
        category: str = "overall",
    ) -> list[TraderRecord]:
        """Fetch one page of the trader leaderboard.

        Parameters
        ----------
        window:
            ``day``, ``week``, ``month`` or ``all``.
        order_by:
            ``PNL`` or ``VOL``.
        """
        params = {
            "timePeriod": window,
            "orderBy": order_by,
            "limit": str(limit),
            "offset": str(offset),
            "category": category,
        }
        data = await self._request_list("/v1/leaderboard", params)
        return _validate_items(TraderRecord, data, "/v1/leaderboard")

    async def fetch_closed_positions(self, wallet: str, limit: int = 100) -> list[ClosedPosition]:
        """Fetch realized positions, largest realized PnL first."""
        params = {
            "user": wallet,
            "sortBy": "realizedpnl",
            "sortDirection": "DESC",
            "limit": str(limit),
        }
        data = await self._request_list("/closed-positions", params)
        return _validate_items(ClosedPosition, data, "/closed-positions")

    async def fetch_open_positions(self, wallet: str, limit: int = 50) -> list[OpenPosition]:
        """Fetch current holdings, largest current value first."""
        params = {
            "user": wallet,
            "sortBy": "CURRENT",
            "sortDirection": "DESC",
            "sizeThreshold": ".1",
            "limit": str(limit),
        }
        data = await self._request_list("/positions", params)
        return _validate_items(OpenPosition, data, "/positions")

    async def fetch_activity(self, wallet: str, limit: int = 10) -> list[ActivityRecord]:
        """Fetch the most recent activity, newest first."""
        params = {"user": wallet, "limit": str(limit)}
        data = await self._request_list("/activity", params)
        return _validate_items(ActivityRecord, data, "/activity")
