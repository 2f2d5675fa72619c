"""
Finnhub API client.

Wraps the three endpoints the scoring engine consumes:
- /stock/metric            TTM / annual margin snapshot
- /stock/financials-reported  quarterly reported statements
- /stock/candle            daily closes

Symbols passed in must already be market-qualified (see
``signalboard.core.universes.to_market_symbol``).
"""

from __future__ import annotations

import math
import time
from typing import Any

from signalboard.core.config import settings
from signalboard.core.exceptions import UpstreamUnavailableError
from signalboard.core.logging import get_logger

from .http_fetcher import BoundedFetcher

logger = get_logger("data_providers.finnhub")


class FinnhubClient:
    """Thin async client over a BoundedFetcher."""

    def __init__(
        self,
        api_key: str,
        fetcher: BoundedFetcher | None = None,
        base_url: str | None = None,
    ):
        if not api_key:
            raise UpstreamUnavailableError(message="FINNHUB_API_KEY is not configured")
        self._api_key = api_key
        self.fetcher = fetcher or BoundedFetcher()
        self.base_url = (base_url or settings.finnhub_base_url).rstrip("/")

    async def _get(self, path: str, **params: Any) -> Any:
        params["token"] = self._api_key
        return await self.fetcher.fetch_json(f"{self.base_url}{path}", params=params)

    async def metric(self, symbol: str) -> dict[str, Any]:
        """Snapshot metrics (``metric`` object of /stock/metric)."""
        payload = await self._get("/stock/metric", symbol=symbol, metric="all")
        metric = payload.get("metric") if isinstance(payload, dict) else None
        return metric if isinstance(metric, dict) else {}

    async def financials_reported(self, symbol: str) -> list[dict[str, Any]]:
        """Quarterly reported statements, in whatever order the provider returns them."""
        payload = await self._get("/stock/financials-reported", symbol=symbol, freq="quarterly")
        data = payload.get("data") if isinstance(payload, dict) else None
        return [q for q in data if isinstance(q, dict)] if isinstance(data, list) else []

    async def daily_closes(
        self,
        symbol: str,
        days: int,
        now: float | None = None,
    ) -> list[float]:
        """Daily closes for the last ``days`` calendar days, oldest first.

        Returns an empty list when the provider reports no data.
        """
        to_ts = int(now if now is not None else time.time())
        from_ts = to_ts - days * 24 * 60 * 60
        payload = await self._get(
            "/stock/candle",
            symbol=symbol,
            resolution="D",
            **{"from": from_ts, "to": to_ts},
        )
        if not isinstance(payload, dict) or payload.get("s") != "ok":
            return []
        closes = payload.get("c")
        if not isinstance(closes, list):
            return []
        out: list[float] = []
        for value in closes:
            try:
                close = float(value)
            except (TypeError, ValueError):
                continue
            if math.isfinite(close):
                out.append(close)
        return out

    async def close(self) -> None:
        await self.fetcher.close()


_client: FinnhubClient | None = None


def get_finnhub_client() -> FinnhubClient:
    """Process-wide client. Raises UpstreamUnavailableError without an API key."""
    global _client
    if _client is None:
        _client = FinnhubClient(api_key=settings.finnhub_api_key)
    return _client


async def close_finnhub_client() -> None:
    global _client
    if _client is not None:
        await _client.close()
        _client = None
