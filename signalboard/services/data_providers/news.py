"""
News impact collaborator.

Fetches recent news items for a universe and reduces them to one impact
score (0-100) per plain symbol, taking the maximum over the symbol's items.
Items without an explicit ``impact`` are scored with a tag/source/age
heuristic.
"""

from __future__ import annotations

import time
from typing import Any

from signalboard.core.config import settings
from signalboard.core.exceptions import UpstreamError
from signalboard.core.logging import get_logger
from signalboard.core.universes import Universe, plain_symbol

from .http_fetcher import BoundedFetcher

logger = get_logger("data_providers.news")

MERGER_TAGS = {"SATIN_ALMA", "BIRLESME", "ACQUISITION", "MERGER"}
PAYOUT_TAGS = {"TEMETTU", "GERI_ALIM", "DIVIDEND", "BUYBACK"}
HIGH_PROFIT_TAGS = {"YUKSEK_KAR", "HIGH_PROFIT"}
NEGATIVE_TAGS = {"NEGATIF", "NEGATIVE"}
PREMIUM_SOURCES = ("reuters", "bloomberg")


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def estimate_news_impact(item: dict[str, Any], now: float | None = None) -> float:
    """Heuristic impact of a single news item."""
    now_ts = now if now is not None else time.time()
    tickers = item.get("tickers") or []
    tags = {str(t).upper() for t in (item.get("tags") or [])}

    score = 10.0
    score += min(30, len(tickers) * 6)
    if tags & MERGER_TAGS:
        score += 25
    if tags & PAYOUT_TAGS:
        score += 18
    if tags & HIGH_PROFIT_TAGS:
        score += 14
    if tags & NEGATIVE_TAGS:
        score += 16

    source = str(item.get("source") or "").lower()
    if any(s in source for s in PREMIUM_SOURCES):
        score += 10

    try:
        age = now_ts - float(item.get("datetime") or 0)
    except (TypeError, ValueError):
        age = float("inf")
    if age <= 2 * 3600:
        score += 5
    elif age <= 12 * 3600:
        score += 2

    return _clamp(score)


def impact_by_symbol(
    items: list[dict[str, Any]],
    now: float | None = None,
    window_hours: int | None = None,
) -> dict[str, float]:
    """Max impact per plain symbol over items newer than the window."""
    now_ts = now if now is not None else time.time()
    hours = window_hours if window_hours is not None else settings.ranking_window_hours
    cutoff = now_ts - hours * 3600

    scores: dict[str, float] = {}
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            ts = float(item.get("datetime") or 0)
        except (TypeError, ValueError):
            continue
        if ts < cutoff:
            continue

        impact = item.get("impact")
        if isinstance(impact, (int, float)) and not isinstance(impact, bool):
            value = _clamp(float(impact))
        else:
            value = estimate_news_impact(item, now=now_ts)

        for ticker in item.get("tickers") or []:
            sym = plain_symbol(str(ticker))
            if sym and value > scores.get(sym, -1.0):
                scores[sym] = value
    return scores


class NewsImpactClient:
    """Reads the news collaborator; any failure yields an empty score map."""

    def __init__(self, fetcher: BoundedFetcher | None = None, url: str | None = None):
        self.fetcher = fetcher or BoundedFetcher()
        self.url = url if url is not None else settings.news_api_url

    async def impact_scores(self, universe: Universe, now: float | None = None) -> dict[str, float]:
        if not self.url:
            return {}
        try:
            payload = await self.fetcher.fetch_json(
                self.url,
                params={"u": universe.value, "limit": 60, "minScore": 0},
            )
        except UpstreamError as e:
            logger.warning(
                f"News collaborator unavailable for {universe.value}: {e.message}",
                extra={"universe": universe.value},
            )
            return {}
        items = payload.get("items") if isinstance(payload, dict) else None
        if not isinstance(items, list):
            return {}
        return impact_by_symbol(items, now=now)

    async def close(self) -> None:
        await self.fetcher.close()
