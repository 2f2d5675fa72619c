"""Tests for the news impact collaborator."""

from __future__ import annotations

import httpx
import pytest

from signalboard.core.universes import Universe
from signalboard.services.data_providers.http_fetcher import BoundedFetcher
from signalboard.services.data_providers.news import (
    NewsImpactClient,
    estimate_news_impact,
    impact_by_symbol,
)
from signalboard.services.data_providers.resilience import NoRetryPolicy

NOW = 1_718_020_800.0


def make_client(handler, url: str = "https://news.test/api") -> NewsImpactClient:
    fetcher = BoundedFetcher(
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        timeout=2.0,
        retry_policy=NoRetryPolicy(),
    )
    return NewsImpactClient(fetcher=fetcher, url=url)


class TestEstimateNewsImpact:
    """Tests for estimate_news_impact."""

    def test_fresh_merger_from_premium_source(self):
        item = {
            "tickers": ["BIST:THYAO"],
            "tags": ["merger"],
            "source": "Reuters",
            "datetime": NOW - 3600,
        }
        assert estimate_news_impact(item, now=NOW) == 56.0

    def test_baseline_for_old_untagged_item(self):
        assert estimate_news_impact({"datetime": NOW - 86400}, now=NOW) == 10.0

    def test_recent_item_bonus(self):
        assert estimate_news_impact({"datetime": NOW - 6 * 3600}, now=NOW) == 12.0

    def test_clamped_to_100(self):
        item = {
            "tickers": [f"T{i}" for i in range(10)],
            "tags": ["MERGER", "DIVIDEND", "HIGH_PROFIT", "NEGATIVE"],
            "source": "bloomberg",
            "datetime": NOW,
        }
        assert estimate_news_impact(item, now=NOW) == 100.0


class TestImpactBySymbol:
    """Tests for impact_by_symbol."""

    def test_takes_max_per_plain_symbol(self):
        items = [
            {"tickers": ["BIST:THYAO"], "impact": 80, "datetime": NOW - 60},
            {"tickers": ["THYAO", "GARAN"], "impact": 30, "datetime": NOW - 60},
        ]
        assert impact_by_symbol(items, now=NOW, window_hours=24) == {"THYAO": 80.0, "GARAN": 30.0}

    def test_ignores_items_outside_window(self):
        items = [{"tickers": ["AAPL"], "impact": 90, "datetime": NOW - 25 * 3600}]
        assert impact_by_symbol(items, now=NOW, window_hours=24) == {}

    def test_explicit_impact_is_clamped(self):
        items = [{"tickers": ["AAPL"], "impact": 150, "datetime": NOW}]
        assert impact_by_symbol(items, now=NOW, window_hours=24) == {"AAPL": 100.0}

    def test_missing_impact_uses_heuristic(self):
        items = [{"tickers": ["AAPL"], "impact": "high", "datetime": NOW - 60}]
        assert impact_by_symbol(items, now=NOW, window_hours=24) == {"AAPL": 21.0}


class TestNewsImpactClient:
    """Tests for NewsImpactClient.impact_scores."""

    @pytest.mark.asyncio
    async def test_reads_items(self):
        seen = {}

        def handler(request):
            seen.update(request.url.params)
            return httpx.Response(
                200, json={"items": [{"tickers": ["AAPL"], "impact": 40, "datetime": NOW}]}
            )

        client = make_client(handler)
        assert await client.impact_scores(Universe.NASDAQ100, now=NOW) == {"AAPL": 40.0}
        assert seen["u"] == "NASDAQ100"

    @pytest.mark.asyncio
    async def test_upstream_failure_yields_empty_map(self):
        client = make_client(lambda request: httpx.Response(503))
        assert await client.impact_scores(Universe.BIST100, now=NOW) == {}

    @pytest.mark.asyncio
    async def test_unconfigured_url_yields_empty_map(self):
        def handler(request):
            raise AssertionError("no request expected")

        client = make_client(handler, url="")
        assert await client.impact_scores(Universe.BIST100, now=NOW) == {}
