"""Tests for BoundedFetcher and the Finnhub client."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from signalboard.core.exceptions import (
    RateLimitedError,
    UpstreamTimeoutError,
    UpstreamUnavailableError,
)
from signalboard.services.data_providers.finnhub import FinnhubClient
from signalboard.services.data_providers.http_fetcher import BoundedFetcher
from signalboard.services.data_providers.resilience import RetryAfterPolicy, map_limit


class FakeSleep:
    """Records requested delays without waiting."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def make_fetcher(handler, timeout: float = 2.0, sleep: FakeSleep | None = None) -> BoundedFetcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return BoundedFetcher(
        client=client,
        timeout=timeout,
        retry_policy=RetryAfterPolicy(max_retries=1, default_delay=1.0),
        sleep=sleep or FakeSleep(),
    )


class TestBoundedFetcher:
    """Tests for BoundedFetcher.fetch_json."""

    @pytest.mark.asyncio
    async def test_returns_json(self):
        fetcher = make_fetcher(lambda request: httpx.Response(200, json={"ok": True}))
        assert await fetcher.fetch_json("https://api.test/x") == {"ok": True}

    @pytest.mark.asyncio
    async def test_retries_once_after_429_with_retry_after(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(429, headers={"Retry-After": "2"})
            return httpx.Response(200, json={"n": 1})

        sleep = FakeSleep()
        fetcher = make_fetcher(handler, sleep=sleep)
        assert await fetcher.fetch_json("https://api.test/x") == {"n": 1}
        assert len(calls) == 2
        assert sleep.delays == [2.0]

    @pytest.mark.asyncio
    async def test_second_429_is_rate_limited_error(self):
        sleep = FakeSleep()
        fetcher = make_fetcher(lambda request: httpx.Response(429), sleep=sleep)
        with pytest.raises(RateLimitedError):
            await fetcher.fetch_json("https://api.test/x")
        assert sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_second_429_fails_only_that_item(self):
        """A persistent 429 for one symbol does not fail the batch."""

        def handler(request):
            if request.url.params.get("symbol") == "BAD":
                return httpx.Response(429, headers={"Retry-After": "2"})
            return httpx.Response(200, json={"symbol": request.url.params["symbol"]})

        fetcher = make_fetcher(handler)
        results = await map_limit(
            ["AAA", "BAD", "CCC"],
            2,
            lambda sym: fetcher.fetch_json("https://api.test/q", params={"symbol": sym}),
            return_exceptions=True,
        )
        assert results[0] == {"symbol": "AAA"}
        assert isinstance(results[1], RateLimitedError)
        assert results[2] == {"symbol": "CCC"}

    @pytest.mark.asyncio
    async def test_non_2xx_is_unavailable_without_retry(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503)

        fetcher = make_fetcher(handler)
        with pytest.raises(UpstreamUnavailableError) as exc_info:
            await fetcher.fetch_json("https://api.test/x")
        assert exc_info.value.upstream_status == 503
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_timeout_is_distinct_error(self):
        async def slow(request):
            await asyncio.sleep(1.0)
            return httpx.Response(200, json={})

        fetcher = make_fetcher(slow, timeout=0.05)
        with pytest.raises(UpstreamTimeoutError):
            await fetcher.fetch_json("https://api.test/x")

    @pytest.mark.asyncio
    async def test_retry_after_wait_is_outside_the_timeout(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(429, headers={"Retry-After": "0.5"})
            return httpx.Response(200, json={"n": 1})

        fetcher = BoundedFetcher(
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            timeout=0.2,
            retry_policy=RetryAfterPolicy(max_retries=1, default_delay=0.1),
            sleep=asyncio.sleep,
        )
        assert await fetcher.fetch_json("https://api.test/x") == {"n": 1}
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_long_retry_after_then_429_is_rate_limited(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(429, headers={"Retry-After": "0.5"})

        fetcher = BoundedFetcher(
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            timeout=0.2,
            retry_policy=RetryAfterPolicy(max_retries=1, default_delay=0.1),
            sleep=asyncio.sleep,
        )
        with pytest.raises(RateLimitedError):
            await fetcher.fetch_json("https://api.test/x")
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_transport_timeout_maps_to_timeout_error(self):
        def handler(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        fetcher = make_fetcher(handler)
        with pytest.raises(UpstreamTimeoutError):
            await fetcher.fetch_json("https://api.test/x")

    @pytest.mark.asyncio
    async def test_connection_error_is_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        fetcher = make_fetcher(handler)
        with pytest.raises(UpstreamUnavailableError):
            await fetcher.fetch_json("https://api.test/x")

    @pytest.mark.asyncio
    async def test_invalid_json_is_unavailable(self):
        fetcher = make_fetcher(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(UpstreamUnavailableError):
            await fetcher.fetch_json("https://api.test/x")


class TestFinnhubClient:
    """Tests for FinnhubClient payload handling."""

    def test_requires_api_key(self):
        with pytest.raises(UpstreamUnavailableError):
            FinnhubClient(api_key="")

    @pytest.mark.asyncio
    async def test_metric_sends_token_and_symbol(self):
        seen = {}

        def handler(request):
            seen.update(request.url.params)
            seen["path"] = request.url.path
            return httpx.Response(200, json={"metric": {"netMarginTTM": 12.5}})

        client = FinnhubClient("key", fetcher=make_fetcher(handler), base_url="https://fh.test/api/v1")
        assert await client.metric("THYAO.IS") == {"netMarginTTM": 12.5}
        assert seen["path"] == "/api/v1/stock/metric"
        assert seen["symbol"] == "THYAO.IS"
        assert seen["metric"] == "all"
        assert seen["token"] == "key"

    @pytest.mark.asyncio
    async def test_daily_closes_requires_ok_status(self):
        fetcher = make_fetcher(lambda request: httpx.Response(200, json={"s": "no_data"}))
        client = FinnhubClient("key", fetcher=fetcher)
        assert await client.daily_closes("AAPL", 30) == []

    @pytest.mark.asyncio
    async def test_daily_closes_drops_non_numeric(self):
        payload = {"s": "ok", "c": [1.0, None, "2.5", "x", 3]}
        fetcher = make_fetcher(lambda request: httpx.Response(200, json=payload))
        client = FinnhubClient("key", fetcher=fetcher)
        assert await client.daily_closes("AAPL", 30, now=1_700_000_000) == [1.0, 2.5, 3.0]

    @pytest.mark.asyncio
    async def test_financials_reported_returns_data_list(self):
        payload = {"data": [{"endDate": "2024-03-31"}, "junk"]}
        fetcher = make_fetcher(lambda request: httpx.Response(200, json=payload))
        client = FinnhubClient("key", fetcher=fetcher)
        assert await client.financials_reported("AAPL") == [{"endDate": "2024-03-31"}]
