"""Tests for the JSON cache helper."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import pytest

from signalboard.cache import Cache, cache_key


class TestCacheKey:
    def test_namespaced_and_sanitized(self):
        assert cache_key("top-margins", "BIST:100", prefix="fin") == (
            "signalboard:v1:fin:top-margins:BIST_100"
        )


class TestCache:
    @pytest.mark.asyncio
    async def test_round_trips_json(self):
        client = AsyncMock()
        with patch("signalboard.cache.cache.get_valkey_client", AsyncMock(return_value=client)):
            cache = Cache(prefix="fin", default_ttl=60)
            assert await cache.set("k", {"a": 1}) is True
            client.set.assert_awaited_once_with(
                "signalboard:v1:fin:k", json.dumps({"a": 1}), ex=60
            )

            client.get.return_value = '{"a": 1}'
            assert await cache.get("k") == {"a": 1}

    @pytest.mark.asyncio
    async def test_failures_degrade_to_miss(self):
        broken = AsyncMock(side_effect=ConnectionError("valkey down"))
        with patch("signalboard.cache.cache.get_valkey_client", broken):
            cache = Cache(prefix="fin", default_ttl=60)
            assert await cache.get("k") is None
            assert await cache.set("k", {"a": 1}) is False

    @pytest.mark.asyncio
    async def test_undecodable_entry_is_a_miss(self):
        client = AsyncMock()
        client.get.return_value = "not-json{"
        with patch("signalboard.cache.cache.get_valkey_client", AsyncMock(return_value=client)):
            assert await Cache(prefix="fin", default_ttl=60).get("k") is None
