"""API dependencies for shared-secret checks and service construction.

Routes receive their collaborators through these providers so tests can
swap them with ``app.dependency_overrides``.
"""

from __future__ import annotations

import hmac
from types import ModuleType
from typing import Any

from fastapi import Request

from signalboard.cache import Cache
from signalboard.core.config import settings
from signalboard.core.exceptions import UnauthorizedError, UpstreamUnavailableError
from signalboard.core.logging import get_logger
from signalboard.repositories import leaderboard_orm, signals_orm
from signalboard.services.composite import CompositeScoreAggregator
from signalboard.services.data_providers import (
    FinnhubClient,
    NewsImpactClient,
    get_finnhub_client,
)
from signalboard.services.leaderboard import DailyLeaderboardManager
from signalboard.services.quality import QualityScorer


logger = get_logger("api.dependencies")

__all__ = [
    "authorize_cron",
    "check_scan_secret",
    "close_news_client",
    "cron_secret_from_request",
    "get_composite_aggregator",
    "get_finnhub",
    "get_leaderboard_manager",
    "get_margins_cache",
    "get_news_client",
    "get_signal_store",
    "require_cron_secret",
    "require_quality_scorer",
]

_news_client: NewsImpactClient | None = None


def _secret_matches(received: Any, expected: str) -> bool:
    if not expected or not isinstance(received, str) or not received:
        return False
    return hmac.compare_digest(received.encode(), expected.encode())


def cron_secret_from_request(request: Request) -> str | None:
    """Trigger secret from the ``X-Cron-Secret`` header or ``secret``/``token`` query."""
    return (
        request.headers.get("X-Cron-Secret")
        or request.query_params.get("secret")
        or request.query_params.get("token")
    )


def authorize_cron(request: Request) -> None:
    if not _secret_matches(cron_secret_from_request(request), settings.cron_secret):
        logger.warning(
            "Rejected trigger with missing or invalid secret",
            extra={"path": request.url.path},
        )
        raise UnauthorizedError(message="Invalid or missing cron secret")


async def require_cron_secret(request: Request) -> None:
    """Dependency guarding scheduler-triggered endpoints."""
    authorize_cron(request)


def check_scan_secret(received: Any) -> None:
    """Validate the producer secret carried in a request body."""
    if not _secret_matches(received, settings.scan_secret):
        raise UnauthorizedError(message="Invalid or missing secret")


def get_signal_store() -> ModuleType:
    return signals_orm


def get_finnhub() -> FinnhubClient | None:
    """Shared Finnhub client, or None when no API key is configured."""
    if not settings.finnhub_api_key:
        return None
    return get_finnhub_client()


def get_news_client() -> NewsImpactClient | None:
    global _news_client
    if not settings.news_api_url:
        return None
    if _news_client is None:
        _news_client = NewsImpactClient()
    return _news_client


async def close_news_client() -> None:
    global _news_client
    if _news_client is not None:
        await _news_client.close()
        _news_client = None


def require_quality_scorer() -> QualityScorer:
    client = get_finnhub()
    if client is None:
        raise UpstreamUnavailableError(message="FINNHUB_API_KEY is not configured")
    return QualityScorer(client)


def get_margins_cache() -> Cache:
    return Cache(prefix="margins", default_ttl=settings.top_margins_cache_ttl)


def get_composite_aggregator() -> CompositeScoreAggregator:
    client = get_finnhub()
    return CompositeScoreAggregator(
        signals=signals_orm,
        scorer=QualityScorer(client) if client is not None else None,
        news=get_news_client(),
        prices=client,
    )


def get_leaderboard_manager() -> DailyLeaderboardManager:
    return DailyLeaderboardManager(
        signals=signals_orm,
        store=leaderboard_orm,
        prices=get_finnhub(),
    )
