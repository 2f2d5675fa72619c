"""Data providers - centralized external API access."""

from .finnhub import FinnhubClient, close_finnhub_client, get_finnhub_client
from .http_fetcher import BoundedFetcher
from .news import NewsImpactClient, estimate_news_impact
from .resilience import RetryAfterPolicy, RetryPolicy, map_limit


__all__ = [
    "BoundedFetcher",
    "FinnhubClient",
    "NewsImpactClient",
    "RetryAfterPolicy",
    "RetryPolicy",
    "close_finnhub_client",
    "estimate_news_impact",
    "get_finnhub_client",
    "map_limit",
]
