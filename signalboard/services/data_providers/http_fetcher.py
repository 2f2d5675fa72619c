"""
Bounded JSON fetcher for upstream financial APIs.

Every request attempt has its own time budget and is cancelled when it
runs out. HTTP 429 is retried according to an injectable RetryPolicy, with
the backoff sleep outside the budget. Other non-2xx responses fail
immediately.

Error kinds:
- UpstreamTimeoutError: time budget exceeded (never retried)
- RateLimitedError: 429 persisted after the retry budget
- UpstreamUnavailableError: any other non-2xx, transport error or bad JSON
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from signalboard.core.config import settings
from signalboard.core.exceptions import (
    RateLimitedError,
    UpstreamTimeoutError,
    UpstreamUnavailableError,
)
from signalboard.core.logging import get_logger

from .resilience import RetryAfterPolicy, RetryPolicy

logger = get_logger("data_providers.http_fetcher")

SleepFn = Callable[[float], Awaitable[Any]]


def _safe_url(url: str) -> str:
    """URL without its query string (tokens travel as query parameters)."""
    return url.split("?", 1)[0]


class BoundedFetcher:
    """
    JSON GET helper with timeout and 429 retry.

    Args:
        client: Shared httpx client (created lazily when omitted)
        timeout: Per-attempt budget in seconds (backoff sleeps excluded)
        retry_policy: How 429 responses are retried
        sleep: Awaitable used for backoff waits (swap for a fake clock in tests)
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
        retry_policy: RetryPolicy | None = None,
        sleep: SleepFn | None = None,
    ):
        self._client = client
        self._owns_client = client is None
        self.timeout = timeout if timeout is not None else settings.external_api_timeout
        self.retry_policy = retry_policy or RetryAfterPolicy(
            max_retries=settings.rate_limit_retries,
            default_delay=settings.retry_after_default,
        )
        self._sleep = sleep or asyncio.sleep

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers={"Accept": "application/json"},
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def fetch_json(self, url: str, params: dict[str, Any] | None = None) -> Any:
        """GET ``url`` and decode the JSON body."""
        attempt = 0
        while True:
            response, body = await self._attempt(url, params)
            if response.status_code != 429:
                return body

            if attempt >= self.retry_policy.max_retries:
                logger.warning(f"Rate limited, retries exhausted: {_safe_url(url)}")
                raise RateLimitedError(
                    message="Upstream rate limit persisted after retry",
                    details={"url": _safe_url(url), "attempts": attempt + 1},
                )
            attempt += 1
            delay = self.retry_policy.delay_for(attempt, response.headers.get("Retry-After"))
            logger.info(
                f"Rate limited, retry {attempt}/{self.retry_policy.max_retries} "
                f"in {delay:.1f}s: {_safe_url(url)}"
            )
            await self._sleep(delay)

    async def _attempt(
        self, url: str, params: dict[str, Any] | None
    ) -> tuple[httpx.Response, Any]:
        """One bounded request. A 429 response is returned with no body."""
        try:
            return await asyncio.wait_for(self._request(url, params), self.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            logger.warning(f"Upstream timeout after {self.timeout}s: {_safe_url(url)}")
            raise UpstreamTimeoutError(
                message=f"Upstream call exceeded {self.timeout}s",
                details={"url": _safe_url(url)},
            ) from e

    async def _request(
        self, url: str, params: dict[str, Any] | None
    ) -> tuple[httpx.Response, Any]:
        try:
            response = await self._get_client().get(url, params=params)
        except httpx.TimeoutException:
            raise
        except httpx.RequestError as e:
            raise UpstreamUnavailableError(
                message=f"Upstream request failed: {type(e).__name__}",
                details={"url": _safe_url(url)},
            ) from e

        if response.status_code == 429:
            return response, None

        if not response.is_success:
            raise UpstreamUnavailableError(
                message=f"Upstream returned HTTP {response.status_code}",
                upstream_status=response.status_code,
                details={"url": _safe_url(url)},
            )

        try:
            return response, response.json()
        except ValueError as e:
            raise UpstreamUnavailableError(
                message="Upstream returned invalid JSON",
                upstream_status=response.status_code,
                details={"url": _safe_url(url)},
            ) from e
