"""
Composite score aggregation.

Ranks the symbols seen in the most recent signal rows by a weighted blend of
technical (latest signal score), fundamental (quality score) and news
impact sub-scores. Each sub-score is clamped to [0, 100]; a missing
sub-score counts as 0 in the blend, and the overall score is None only when
all three are missing.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Protocol

from signalboard.core.config import CompositeWeights, settings
from signalboard.core.logging import get_logger
from signalboard.core.universes import Universe, plain_symbol, to_market_symbol
from signalboard.domain import CompositeScoreEntry, DataQuality, SignalEvent

from .data_providers.news import NewsImpactClient
from .data_providers.resilience import map_limit
from .quality import QualityScorer

logger = get_logger("services.composite")


class RecentSignalSource(Protocol):
    async def list_recent(
        self, limit: int = 500, since: datetime | None = None
    ) -> list[SignalEvent]: ...


class PriceSource(Protocol):
    async def daily_closes(self, symbol: str, days: int) -> list[float]: ...


def clamp_score(value: float | None) -> float | None:
    """Clamp to [0, 100]; None and NaN stay None."""
    if value is None:
        return None
    try:
        v = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(v):
        return None
    return max(0.0, min(100.0, v))


def blend(
    tech: float | None,
    fund: float | None,
    news: float | None,
    weights: CompositeWeights | None = None,
) -> float | None:
    """Weighted overall score. Missing sub-scores count as 0."""
    if tech is None and fund is None and news is None:
        return None
    w = weights or settings.composite
    total = w.tech * (tech or 0.0) + w.fund * (fund or 0.0) + w.news * (news or 0.0)
    return clamp_score(total)


def latest_by_symbol(rows: Sequence[SignalEvent]) -> dict[str, SignalEvent]:
    """First (newest) row per plain symbol, in input order."""
    latest: dict[str, SignalEvent] = {}
    for row in rows:
        sym = plain_symbol(row.symbol_plain or row.symbol)
        if sym and sym not in latest:
            latest[sym] = row
    return latest


def sort_entries(entries: list[CompositeScoreEntry]) -> list[CompositeScoreEntry]:
    """Overall score descending; entries without one go last."""
    return sorted(
        entries,
        key=lambda e: (e.overall_score is None, -(e.overall_score or 0.0)),
    )


class CompositeScoreAggregator:
    """
    Builds the composite ranking.

    Args:
        signals: Source of recent signal rows
        scorer: Quality scorer, or None when fundamentals are unavailable
        news: News impact collaborator, or None
        prices: Daily close source for spark lines, or None
        weights: Blend weights (defaults to settings.composite)
    """

    def __init__(
        self,
        signals: RecentSignalSource,
        scorer: QualityScorer | None = None,
        news: NewsImpactClient | None = None,
        prices: PriceSource | None = None,
        weights: CompositeWeights | None = None,
    ):
        self.signals = signals
        self.scorer = scorer
        self.news = news
        self.prices = prices
        self.weights = weights or settings.composite

    async def _fund_scores(
        self, symbols: list[str], universe: Universe
    ) -> dict[str, tuple[float | None, DataQuality]]:
        if self.scorer is None or not symbols:
            return {}
        scorer = self.scorer
        rows = await map_limit(
            symbols,
            settings.enrich_concurrency,
            lambda sym: scorer.score(sym, universe),
            return_exceptions=True,
        )
        out: dict[str, tuple[float | None, DataQuality]] = {}
        for sym, row in zip(symbols, rows):
            if isinstance(row, Exception):
                logger.warning(
                    f"Fundamental score failed for {sym}: {row}",
                    extra={"symbol": sym},
                )
                continue
            out[sym] = (clamp_score(row.quality_score), row.data_quality)
        return out

    async def _sparks(self, symbols: list[str], universe: Universe) -> dict[str, list[float]]:
        if self.prices is None or not symbols:
            return {}
        prices = self.prices
        bars = settings.spark_bars
        results = await map_limit(
            symbols,
            settings.enrich_concurrency,
            lambda sym: prices.daily_closes(to_market_symbol(sym, universe), bars * 2),
            return_exceptions=True,
        )
        return {
            sym: list(closes[-bars:])
            for sym, closes in zip(symbols, results)
            if not isinstance(closes, Exception)
        }

    async def rank(
        self,
        universe: Universe,
        limit: int = 10,
        now: datetime | None = None,
    ) -> list[CompositeScoreEntry]:
        """Ranked entries for the symbols with recent signals, truncated to ``limit``."""
        now = now or datetime.now(timezone.utc)
        limit = max(1, min(settings.ranking_max_limit, int(limit)))

        rows = await self.signals.list_recent(limit=settings.ranking_candidate_rows)
        latest = latest_by_symbol(rows)
        symbols = list(latest)
        if not symbols:
            return []

        fund = await self._fund_scores(symbols, universe)
        news_scores = (
            await self.news.impact_scores(universe, now=now.timestamp()) if self.news else {}
        )
        sparks = await self._sparks(symbols, universe)

        entries: list[CompositeScoreEntry] = []
        for sym in symbols:
            signal = latest[sym]
            tech = clamp_score(signal.score)
            fund_score, fund_quality = fund.get(sym, (None, DataQuality.UNAVAILABLE))
            news_score = clamp_score(news_scores.get(sym))
            entries.append(
                CompositeScoreEntry(
                    symbol=sym,
                    price=signal.price,
                    tech_score=tech,
                    fund_score=fund_score,
                    news_score=news_score,
                    overall_score=blend(tech, fund_score, news_score, self.weights),
                    fund_quality=fund_quality,
                    reasons=signal.reasons,
                    spark=sparks.get(sym, []),
                )
            )

        ranked = sort_entries(entries)[:limit]
        logger.info(
            f"Composite ranking for {universe.value}: {len(entries)} symbols, returning {len(ranked)}",
            extra={"universe": universe.value},
        )
        return ranked
