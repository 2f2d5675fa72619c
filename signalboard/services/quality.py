"""
Fundamental quality scoring.

A symbol's quality score blends its snapshot net and gross margins, then
adjusts for the quarterly margin trend, its volatility, a suspected one-off
net-margin spike and a negative net margin. Every step degrades instead of
raising: missing quarterly data falls back to the snapshot blend, and a
symbol with no margins at all gets ``quality_score = None``.

Usage:
    scorer = QualityScorer(get_finnhub_client())
    row = await scorer.score("THYAO", Universe.BIST100)
    snapshot = await compute_top_margins(scorer, Universe.NASDAQ100, NASDAQ100, limit=10)
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

import numpy as np

from signalboard.core.config import QualityWeights, settings
from signalboard.core.exceptions import ParseIncompleteError, UpstreamError
from signalboard.core.logging import get_logger
from signalboard.core.universes import Universe, to_market_symbol
from signalboard.domain import DataQuality, MarginPeriod, MarginRow, TopMarginsSnapshot

from .data_providers.finnhub import FinnhubClient
from .data_providers.resilience import map_limit
from .statements import MarginSeries, build_series, latest_quarters

logger = get_logger("services.quality")


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _metric(metrics: dict[str, Any], key: str) -> float | None:
    value = metrics.get(key)
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None


def snapshot_margins(metrics: dict[str, Any]) -> tuple[float | None, float | None, MarginPeriod]:
    """Resolve (gross, net, period) from a metric payload, preferring TTM over FY."""
    gross_ttm = _metric(metrics, "grossMarginTTM")
    net_ttm = _metric(metrics, "netMarginTTM")
    gross_fy = _metric(metrics, "grossMarginAnnual")
    net_fy = _metric(metrics, "netMarginAnnual")

    gross = next(
        (v for v in (gross_ttm, gross_fy, _metric(metrics, "grossMargin")) if v is not None),
        None,
    )
    net = next(
        (v for v in (net_ttm, net_fy, _metric(metrics, "netMargin")) if v is not None),
        None,
    )

    period: MarginPeriod
    if gross_ttm is not None or net_ttm is not None:
        period = "TTM"
    elif gross_fy is not None or net_fy is not None:
        period = "FY"
    else:
        period = "UNKNOWN"
    return gross, net, period


def volatility_of(series: Sequence[float]) -> float:
    """Population standard deviation; 0 for fewer than two points."""
    if len(series) < 2:
        return 0.0
    return float(np.std(np.asarray(series, dtype=float)))


def trend_of(series: Sequence[float]) -> float:
    """Last value minus first value; 0 for fewer than two points."""
    if len(series) < 2:
        return 0.0
    return float(series[-1] - series[0])


def quality_score(
    gross: float | None,
    net: float | None,
    series: MarginSeries | None = None,
    weights: QualityWeights | None = None,
) -> float | None:
    """Blend snapshot margins and quarterly behaviour into one score.

    Missing margins count as 0 in the blend. Without a series only the
    blend and the negative-margin penalty apply.
    """
    if gross is None and net is None:
        return None
    w = weights or settings.quality
    net_v = net if net is not None else 0.0
    gross_v = gross if gross is not None else 0.0

    score = w.net_weight * net_v + w.gross_weight * gross_v
    if net_v < 0:
        score -= w.negative_margin_penalty

    if series is not None:
        trend_values = series.trend_series
        score += _clamp(w.trend_factor * trend_of(trend_values), -w.trend_cap, w.trend_cap)
        score -= w.volatility_factor * _clamp(volatility_of(trend_values), 0.0, w.volatility_cap)
        if net_v > w.one_off_net_threshold and gross_v < w.one_off_gross_threshold:
            score -= w.one_off_penalty

    return round(score, 2)


class QualityScorer:
    """
    Builds MarginRows for symbols from the Finnhub metric and statement APIs.

    Args:
        client: Finnhub client
        weights: Scoring constants (defaults to settings.quality)
    """

    def __init__(self, client: FinnhubClient, weights: QualityWeights | None = None):
        self.client = client
        self.weights = weights or settings.quality

    async def snapshot(self, symbol: str, universe: Universe | str | None = None) -> MarginRow:
        """Snapshot margins only. Upstream failures yield an empty row."""
        external = to_market_symbol(symbol, universe)
        try:
            metrics = await self.client.metric(external)
        except UpstreamError as e:
            logger.warning(
                f"Metric snapshot unavailable for {external}: {e.message}",
                extra={"symbol": symbol, "error_code": e.error_code},
            )
            return MarginRow(symbol=symbol, external_symbol=external)

        gross, net, period = snapshot_margins(metrics)
        row = MarginRow(
            symbol=symbol,
            external_symbol=external,
            gross_margin=gross,
            net_margin=net,
            period=period,
        )
        if row.has_margins:
            row.quality_score = quality_score(gross, net, None, self.weights)
            row.data_quality = DataQuality.FALLBACK
        return row

    async def _series(self, row: MarginRow) -> MarginSeries:
        reports = await self.client.financials_reported(row.external_symbol)
        series = build_series(latest_quarters(reports))
        if series is None:
            raise ParseIncompleteError(
                message="Quarterly statements yield fewer than 2 margin points",
                details={"symbol": row.external_symbol, "reports": len(reports)},
            )
        return series

    async def enrich(self, row: MarginRow) -> MarginRow:
        """Add quarterly series, volatility and the final quality score."""
        if not row.has_margins:
            return row.model_copy(
                update={"quality_score": None, "data_quality": DataQuality.UNAVAILABLE}
            )

        fallback = quality_score(row.gross_margin, row.net_margin, None, self.weights)
        try:
            series = await self._series(row)
        except (UpstreamError, ParseIncompleteError) as e:
            logger.warning(
                f"Falling back to snapshot score for {row.external_symbol}: {e.message}",
                extra={"symbol": row.symbol, "error_code": e.error_code},
            )
            return row.model_copy(
                update={"quality_score": fallback, "data_quality": DataQuality.FALLBACK}
            )

        return row.model_copy(
            update={
                "gross_series": series.gross_series,
                "net_series": series.net_series,
                "volatility": volatility_of(series.trend_series),
                "quality_score": quality_score(
                    row.gross_margin, row.net_margin, series, self.weights
                ),
                "data_quality": DataQuality.EXACT,
            }
        )

    async def score(self, symbol: str, universe: Universe | str | None = None) -> MarginRow:
        """Full quality row for one symbol. Never raises on missing data."""
        return await self.enrich(await self.snapshot(symbol, universe))


def _top_by(rows: Sequence[MarginRow], attr: str, limit: int) -> list[MarginRow]:
    present = [r for r in rows if getattr(r, attr) is not None]
    return sorted(present, key=lambda r: getattr(r, attr), reverse=True)[:limit]


async def compute_top_margins(
    scorer: QualityScorer,
    universe: Universe,
    symbols: Sequence[str],
    limit: int = 10,
    now: datetime | None = None,
) -> TopMarginsSnapshot:
    """Margin leaders of a universe.

    All symbols get a snapshot scan; only the strongest net and gross
    candidates are enriched with quarterly series for the quality ranking.
    """
    limit = int(_clamp(limit, 1, settings.ranking_max_limit))

    rows: list[MarginRow] = await map_limit(
        list(symbols),
        settings.metric_concurrency,
        lambda sym: scorer.snapshot(sym, universe),
    )
    valid = [r for r in rows if r.has_margins]

    top_net = _top_by(valid, "net_margin", limit)
    top_gross = _top_by(valid, "gross_margin", limit)

    pool_size = max(limit * 3, 30)
    candidates: dict[str, MarginRow] = {}
    for row in _top_by(valid, "net_margin", pool_size) + _top_by(valid, "gross_margin", pool_size):
        candidates.setdefault(row.symbol, row)

    enriched: list[MarginRow] = await map_limit(
        list(candidates.values()),
        settings.series_concurrency,
        scorer.enrich,
    )
    top_quality = _top_by(enriched, "quality_score", limit)

    period_hint: MarginPeriod = "UNKNOWN"
    for leaders in (top_net, top_gross):
        if leaders:
            period_hint = leaders[0].period
            break

    logger.info(
        f"Top margins for {universe.value}: {len(valid)}/{len(rows)} symbols with margins, "
        f"{len(enriched)} enriched",
        extra={"universe": universe.value},
    )
    return TopMarginsSnapshot(
        universe=universe.value,
        updated_at=now or datetime.now(timezone.utc),
        period_hint=period_hint,
        top_net=top_net,
        top_gross=top_gross,
        top_quality=top_quality,
    )
