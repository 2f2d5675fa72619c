"""Composite ranking and margin leader endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response

from signalboard.cache import Cache
from signalboard.core.config import settings
from signalboard.core.exceptions import ValidationError
from signalboard.core.logging import get_logger
from signalboard.core.universes import UNIVERSE_MEMBERS, Universe
from signalboard.domain import TopMarginsSnapshot
from signalboard.schemas.scores import CompositeRankingResponse, TopMarginsResponse
from signalboard.services.composite import CompositeScoreAggregator
from signalboard.services.quality import QualityScorer, compute_top_margins

from ..dependencies import get_composite_aggregator, get_margins_cache, require_quality_scorer


router = APIRouter()

logger = get_logger("api.scores")

NO_STORE = "no-store, no-cache, must-revalidate, proxy-revalidate"


def _bounded_limit(limit: int) -> int:
    return max(1, min(settings.ranking_max_limit, limit))


def margins_cache_key(universe: Universe) -> str:
    return f"top-margins:{universe.value}"


@router.get(
    "/score/top",
    response_model=CompositeRankingResponse,
    summary="Composite ranking",
    description="Symbols with recent signals ranked by the technical/fundamental/news blend.",
)
async def score_top(
    response: Response,
    u: str = Query(Universe.BIST100.value, description="Universe identifier"),
    limit: int = Query(10, description="Number of entries (clamped to 1..50)"),
    aggregator: CompositeScoreAggregator = Depends(get_composite_aggregator),
) -> CompositeRankingResponse:
    response.headers["Cache-Control"] = NO_STORE
    universe = Universe.parse(u)
    items = await aggregator.rank(universe, _bounded_limit(limit))
    return CompositeRankingResponse(universe=universe.value, items=items)


def _trim(snapshot: TopMarginsSnapshot, limit: int) -> TopMarginsSnapshot:
    return snapshot.model_copy(
        update={
            "top_net": snapshot.top_net[:limit],
            "top_gross": snapshot.top_gross[:limit],
            "top_quality": snapshot.top_quality[:limit],
        }
    )


@router.get(
    "/financials/top-margins",
    response_model=TopMarginsResponse,
    summary="Margin leaders",
    description="Top net, gross and quality margin rows of a universe (cached daily).",
)
async def top_margins(
    universe: str = Query(Universe.BIST100.value),
    limit: int = Query(10, description="Rows per list (clamped to 1..50)"),
    cache: Cache = Depends(get_margins_cache),
    scorer: QualityScorer = Depends(require_quality_scorer),
) -> TopMarginsResponse:
    resolved = Universe.parse(universe)
    members = UNIVERSE_MEMBERS.get(resolved)
    if not members:
        raise ValidationError(
            message=f"No member list for universe {resolved.value}",
            details={"universe": resolved.value},
        )
    limit = _bounded_limit(limit)

    cached = await cache.get(margins_cache_key(resolved))
    if cached is not None:
        try:
            snapshot = TopMarginsSnapshot.model_validate(cached)
        except ValueError:
            logger.warning(f"Ignoring malformed cached margins for {resolved.value}")
        else:
            return TopMarginsResponse(source="cache", data=_trim(snapshot, limit))

    snapshot = await compute_top_margins(
        scorer, resolved, members, limit=settings.ranking_max_limit
    )
    await cache.set(margins_cache_key(resolved), snapshot.model_dump(mode="json"))
    return TopMarginsResponse(source="live", data=_trim(snapshot, limit))
