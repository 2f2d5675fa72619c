"""Scheduler-triggered margin leader refresh."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from signalboard.cache import Cache
from signalboard.core.config import settings
from signalboard.core.logging import get_logger
from signalboard.core.universes import UNIVERSE_MEMBERS, Universe
from signalboard.schemas.scores import TopMarginsCronResponse, TopMarginsCronResult
from signalboard.services.quality import QualityScorer, compute_top_margins

from ..dependencies import get_margins_cache, require_cron_secret, require_quality_scorer
from .scores import margins_cache_key


router = APIRouter(prefix="/cron", dependencies=[Depends(require_cron_secret)])

logger = get_logger("api.cron")

REFRESHED_UNIVERSES = (Universe.BIST100, Universe.NASDAQ100)
LAST_RUN_KEY = "top-margins:last-run"


@router.api_route(
    "/top-margins",
    methods=["GET", "POST"],
    response_model=TopMarginsCronResponse,
    summary="Refresh margin leaders",
    description="Recompute BIST100 and NASDAQ100 margin leaders and store them in the cache.",
)
async def refresh_top_margins(
    cache: Cache = Depends(get_margins_cache),
    scorer: QualityScorer = Depends(require_quality_scorer),
) -> TopMarginsCronResponse:
    snapshots = await asyncio.gather(
        *(
            compute_top_margins(scorer, u, UNIVERSE_MEMBERS[u], limit=settings.ranking_max_limit)
            for u in REFRESHED_UNIVERSES
        )
    )

    results = []
    for universe, snapshot in zip(REFRESHED_UNIVERSES, snapshots):
        await cache.set(margins_cache_key(universe), snapshot.model_dump(mode="json"))
        results.append(
            TopMarginsCronResult(
                universe=universe.value,
                top_net=len(snapshot.top_net),
                top_gross=len(snapshot.top_gross),
                top_quality=len(snapshot.top_quality),
            )
        )

    last_run = datetime.now(timezone.utc)
    await cache.set(LAST_RUN_KEY, last_run.isoformat())
    logger.info(
        "Margin leaders refreshed",
        extra={"universes": [u.value for u in REFRESHED_UNIVERSES]},
    )
    return TopMarginsCronResponse(last_run=last_run, results=results)
