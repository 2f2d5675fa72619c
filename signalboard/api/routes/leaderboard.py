"""Daily leaderboard trigger and read endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, Response

from signalboard.core.business_days import business_day
from signalboard.core.logging import get_logger
from signalboard.domain import LeaderboardRun
from signalboard.schemas.leaderboard import DailyTopResponse
from signalboard.services.leaderboard import DailyLeaderboardManager

from ..dependencies import authorize_cron, get_leaderboard_manager, require_cron_secret


router = APIRouter(prefix="/daily-top")

logger = get_logger("api.leaderboard")

NO_STORE = "no-store, no-cache, must-revalidate, proxy-revalidate"


@router.post(
    "",
    response_model=LeaderboardRun,
    dependencies=[Depends(require_cron_secret)],
    summary="Run daily leaderboard",
    description=(
        "Store today's top signals per side with their 10-business-day change "
        "and prune days outside the retention window. Safe to repeat."
    ),
)
async def run_daily_top(
    response: Response,
    manager: DailyLeaderboardManager = Depends(get_leaderboard_manager),
) -> LeaderboardRun:
    response.headers["Cache-Control"] = NO_STORE
    return await manager.run()


@router.get(
    "",
    response_model=DailyTopResponse,
    summary="Read daily leaderboard",
    description=(
        "Rows inside the retention window, newest day first. With run=true "
        "(and a valid secret) the job runs first."
    ),
)
async def read_daily_top(
    request: Request,
    response: Response,
    run: bool = Query(False, description="Run the job before reading"),
    manager: DailyLeaderboardManager = Depends(get_leaderboard_manager),
) -> DailyTopResponse:
    response.headers["Cache-Control"] = NO_STORE
    summary: LeaderboardRun | None = None
    if run:
        authorize_cron(request)
        summary = await manager.run()

    cutoff = manager.cutoff_for(business_day())
    items = await manager.read()
    return DailyTopResponse(cutoff_day=cutoff, items=items, run=summary)
