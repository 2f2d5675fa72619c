"""Signal ingestion, listing and outcome review endpoints.

Every response carries ``Cache-Control: no-store``; producers and reviewers
expect to read their own writes immediately.
"""

from __future__ import annotations

import asyncio
from types import ModuleType
from typing import Any, Literal

from fastapi import APIRouter, Body, Depends, Query, Response, status

from signalboard.core.business_days import business_day, business_day_range
from signalboard.core.exceptions import NotFoundError
from signalboard.core.logging import get_logger
from signalboard.domain import SignalSide
from signalboard.schemas.signals import (
    SignalIngestRequest,
    SignalListResponse,
    SignalOutcomeRequest,
    SignalResponse,
    TodayTopResponse,
)

from ..dependencies import check_scan_secret, get_signal_store


router = APIRouter(prefix="/signals")

logger = get_logger("api.signals")

NO_STORE = "no-store, no-cache, must-revalidate, proxy-revalidate"
RECENT_LIMIT = 500
TODAY_TOP_LIMIT = 5


@router.post(
    "",
    response_model=SignalResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Ingest a signal",
    description="Append a BUY/SELL signal event. Requires the producer secret.",
)
async def ingest_signal(
    response: Response,
    payload: dict[str, Any] = Body(...),
    store: ModuleType = Depends(get_signal_store),
) -> SignalResponse:
    response.headers["Cache-Control"] = NO_STORE
    request = SignalIngestRequest.model_validate(payload)
    check_scan_secret(request.secret)
    new_signal = request.to_new_signal()

    event = await store.insert_signal(new_signal)
    logger.info(
        f"Signal {event.id} stored: {event.side.value} {event.symbol}",
        extra={"signal_id": event.id, "symbol": event.symbol, "side": event.side.value},
    )
    return SignalResponse(signal=event)


@router.get(
    "",
    response_model=SignalListResponse | TodayTopResponse,
    summary="List signals",
    description=(
        "Most recent signals, newest first. With scope=todayTop, the top "
        "signals per side for the current business day."
    ),
)
async def list_signals(
    response: Response,
    scope: Literal["todayTop"] | None = Query(None, description="Optional view"),
    store: ModuleType = Depends(get_signal_store),
) -> SignalListResponse | TodayTopResponse:
    response.headers["Cache-Control"] = NO_STORE
    if scope is None:
        return SignalListResponse(items=await store.list_recent(limit=RECENT_LIMIT))

    day = business_day()
    start, end = business_day_range(day)
    buy, sell = await asyncio.gather(
        store.get_top_for_range(SignalSide.BUY, start, end, limit=TODAY_TOP_LIMIT),
        store.get_top_for_range(SignalSide.SELL, start, end, limit=TODAY_TOP_LIMIT),
    )
    return TodayTopResponse(day=day, buy=buy, sell=sell)


@router.patch(
    "",
    response_model=SignalResponse,
    summary="Set signal outcome",
    description="Mark a signal WIN or LOSS, or clear the outcome with null.",
)
async def set_outcome(
    response: Response,
    payload: dict[str, Any] = Body(...),
    store: ModuleType = Depends(get_signal_store),
) -> SignalResponse:
    response.headers["Cache-Control"] = NO_STORE
    request = SignalOutcomeRequest.model_validate(payload)
    check_scan_secret(request.secret)
    signal_id, outcome = request.to_update()

    event = await store.update_outcome(signal_id, outcome)
    if event is None:
        raise NotFoundError(message=f"Signal {signal_id} not found", details={"id": signal_id})
    return SignalResponse(signal=event)
