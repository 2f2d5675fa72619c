"""Daily leaderboard domain models."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field

from .signals import SignalSide


class RunState(str, Enum):
    """Phases of a retention run. A run always returns to IDLE."""

    IDLE = "idle"
    FETCHING_TOP = "fetching_top"
    ENRICHING = "enriching"
    UPSERTING = "upserting"
    PRUNING = "pruning"


class LeaderboardRow(BaseModel):
    """One ``(day, side, symbol)`` leaderboard entry."""

    day: date
    side: SignalSide
    symbol: str
    score: float | None = None
    close_price: float | None = None
    close_10bd: float | None = Field(None, description="Close 10 business days earlier")
    pct_10bd: float | None = Field(None, description="Percent change since close_10bd")
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}

    @property
    def key(self) -> tuple[date, str, str]:
        return (self.day, self.side.value, self.symbol)


class LeaderboardRun(BaseModel):
    """Summary of a completed retention run."""

    ok: bool = True
    day: date
    buy_count: int
    sell_count: int
    cutoff_day: date
    pruned: int | None = Field(None, description="Rows deleted; None when pruning failed")
    prune_ok: bool = True
