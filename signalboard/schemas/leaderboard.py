"""Daily leaderboard API schemas."""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field

from signalboard.domain import LeaderboardRow, LeaderboardRun


class DailyTopResponse(BaseModel):
    """Leaderboard rows inside the retention window."""

    ok: bool = True
    cutoff_day: date = Field(..., description="Oldest business day kept")
    items: list[LeaderboardRow] = Field(default_factory=list)
    run: LeaderboardRun | None = Field(None, description="Summary when the read also ran the job")
