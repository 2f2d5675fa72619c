"""Ranking and margin-leader API schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from signalboard.domain import CompositeScoreEntry, TopMarginsSnapshot


class CompositeRankingResponse(BaseModel):
    ok: bool = True
    universe: str
    items: list[CompositeScoreEntry] = Field(default_factory=list)


class TopMarginsResponse(BaseModel):
    ok: bool = True
    source: Literal["cache", "live"] = Field(..., description="Where the snapshot came from")
    data: TopMarginsSnapshot


class TopMarginsCronResult(BaseModel):
    universe: str
    top_net: int
    top_gross: int
    top_quality: int


class TopMarginsCronResponse(BaseModel):
    ok: bool = True
    last_run: datetime
    results: list[TopMarginsCronResult] = Field(default_factory=list)
