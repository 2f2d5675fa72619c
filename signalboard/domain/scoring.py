"""Scoring domain models.

Fundamental margin rows, composite ranking entries and margin leader
snapshots. All of these are computed per request and never persisted.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


MarginPeriod = Literal["TTM", "FY", "UNKNOWN"]


class DataQuality(str, Enum):
    """How a derived value was obtained.

    EXACT: computed from snapshot plus quarterly series.
    FALLBACK: computed from the snapshot alone (series missing or unparsable).
    UNAVAILABLE: no margin data at all.
    """

    EXACT = "exact"
    FALLBACK = "fallback"
    UNAVAILABLE = "unavailable"


class MarginRow(BaseModel):
    """Fundamental quality row for one symbol.

    ``quality_score`` is defined whenever either margin is known.
    """

    symbol: str = Field(..., description="Symbol as requested")
    external_symbol: str = Field(..., description="Market-qualified provider symbol")
    gross_margin: float | None = Field(None, description="Gross margin %")
    net_margin: float | None = Field(None, description="Net margin %")
    period: MarginPeriod = Field(default="UNKNOWN", description="Snapshot period")
    gross_series: list[float] = Field(default_factory=list, description="Quarterly gross margin %")
    net_series: list[float] = Field(default_factory=list, description="Quarterly net margin %")
    volatility: float = Field(default=0.0, description="Std-dev of the trend series")
    quality_score: float | None = Field(None, description="Blended quality score")
    data_quality: DataQuality = Field(default=DataQuality.UNAVAILABLE)

    @property
    def has_margins(self) -> bool:
        return self.gross_margin is not None or self.net_margin is not None


class CompositeScoreEntry(BaseModel):
    """One ranked instrument. Sub-scores are clamped to [0, 100]."""

    symbol: str
    price: float | None = Field(None, description="Latest signal price")
    tech_score: float | None = None
    fund_score: float | None = None
    news_score: float | None = None
    overall_score: float | None = None
    fund_quality: DataQuality = Field(default=DataQuality.UNAVAILABLE)
    reasons: list[str] = Field(default_factory=list)
    spark: list[float] = Field(default_factory=list, description="Recent closes for display")


class TopMarginsSnapshot(BaseModel):
    """Margin leaders of a universe."""

    universe: str
    updated_at: datetime
    period_hint: MarginPeriod = "UNKNOWN"
    top_net: list[MarginRow] = Field(default_factory=list)
    top_gross: list[MarginRow] = Field(default_factory=list)
    top_quality: list[MarginRow] = Field(default_factory=list)
