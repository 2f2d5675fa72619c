"""Signal domain models.

Type-safe representations of raw BUY/SELL signal events.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class SignalSide(str, Enum):
    """Direction of a signal."""

    BUY = "BUY"
    SELL = "SELL"


class SignalOutcome(str, Enum):
    """Reviewer verdict on a signal."""

    WIN = "WIN"
    LOSS = "LOSS"


def split_reasons(value: str | list[str] | None) -> list[str]:
    """Normalize free-text reason tags into a clean list."""
    if value is None:
        return []
    parts = value.split(",") if isinstance(value, str) else [str(v) for v in value]
    return [p.strip() for p in parts if p and p.strip()]


def join_reasons(value: str | list[str] | None) -> str | None:
    """Comma-join reason tags for storage; ``None`` when there are none."""
    tags = split_reasons(value)
    return ",".join(tags) if tags else None


class SignalEvent(BaseModel):
    """A stored signal event.

    Created by an external producer; ``outcome`` is set later by a reviewer.
    """

    id: int = Field(..., description="Store identifier")
    symbol: str = Field(..., description="Symbol as sent by the producer")
    symbol_plain: str = Field(..., description="Symbol without exchange prefix")
    side: SignalSide = Field(..., description="BUY or SELL")
    price: float | None = Field(None, description="Price at signal time")
    score: float | None = Field(None, description="Technical score")
    reasons: list[str] = Field(default_factory=list, description="Reason tags")
    created_at: datetime = Field(..., description="Signal timestamp")
    outcome: SignalOutcome | None = Field(None, description="WIN / LOSS once reviewed")

    model_config = {"from_attributes": True}

    @field_validator("reasons", mode="before")
    @classmethod
    def parse_reasons(cls, v):
        return split_reasons(v)


class NewSignal(BaseModel):
    """Validated signal ready to be appended to the store."""

    symbol: str = Field(..., min_length=1, max_length=40)
    symbol_plain: str = Field(..., min_length=1, max_length=20)
    side: SignalSide
    price: float | None = None
    score: float | None = None
    reasons: str | None = None
    created_at: datetime
