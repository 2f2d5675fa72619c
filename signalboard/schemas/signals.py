"""Signal API schemas.

Request bodies are parsed loosely so that the shared secret can be checked
before any field validation; ``to_new_signal`` / ``to_update`` then turn them
into validated values or raise ``ValidationError``.
"""

from __future__ import annotations

import math
from datetime import date, datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from signalboard.core.exceptions import ValidationError
from signalboard.core.universes import plain_symbol
from signalboard.domain import NewSignal, SignalEvent, SignalOutcome, SignalSide, join_reasons

# Numeric timestamps below this are seconds, otherwise milliseconds.
EPOCH_MS_THRESHOLD = 1e12


def _optional_number(name: str, value: Any) -> float | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(message=f"{name} must be a number", details={"field": name})
    try:
        result = float(value)
    except (TypeError, ValueError):
        raise ValidationError(message=f"{name} must be a number", details={"field": name})
    if not math.isfinite(result):
        raise ValidationError(message=f"{name} must be finite", details={"field": name})
    return result


def parse_timestamp(value: Any, now: datetime | None = None) -> datetime:
    """Epoch seconds or milliseconds, ISO-8601 string, or now when absent."""
    if value is None or value == "":
        return now or datetime.now(timezone.utc)
    if isinstance(value, bool):
        raise ValidationError(message="timestamp is invalid", details={"field": "timestamp"})
    if isinstance(value, str):
        text = value.strip()
        try:
            value = float(text)
        except ValueError:
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                raise ValidationError(
                    message="timestamp is invalid", details={"field": "timestamp"}
                )
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(message="timestamp is invalid", details={"field": "timestamp"})
    if not math.isfinite(number) or number < 0:
        raise ValidationError(message="timestamp is invalid", details={"field": "timestamp"})
    seconds = number if number < EPOCH_MS_THRESHOLD else number / 1000
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        raise ValidationError(message="timestamp is out of range", details={"field": "timestamp"})


class SignalIngestRequest(BaseModel):
    """Producer payload. ``signal`` and ``t`` are accepted as aliases of ``side`` and ``timestamp``."""

    secret: Any = None
    symbol: Any = None
    side: Any = None
    signal: Any = None
    price: Any = None
    score: Any = None
    reasons: Any = None
    timestamp: Any = None
    t: Any = None

    model_config = {"extra": "ignore"}

    def to_new_signal(self, now: datetime | None = None) -> NewSignal:
        symbol = str(self.symbol).strip() if isinstance(self.symbol, (str, int)) else ""
        if not symbol:
            raise ValidationError(message="symbol is required", details={"field": "symbol"})
        if len(symbol) > 40:
            raise ValidationError(message="symbol is too long", details={"field": "symbol"})
        symbol_plain = plain_symbol(symbol)
        if not symbol_plain or len(symbol_plain) > 20:
            raise ValidationError(message="symbol is invalid", details={"field": "symbol"})

        raw_side = self.side if self.side is not None else self.signal
        try:
            side = SignalSide(str(raw_side or "").strip().upper())
        except ValueError:
            raise ValidationError(
                message="side must be BUY or SELL", details={"field": "side"}
            )

        reasons = self.reasons
        if reasons is not None and not isinstance(reasons, (str, list)):
            raise ValidationError(
                message="reasons must be a string or a list", details={"field": "reasons"}
            )

        return NewSignal(
            symbol=symbol,
            symbol_plain=symbol_plain,
            side=side,
            price=_optional_number("price", self.price),
            score=_optional_number("score", self.score),
            reasons=join_reasons(reasons),
            created_at=parse_timestamp(self.t if self.t is not None else self.timestamp, now),
        )


class SignalOutcomeRequest(BaseModel):
    """Reviewer update; ``outcome`` null clears a previous verdict."""

    secret: Any = None
    id: Any = None
    outcome: Any = None

    model_config = {"extra": "ignore"}

    def to_update(self) -> tuple[int, SignalOutcome | None]:
        if isinstance(self.id, bool):
            raise ValidationError(message="id must be an integer", details={"field": "id"})
        try:
            signal_id = int(self.id)
        except (TypeError, ValueError):
            raise ValidationError(message="id must be an integer", details={"field": "id"})
        if self.outcome is None or self.outcome == "":
            return signal_id, None
        try:
            return signal_id, SignalOutcome(str(self.outcome).strip().upper())
        except ValueError:
            raise ValidationError(
                message="outcome must be WIN, LOSS or null", details={"field": "outcome"}
            )


class SignalResponse(BaseModel):
    ok: bool = True
    signal: SignalEvent


class SignalListResponse(BaseModel):
    ok: bool = True
    items: list[SignalEvent] = Field(default_factory=list)


class TodayTopResponse(BaseModel):
    ok: bool = True
    day: date
    buy: list[SignalEvent] = Field(default_factory=list)
    sell: list[SignalEvent] = Field(default_factory=list)
