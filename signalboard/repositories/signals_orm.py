"""Signal event repository using SQLAlchemy ORM.

Raw signal events are append-only. The only mutation after insert is the
reviewer-set ``outcome``; nothing here deletes events.

Usage:
    from signalboard.repositories import signals_orm as signals_repo

    event = await signals_repo.insert_signal(new_signal)
    top = await signals_repo.get_top_for_range(SignalSide.BUY, start, end, limit=10)
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Select, select
from sqlalchemy.exc import SQLAlchemyError

from signalboard.core.exceptions import StoreError
from signalboard.core.logging import get_logger
from signalboard.database.connection import get_session
from signalboard.database.orm import Signal
from signalboard.domain import NewSignal, SignalEvent, SignalOutcome, SignalSide


logger = get_logger("repositories.signals_orm")


def _top_for_range_query(
    side: SignalSide,
    start: datetime,
    end: datetime,
    limit: int,
) -> Select:
    """Scored signals of one side inside ``[start, end)``, best first."""
    return (
        select(Signal)
        .where(
            Signal.side == side.value,
            Signal.created_at >= start,
            Signal.created_at < end,
            Signal.score.is_not(None),
        )
        .order_by(Signal.score.desc(), Signal.created_at.desc())
        .limit(limit)
    )


def _recent_query(limit: int, since: datetime | None = None) -> Select:
    query = select(Signal)
    if since is not None:
        query = query.where(Signal.created_at >= since)
    return query.order_by(Signal.created_at.desc(), Signal.id.desc()).limit(limit)


async def insert_signal(new_signal: NewSignal) -> SignalEvent:
    """Append a validated signal event and return the stored row."""
    row = Signal(
        symbol=new_signal.symbol,
        symbol_plain=new_signal.symbol_plain,
        side=new_signal.side.value,
        price=new_signal.price,
        score=new_signal.score,
        reasons=new_signal.reasons,
        created_at=new_signal.created_at,
    )
    try:
        async with get_session() as session:
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return SignalEvent.model_validate(row)
    except SQLAlchemyError as e:
        logger.error(
            f"Failed to insert signal for {new_signal.symbol}: {e}",
            extra={"symbol": new_signal.symbol, "side": new_signal.side.value},
        )
        raise StoreError(
            message="Failed to store signal",
            details={"symbol": new_signal.symbol},
        ) from e


async def list_recent(limit: int = 500, since: datetime | None = None) -> list[SignalEvent]:
    """Most recent signal events, newest first, optionally not older than ``since``."""
    try:
        async with get_session() as session:
            result = await session.execute(_recent_query(limit, since))
            return [SignalEvent.model_validate(r) for r in result.scalars().all()]
    except SQLAlchemyError as e:
        logger.error(f"Failed to list recent signals: {e}", extra={"limit": limit})
        raise StoreError(message="Failed to read signals") from e


async def get_top_for_range(
    side: SignalSide,
    start: datetime,
    end: datetime,
    limit: int = 10,
) -> list[SignalEvent]:
    """Top ``limit`` scored signals of ``side`` created in ``[start, end)``.

    Ordered by score descending, then by creation time descending.
    """
    try:
        async with get_session() as session:
            result = await session.execute(_top_for_range_query(side, start, end, limit))
            return [SignalEvent.model_validate(r) for r in result.scalars().all()]
    except SQLAlchemyError as e:
        logger.error(
            f"Failed to read top {side.value} signals: {e}",
            extra={"side": side.value, "start": start, "end": end},
        )
        raise StoreError(
            message="Failed to read top signals",
            details={"side": side.value},
        ) from e


async def update_outcome(signal_id: int, outcome: SignalOutcome | None) -> SignalEvent | None:
    """Set the reviewer outcome of a signal. Returns None if the id is unknown."""
    try:
        async with get_session() as session:
            row = await session.get(Signal, signal_id)
            if row is None:
                return None
            row.outcome = outcome.value if outcome else None
            await session.commit()
            await session.refresh(row)
            return SignalEvent.model_validate(row)
    except SQLAlchemyError as e:
        logger.error(
            f"Failed to update outcome of signal {signal_id}: {e}",
            extra={"signal_id": signal_id},
        )
        raise StoreError(
            message="Failed to update signal outcome",
            details={"id": signal_id},
        ) from e
