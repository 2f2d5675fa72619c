"""Daily leaderboard repository using SQLAlchemy ORM.

Rows are keyed by ``(day, side, symbol)``. Writes go through a single
``INSERT ... ON CONFLICT DO UPDATE`` so repeated or concurrent runs for the
same day converge on the same row set.

Usage:
    from signalboard.repositories import leaderboard_orm as leaderboard_repo

    await leaderboard_repo.upsert_entries(rows)
    await leaderboard_repo.delete_before(cutoff_day)
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date

from sqlalchemy import Delete, Select, delete, func, select
from sqlalchemy.dialects.postgresql import Insert, insert
from sqlalchemy.exc import SQLAlchemyError

from signalboard.core.exceptions import StoreError
from signalboard.core.logging import get_logger
from signalboard.database.connection import get_session
from signalboard.database.orm import DailyLeaderboardEntry
from signalboard.domain import LeaderboardRow


logger = get_logger("repositories.leaderboard_orm")

_UPDATABLE = ("score", "close_price", "close_10bd", "pct_10bd")


def build_upsert_statement(rows: Sequence[LeaderboardRow]) -> Insert:
    """Multi-row insert that updates the value columns on key conflict."""
    stmt = insert(DailyLeaderboardEntry).values(
        [
            {
                "day": r.day,
                "side": r.side.value,
                "symbol": r.symbol,
                "score": r.score,
                "close_price": r.close_price,
                "close_10bd": r.close_10bd,
                "pct_10bd": r.pct_10bd,
            }
            for r in rows
        ]
    )
    return stmt.on_conflict_do_update(
        index_elements=["day", "side", "symbol"],
        set_={
            **{col: getattr(stmt.excluded, col) for col in _UPDATABLE},
            "updated_at": func.now(),
        },
    )


def build_prune_statement(cutoff: date) -> Delete:
    return delete(DailyLeaderboardEntry).where(DailyLeaderboardEntry.day < cutoff)


def build_since_query(cutoff: date) -> Select:
    return (
        select(DailyLeaderboardEntry)
        .where(DailyLeaderboardEntry.day >= cutoff)
        .order_by(
            DailyLeaderboardEntry.day.desc(),
            DailyLeaderboardEntry.score.desc().nulls_last(),
            DailyLeaderboardEntry.symbol.asc(),
        )
    )


async def upsert_entries(rows: Sequence[LeaderboardRow]) -> int:
    """Insert-or-update leaderboard rows. Returns the number of rows written."""
    if not rows:
        return 0
    try:
        async with get_session() as session:
            await session.execute(build_upsert_statement(rows))
            await session.commit()
    except SQLAlchemyError as e:
        days = sorted({r.day.isoformat() for r in rows})
        logger.error(
            f"Leaderboard upsert failed for {days}: {e}",
            extra={"days": days, "rows": len(rows)},
        )
        raise StoreError(
            message="Failed to upsert leaderboard rows",
            details={"days": days, "rows": len(rows)},
        ) from e
    logger.debug(f"Upserted {len(rows)} leaderboard rows")
    return len(rows)


async def delete_before(cutoff: date) -> int:
    """Delete every leaderboard row with ``day`` strictly before ``cutoff``."""
    try:
        async with get_session() as session:
            result = await session.execute(build_prune_statement(cutoff))
            await session.commit()
            return result.rowcount or 0
    except SQLAlchemyError as e:
        raise StoreError(
            message="Failed to prune leaderboard",
            details={"cutoff_day": cutoff.isoformat()},
        ) from e


async def list_since(cutoff: date) -> list[LeaderboardRow]:
    """Rows with ``day >= cutoff``, newest day first, then best score first."""
    try:
        async with get_session() as session:
            result = await session.execute(build_since_query(cutoff))
            return [LeaderboardRow.model_validate(r) for r in result.scalars().all()]
    except SQLAlchemyError as e:
        logger.error(f"Failed to read leaderboard since {cutoff}: {e}")
        raise StoreError(message="Failed to read leaderboard") from e
