"""SQLAlchemy ORM models for Signalboard.

Usage:
    from signalboard.database.orm import Signal, DailyLeaderboardEntry
    from signalboard.database.connection import get_session
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Float,
    Index,
    MetaData,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# Naming convention for constraints and indexes (deterministic names for Alembic)
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Base class for all ORM models with naming convention."""
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


class Signal(Base):
    """Raw BUY/SELL signal event pushed by an external producer.

    Append-only: ``outcome`` is the only column updated after insert.
    """
    __tablename__ = "signals"

    id: Mapped[int] = mapped_column(primary_key=True)
    symbol: Mapped[str] = mapped_column(String(40), nullable=False)
    symbol_plain: Mapped[str] = mapped_column(String(20), nullable=False)
    side: Mapped[str] = mapped_column(String(4), nullable=False)
    price: Mapped[float | None] = mapped_column(Float)
    score: Mapped[float | None] = mapped_column(Float)
    reasons: Mapped[str | None] = mapped_column(Text)  # comma-joined tags
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    outcome: Mapped[str | None] = mapped_column(String(4))

    __table_args__ = (
        CheckConstraint("side IN ('BUY', 'SELL')", name="side"),
        CheckConstraint("outcome IS NULL OR outcome IN ('WIN', 'LOSS')", name="outcome"),
        Index("idx_signals_created_at", "created_at", postgresql_ops={"created_at": "DESC"}),
        Index("idx_signals_side_created", "side", "created_at"),
        Index("idx_signals_symbol_plain", "symbol_plain"),
    )


class DailyLeaderboardEntry(Base):
    """Per-business-day top signal snapshot, upserted by the retention run."""
    __tablename__ = "daily_leaderboard"

    id: Mapped[int] = mapped_column(primary_key=True)
    day: Mapped[date] = mapped_column(Date, nullable=False)
    side: Mapped[str] = mapped_column(String(4), nullable=False)
    symbol: Mapped[str] = mapped_column(String(40), nullable=False)
    score: Mapped[float | None] = mapped_column(Float)
    close_price: Mapped[float | None] = mapped_column(Float)
    close_10bd: Mapped[float | None] = mapped_column(Float)
    pct_10bd: Mapped[float | None] = mapped_column(Float)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("day", "side", "symbol", name="uq_daily_leaderboard_key"),
        CheckConstraint("side IN ('BUY', 'SELL')", name="side"),
        Index("idx_daily_leaderboard_day", "day"),
    )
