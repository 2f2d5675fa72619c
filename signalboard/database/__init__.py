"""Database connection and ORM models."""

from .connection import close_sqlalchemy_engine, get_engine, get_session, init_sqlalchemy_engine
from .orm import Base, DailyLeaderboardEntry, Signal


__all__ = [
    "Base",
    "DailyLeaderboardEntry",
    "Signal",
    "close_sqlalchemy_engine",
    "get_engine",
    "get_session",
    "init_sqlalchemy_engine",
]
