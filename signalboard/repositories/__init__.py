"""Data access layer repositories.

Each repository module provides async functions for database operations.
All code uses SQLAlchemy ORM models from `signalboard.database.orm` with the
`get_session()` context manager.

- signals_orm: append-only signal events and top-of-day queries
- leaderboard_orm: per-day leaderboard upserts, reads and pruning
"""

from . import leaderboard_orm
from . import signals_orm

__all__ = [
    "leaderboard_orm",
    "signals_orm",
]
