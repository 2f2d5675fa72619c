"""Business logic services."""

from . import composite, leaderboard, quality, statements


__all__ = [
    "composite",
    "leaderboard",
    "quality",
    "statements",
]
