"""API route modules."""

from . import cron, health, leaderboard, scores, signals

__all__ = ["cron", "health", "leaderboard", "scores", "signals"]
