"""Signalboard - market signal scoring and leaderboard service."""
