"""Domain models passed between repositories, services and routes.

Usage:
    from signalboard.domain import SignalEvent, MarginRow, LeaderboardRow
"""

from signalboard.domain.leaderboard import LeaderboardRow, LeaderboardRun, RunState
from signalboard.domain.scoring import (
    CompositeScoreEntry,
    DataQuality,
    MarginPeriod,
    MarginRow,
    TopMarginsSnapshot,
)
from signalboard.domain.signals import (
    NewSignal,
    SignalEvent,
    SignalOutcome,
    SignalSide,
    join_reasons,
    split_reasons,
)

__all__ = [
    # Signals
    "NewSignal",
    "SignalEvent",
    "SignalOutcome",
    "SignalSide",
    "join_reasons",
    "split_reasons",
    # Scoring
    "CompositeScoreEntry",
    "DataQuality",
    "MarginPeriod",
    "MarginRow",
    "TopMarginsSnapshot",
    # Leaderboard
    "LeaderboardRow",
    "LeaderboardRun",
    "RunState",
]
