"""API request/response schemas."""

from .common import ErrorResponse, HealthResponse
from .leaderboard import DailyTopResponse
from .scores import (
    CompositeRankingResponse,
    TopMarginsCronResponse,
    TopMarginsCronResult,
    TopMarginsResponse,
)
from .signals import (
    SignalIngestRequest,
    SignalListResponse,
    SignalOutcomeRequest,
    SignalResponse,
    TodayTopResponse,
)

__all__ = [
    "CompositeRankingResponse",
    "DailyTopResponse",
    "ErrorResponse",
    "HealthResponse",
    "SignalIngestRequest",
    "SignalListResponse",
    "SignalOutcomeRequest",
    "SignalResponse",
    "TodayTopResponse",
    "TopMarginsCronResponse",
    "TopMarginsCronResult",
    "TopMarginsResponse",
]
