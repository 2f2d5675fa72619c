"""Pytest configuration and fixtures.

Tests run without PostgreSQL, Valkey or Finnhub: repositories and upstream
clients are replaced by the in-memory fakes below, either injected directly
into services or through ``app.dependency_overrides``.
"""

from __future__ import annotations

import itertools
from collections.abc import Sequence
from datetime import date, datetime, timezone
from typing import Generator

import pytest
from fastapi.testclient import TestClient

from signalboard.core.exceptions import StoreError
from signalboard.domain import (
    LeaderboardRow,
    NewSignal,
    SignalEvent,
    SignalOutcome,
    SignalSide,
)

CRON_SECRET = "cron-test-secret"
SCAN_SECRET = "scan-test-secret"


class FakeSignalStore:
    """In-memory stand-in for ``signalboard.repositories.signals_orm``."""

    def __init__(self, events: Sequence[SignalEvent] = ()):
        self.events: list[SignalEvent] = list(events)
        self._ids = itertools.count(max((e.id for e in self.events), default=0) + 1)

    def add(
        self,
        symbol: str,
        side: SignalSide,
        score: float | None,
        created_at: datetime,
        price: float | None = None,
        reasons: str | None = None,
    ) -> SignalEvent:
        event = SignalEvent(
            id=next(self._ids),
            symbol=symbol,
            symbol_plain=symbol.split(":")[-1].upper(),
            side=side,
            price=price,
            score=score,
            reasons=reasons,
            created_at=created_at,
        )
        self.events.append(event)
        return event

    async def insert_signal(self, new_signal: NewSignal) -> SignalEvent:
        return self.add(
            new_signal.symbol,
            new_signal.side,
            new_signal.score,
            new_signal.created_at,
            price=new_signal.price,
            reasons=new_signal.reasons,
        )

    async def list_recent(self, limit: int = 500, since: datetime | None = None) -> list[SignalEvent]:
        rows = [e for e in self.events if since is None or e.created_at >= since]
        rows.sort(key=lambda e: (e.created_at, e.id), reverse=True)
        return rows[:limit]

    async def get_top_for_range(
        self, side: SignalSide, start: datetime, end: datetime, limit: int = 10
    ) -> list[SignalEvent]:
        rows = [
            e
            for e in self.events
            if e.side == side and start <= e.created_at < end and e.score is not None
        ]
        rows.sort(key=lambda e: (e.score, e.created_at), reverse=True)
        return rows[:limit]

    async def update_outcome(self, signal_id: int, outcome: SignalOutcome | None) -> SignalEvent | None:
        for i, event in enumerate(self.events):
            if event.id == signal_id:
                self.events[i] = event.model_copy(update={"outcome": outcome})
                return self.events[i]
        return None


class FakeLeaderboardStore:
    """In-memory stand-in for ``signalboard.repositories.leaderboard_orm``."""

    def __init__(self, fail_prune: bool = False, fail_upsert: bool = False):
        self.rows: dict[tuple[date, str, str], LeaderboardRow] = {}
        self.fail_prune = fail_prune
        self.fail_upsert = fail_upsert
        self.upsert_calls = 0

    async def upsert_entries(self, rows: Sequence[LeaderboardRow]) -> int:
        self.upsert_calls += 1
        if self.fail_upsert:
            raise StoreError(message="Failed to upsert leaderboard rows")
        keys = [r.key for r in rows]
        assert len(keys) == len(set(keys)), "duplicate keys in one upsert"
        for row in rows:
            self.rows[row.key] = row
        return len(rows)

    async def delete_before(self, cutoff: date) -> int:
        if self.fail_prune:
            raise StoreError(message="Failed to prune leaderboard")
        stale = [k for k in self.rows if k[0] < cutoff]
        for key in stale:
            del self.rows[key]
        return len(stale)

    async def list_since(self, cutoff: date) -> list[LeaderboardRow]:
        rows = [r for r in self.rows.values() if r.day >= cutoff]
        return sorted(rows, key=lambda r: (r.day, r.score or float("-inf")), reverse=True)


class FakePrices:
    """Daily close source keyed by market symbol."""

    def __init__(self, closes: dict[str, list[float]] | None = None):
        self.closes = closes or {}
        self.calls: list[tuple[str, int]] = []

    async def daily_closes(self, symbol: str, days: int) -> list[float]:
        self.calls.append((symbol, days))
        return list(self.closes.get(symbol, []))


@pytest.fixture
def secrets(monkeypatch):
    """Configure known shared secrets."""
    from signalboard.core.config import settings

    monkeypatch.setattr(settings, "cron_secret", CRON_SECRET)
    monkeypatch.setattr(settings, "scan_secret", SCAN_SECRET)
    return {"cron": CRON_SECRET, "scan": SCAN_SECRET}


@pytest.fixture
def signal_store() -> FakeSignalStore:
    return FakeSignalStore()


@pytest.fixture
def leaderboard_store() -> FakeLeaderboardStore:
    return FakeLeaderboardStore()


@pytest.fixture
def client(secrets) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI app."""
    from signalboard.api.app import create_api_app

    app = create_api_app()
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def monday() -> datetime:
    """Monday 2024-06-10, 12:00 UTC (15:00 business time)."""
    return datetime(2024, 6, 10, 12, 0, tzinfo=timezone.utc)
