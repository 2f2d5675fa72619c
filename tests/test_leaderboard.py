"""Tests for the daily leaderboard retention run."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from signalboard.core.exceptions import StoreError, UpstreamUnavailableError
from signalboard.domain import LeaderboardRow, RunState, SignalSide
from signalboard.services.leaderboard import (
    DailyLeaderboardManager,
    lookback_change,
    top_unique,
)

from conftest import FakeLeaderboardStore, FakePrices, FakeSignalStore

MONDAY = date(2024, 6, 10)
CUTOFF = date(2024, 5, 28)


class WindowedPrices:
    """Returns a different number of bars per requested window."""

    def __init__(self, bars_by_window: dict[int, int], failing_windows=()):
        self.bars_by_window = bars_by_window
        self.failing_windows = set(failing_windows)
        self.calls: list[int] = []

    async def daily_closes(self, symbol: str, days: int) -> list[float]:
        self.calls.append(days)
        if days in self.failing_windows:
            raise UpstreamUnavailableError(upstream_status=503)
        n = self.bars_by_window.get(days, 0)
        return [100.0 + i for i in range(n)]


def make_manager(signals, store, prices=None, **kwargs) -> DailyLeaderboardManager:
    return DailyLeaderboardManager(
        signals=signals,
        store=store,
        prices=prices,
        top_n=kwargs.pop("top_n", 2),
        retention_days=10,
        windows=kwargs.pop("windows", [30, 60, 120, 240]),
        lookback=10,
        **kwargs,
    )


@pytest.fixture
def signals(monday) -> FakeSignalStore:
    store = FakeSignalStore()
    store.add("AAA", SignalSide.BUY, 40.0, monday, price=111.0)
    store.add("BBB", SignalSide.BUY, 38.0, monday, price=12.5)
    store.add("CCC", SignalSide.BUY, 10.0, monday, price=3.0)
    store.add("ZZZ", SignalSide.SELL, 70.0, monday, price=55.0)
    # Previous business day, outside today's range
    store.add("OLD", SignalSide.BUY, 99.0, monday - timedelta(days=3))
    return store


@pytest.fixture
def prices() -> FakePrices:
    return FakePrices({"AAA": [100.0 + i for i in range(11)]})


class TestHelpers:
    """Tests for top_unique and lookback_change."""

    def test_lookback_change(self):
        closes = [100.0 + i for i in range(11)]
        assert lookback_change(closes, 10) == (110.0, 100.0, 10.0)

    def test_lookback_change_short_series(self):
        assert lookback_change([5.0, 6.0], 10) == (6.0, None, None)
        assert lookback_change([], 10, fallback_close=7.0) == (7.0, None, None)

    def test_lookback_change_zero_base(self):
        closes = [0.0] + [1.0] * 10
        assert lookback_change(closes, 10) == (1.0, 0.0, None)

    def test_top_unique_keeps_first_per_symbol(self, monday):
        store = FakeSignalStore()
        a1 = store.add("AAA", SignalSide.BUY, 50.0, monday)
        store.add("AAA", SignalSide.BUY, 45.0, monday)
        b = store.add("BBB", SignalSide.BUY, 40.0, monday)
        assert top_unique(store.events, 5) == [a1, b]


class TestDailyLeaderboardManager:
    """Tests for DailyLeaderboardManager.run."""

    @pytest.mark.asyncio
    async def test_run_stores_top_signals_with_lookback(self, signals, leaderboard_store, prices, monday):
        manager = make_manager(signals, leaderboard_store, prices)
        summary = await manager.run(monday)

        assert summary.ok
        assert summary.day == MONDAY
        assert summary.buy_count == 2
        assert summary.sell_count == 1
        assert summary.cutoff_day == CUTOFF
        assert summary.prune_ok and summary.pruned == 0

        aaa = leaderboard_store.rows[(MONDAY, "BUY", "AAA")]
        assert aaa.score == 40.0
        assert aaa.close_price == 110.0
        assert aaa.close_10bd == 100.0
        assert aaa.pct_10bd == pytest.approx(10.0)

        bbb = leaderboard_store.rows[(MONDAY, "BUY", "BBB")]
        assert bbb.close_price == 12.5
        assert bbb.close_10bd is None
        assert bbb.pct_10bd is None

        assert (MONDAY, "SELL", "ZZZ") in leaderboard_store.rows
        assert (MONDAY, "BUY", "CCC") not in leaderboard_store.rows
        assert not any(key[2] == "OLD" for key in leaderboard_store.rows)
        assert manager.state == RunState.IDLE

    @pytest.mark.asyncio
    async def test_second_run_is_idempotent(self, signals, leaderboard_store, prices, monday):
        manager = make_manager(signals, leaderboard_store, prices)
        await manager.run(monday)
        first = dict(leaderboard_store.rows)

        await manager.run(monday)
        assert leaderboard_store.rows == first
        assert leaderboard_store.upsert_calls == 2

    @pytest.mark.asyncio
    async def test_prunes_days_before_cutoff(self, signals, leaderboard_store, monday):
        stale = LeaderboardRow(day=CUTOFF - timedelta(days=1), side=SignalSide.BUY, symbol="X")
        kept = LeaderboardRow(day=CUTOFF, side=SignalSide.SELL, symbol="Y")
        leaderboard_store.rows = {stale.key: stale, kept.key: kept}

        summary = await make_manager(signals, leaderboard_store).run(monday)
        assert summary.pruned == 1
        assert stale.key not in leaderboard_store.rows
        assert kept.key in leaderboard_store.rows

    @pytest.mark.asyncio
    async def test_prune_failure_is_not_fatal(self, signals, monday):
        store = FakeLeaderboardStore(fail_prune=True)
        manager = make_manager(signals, store)
        summary = await manager.run(monday)

        assert summary.ok
        assert summary.prune_ok is False
        assert summary.pruned is None
        assert len(store.rows) == 3
        assert manager.state == RunState.IDLE

    @pytest.mark.asyncio
    async def test_upsert_failure_propagates(self, signals, monday):
        manager = make_manager(signals, FakeLeaderboardStore(fail_upsert=True))
        with pytest.raises(StoreError):
            await manager.run(monday)
        assert manager.state == RunState.IDLE

    @pytest.mark.asyncio
    async def test_duplicate_symbols_do_not_shrink_top(self, leaderboard_store, monday):
        signals = FakeSignalStore()
        signals.add("AAA", SignalSide.BUY, 50.0, monday)
        signals.add("AAA", SignalSide.BUY, 45.0, monday + timedelta(minutes=5))
        signals.add("BBB", SignalSide.BUY, 40.0, monday)

        summary = await make_manager(signals, leaderboard_store).run(monday)
        assert summary.buy_count == 2
        assert leaderboard_store.rows[(MONDAY, "BUY", "AAA")].score == 50.0
        assert (MONDAY, "BUY", "BBB") in leaderboard_store.rows

    @pytest.mark.asyncio
    async def test_widens_window_until_enough_bars(self, signals, leaderboard_store, monday):
        prices = WindowedPrices({30: 5, 60: 11, 120: 40})
        manager = make_manager(signals, leaderboard_store, prices, top_n=1)
        await manager.run(monday)

        # One BUY (AAA) and one SELL (ZZZ), each stopping at the 60-day window
        assert sorted(prices.calls) == [30, 30, 60, 60]
        aaa = leaderboard_store.rows[(MONDAY, "BUY", "AAA")]
        assert aaa.close_10bd == 100.0
        assert aaa.pct_10bd == pytest.approx(10.0)

    @pytest.mark.asyncio
    async def test_upstream_failure_keeps_best_series(self, signals, leaderboard_store, monday):
        prices = WindowedPrices({30: 3}, failing_windows={60})
        manager = make_manager(signals, leaderboard_store, prices, top_n=1)
        await manager.run(monday)

        aaa = leaderboard_store.rows[(MONDAY, "BUY", "AAA")]
        assert aaa.close_price == 102.0
        assert aaa.close_10bd is None
        assert 120 not in prices.calls

    @pytest.mark.asyncio
    async def test_business_day_uses_offset(self, leaderboard_store, monday):
        late = monday.replace(hour=22)
        signals = FakeSignalStore()
        signals.add("TUE", SignalSide.BUY, 10.0, late)

        summary = await make_manager(signals, leaderboard_store).run(late)
        assert summary.day == MONDAY + timedelta(days=1)
        assert (MONDAY + timedelta(days=1), "BUY", "TUE") in leaderboard_store.rows

    @pytest.mark.asyncio
    async def test_read_returns_rows_inside_window(self, signals, leaderboard_store, monday):
        stale = LeaderboardRow(day=CUTOFF - timedelta(days=1), side=SignalSide.BUY, symbol="X")
        leaderboard_store.rows[stale.key] = stale
        manager = make_manager(signals, leaderboard_store, clock=lambda: monday)

        await manager.run()
        rows = await manager.read()
        assert {r.symbol for r in rows} == {"AAA", "BBB", "ZZZ"}
        assert manager.cutoff_for(MONDAY) == CUTOFF
