"""
Daily leaderboard retention.

One run takes today's top BUY and SELL signals (business day from a fixed UTC
offset), adds the close ten business days back and the percent change since
then, upserts the rows keyed by (day, side, symbol) and finally prunes days
that fell out of the retention window.

Runs are stateless and idempotent: running twice for the same day with the
same upstream data leaves the same rows behind. Only the upsert can fail a
run; a failed prune is logged and reported through ``prune_ok``.

Usage:
    manager = DailyLeaderboardManager(signals_orm, leaderboard_orm, prices=finnhub)
    summary = await manager.run()
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from datetime import date, datetime, timezone
from typing import Protocol

from signalboard.core.business_days import business_day, business_day_cutoff, business_day_range
from signalboard.core.config import settings
from signalboard.core.exceptions import StoreError, UpstreamError
from signalboard.core.logging import get_logger
from signalboard.core.universes import to_market_symbol
from signalboard.domain import LeaderboardRow, LeaderboardRun, RunState, SignalEvent, SignalSide

from .data_providers.resilience import map_limit

logger = get_logger("services.leaderboard")


class TopSignalSource(Protocol):
    async def get_top_for_range(
        self, side: SignalSide, start: datetime, end: datetime, limit: int = 10
    ) -> list[SignalEvent]: ...


class LeaderboardStore(Protocol):
    async def upsert_entries(self, rows: Sequence[LeaderboardRow]) -> int: ...

    async def delete_before(self, cutoff: date) -> int: ...

    async def list_since(self, cutoff: date) -> list[LeaderboardRow]: ...


class PriceSource(Protocol):
    async def daily_closes(self, symbol: str, days: int) -> list[float]: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def top_unique(signals: Sequence[SignalEvent], top_n: int) -> list[SignalEvent]:
    """Keep the best-scoring signal per symbol, preserving input order."""
    seen: set[str] = set()
    out: list[SignalEvent] = []
    for signal in signals:
        if signal.symbol in seen:
            continue
        seen.add(signal.symbol)
        out.append(signal)
        if len(out) >= top_n:
            break
    return out


def lookback_change(
    closes: Sequence[float],
    lookback: int,
    fallback_close: float | None = None,
) -> tuple[float | None, float | None, float | None]:
    """(close, close ``lookback`` bars earlier, percent change) from a close series."""
    close = closes[-1] if closes else fallback_close
    close_back = closes[-1 - lookback] if len(closes) > lookback else None
    if close is None or close_back is None or close_back == 0:
        return close, close_back, None
    return close, close_back, round((close - close_back) / close_back * 100, 4)


class DailyLeaderboardManager:
    """
    Runs the FETCHING_TOP -> ENRICHING -> UPSERTING -> PRUNING pass.

    Args:
        signals: Source of the day's top signals per side
        store: Leaderboard persistence
        prices: Daily close source, or None to skip price enrichment
        clock: Returns the current time (aware UTC)
    """

    def __init__(
        self,
        signals: TopSignalSource,
        store: LeaderboardStore,
        prices: PriceSource | None = None,
        clock: Callable[[], datetime] = _utcnow,
        top_n: int | None = None,
        retention_days: int | None = None,
        windows: Sequence[int] | None = None,
        lookback: int | None = None,
    ):
        self.signals = signals
        self.store = store
        self.prices = prices
        self.clock = clock
        self.top_n = top_n or settings.leaderboard_top_n
        self.retention_days = retention_days or settings.leaderboard_retention_days
        self.windows = sorted(windows or settings.price_windows_days)
        self.lookback = lookback or settings.leaderboard_lookback_bars
        self.state = RunState.IDLE

    def _enter(self, state: RunState, day: date) -> None:
        self.state = state
        logger.info(
            f"Leaderboard run {day}: {state.value}",
            extra={"day": day.isoformat(), "state": state.value},
        )

    def cutoff_for(self, day: date) -> date:
        return business_day_cutoff(day, self.retention_days)

    async def _top(self, side: SignalSide, start: datetime, end: datetime) -> list[SignalEvent]:
        # Over-fetch so duplicate symbols do not shrink the top N.
        rows = await self.signals.get_top_for_range(side, start, end, limit=self.top_n * 5)
        return top_unique(rows, self.top_n)

    async def _closes(self, symbol: str) -> list[float]:
        """Widen the history window until enough bars arrive; keep the longest series."""
        if self.prices is None:
            return []
        market_symbol = to_market_symbol(symbol)
        best: list[float] = []
        for days in self.windows:
            try:
                closes = await self.prices.daily_closes(market_symbol, days)
            except UpstreamError as e:
                logger.warning(
                    f"Price history unavailable for {market_symbol} ({days}d): {e.message}",
                    extra={"symbol": symbol, "window_days": days, "error_code": e.error_code},
                )
                break
            if len(closes) > len(best):
                best = closes
            if len(best) >= self.lookback + 1:
                break
        return best

    async def _enrich(self, day: date, side: SignalSide, signal: SignalEvent) -> LeaderboardRow:
        closes = await self._closes(signal.symbol)
        close, close_back, pct = lookback_change(closes, self.lookback, signal.price)
        return LeaderboardRow(
            day=day,
            side=side,
            symbol=signal.symbol,
            score=signal.score,
            close_price=close,
            close_10bd=close_back,
            pct_10bd=pct,
        )

    async def run(self, now: datetime | None = None) -> LeaderboardRun:
        """Execute one retention pass for the current business day."""
        now = now or self.clock()
        day = business_day(now)
        start, end = business_day_range(day)

        try:
            self._enter(RunState.FETCHING_TOP, day)
            buys, sells = await asyncio.gather(
                self._top(SignalSide.BUY, start, end),
                self._top(SignalSide.SELL, start, end),
            )

            self._enter(RunState.ENRICHING, day)
            pairs = [(SignalSide.BUY, s) for s in buys] + [(SignalSide.SELL, s) for s in sells]
            rows: list[LeaderboardRow] = await map_limit(
                pairs,
                settings.enrich_concurrency,
                lambda pair: self._enrich(day, pair[0], pair[1]),
            )

            self._enter(RunState.UPSERTING, day)
            await self.store.upsert_entries(rows)

            self._enter(RunState.PRUNING, day)
            cutoff = self.cutoff_for(day)
            pruned: int | None
            try:
                pruned = await self.store.delete_before(cutoff)
                prune_ok = True
            except StoreError as e:
                logger.error(
                    f"Leaderboard prune before {cutoff} failed: {e.message}",
                    extra={"cutoff_day": cutoff.isoformat(), "day": day.isoformat()},
                )
                pruned, prune_ok = None, False
        finally:
            self.state = RunState.IDLE

        logger.info(
            f"Leaderboard run {day} done: {len(buys)} buy, {len(sells)} sell, cutoff {cutoff}",
            extra={"day": day.isoformat(), "pruned": pruned},
        )
        return LeaderboardRun(
            ok=True,
            day=day,
            buy_count=len(buys),
            sell_count=len(sells),
            cutoff_day=cutoff,
            pruned=pruned,
            prune_ok=prune_ok,
        )

    async def read(self, now: datetime | None = None) -> list[LeaderboardRow]:
        """Rows inside the retention window, day desc then score desc."""
        day = business_day(now or self.clock())
        return await self.store.list_since(self.cutoff_for(day))
