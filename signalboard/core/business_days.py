"""Business calendar helpers.

The business day is derived from a fixed UTC offset rather than UTC midnight,
so a signal created at 22:30 UTC on Monday belongs to Tuesday when the offset
is +3h. Weekends (Saturday/Sunday) are the only non-business days.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone

from .config import settings


def business_timezone(offset_hours: int | None = None) -> timezone:
    """Fixed-offset timezone used to cut business days."""
    if offset_hours is None:
        offset_hours = settings.business_utc_offset_hours
    return timezone(timedelta(hours=offset_hours))


def business_day(now: datetime | None = None, offset_hours: int | None = None) -> date:
    """Calendar day of ``now`` in the business timezone."""
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(business_timezone(offset_hours)).date()


def business_day_range(
    day: date, offset_hours: int | None = None
) -> tuple[datetime, datetime]:
    """Half-open ``[start, end)`` UTC range covering ``day`` in the business timezone."""
    tz = business_timezone(offset_hours)
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = start + timedelta(days=1)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def is_business_day(day: date) -> bool:
    return day.weekday() < 5


def last_n_business_days(inclusive_day: date, n: int) -> list[date]:
    """The ``n`` most recent business days up to and including ``inclusive_day``.

    Returned newest first.
    """
    if n < 1:
        raise ValueError("n must be at least 1")
    out: list[date] = []
    cursor = inclusive_day
    while len(out) < n:
        if is_business_day(cursor):
            out.append(cursor)
        cursor -= timedelta(days=1)
    return out


def business_day_cutoff(inclusive_day: date, keep_last_n: int) -> date:
    """Oldest day still inside a window of ``keep_last_n`` business days."""
    return last_n_business_days(inclusive_day, keep_last_n)[-1]
