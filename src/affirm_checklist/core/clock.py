# src/affirm_checklist/core/clock.py

from __future__ import annotations

import time
from datetime import date, datetime, timedelta


def date_key(d: date) -> str:
    return d.isoformat()


def previous_day_key(day_key: str) -> str:
    """'2025-03-01' -> '2025-02-28'."""
    return date_key(date.fromisoformat(day_key) - timedelta(days=1))


def seconds_until_next_midnight(now: datetime | None = None) -> float:
    """
    Seconds from `now` until the next midnight of the same zone.

    Naive `now` means system local time. The difference is taken on timestamps so a
    DST change in between counts as 23h or 25h.
    """
    if now is None:
        now = datetime.now()
    tomorrow = now.date() + timedelta(days=1)
    midnight = datetime.combine(tomorrow, datetime.min.time(), tzinfo=now.tzinfo)
    return max(0.0, midnight.timestamp() - now.timestamp())


class SystemClock:
    """Local calendar date + wall clock."""

    def today(self) -> str:
        return date_key(datetime.now().astimezone().date())

    def now(self) -> float:
        return time.time()
