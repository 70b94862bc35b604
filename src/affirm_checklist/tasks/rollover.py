# src/affirm_checklist/tasks/rollover.py

from __future__ import annotations

"""
Midnight rollover job.

A small sleep loop that clears the checklist at local midnight.
This is only a convenience: TaskStore.get_todays_tasks() rolls over lazily, so the
checklist is correct even when the process was not running at midnight.

The delay is recomputed from the wall clock after every wakeup: asyncio.sleep runs on
the monotonic clock, which drifts from local time across DST changes and suspends.
An early or repeated wakeup is harmless because the store only resets when its stored
day is not today.

To stop the job, cancel the coroutine/task.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Protocol

from ..core.clock import seconds_until_next_midnight

logger = logging.getLogger(__name__)


class RolloverTarget(Protocol):
    async def reset_for_new_day(self) -> bool: ...


async def run_midnight_rollover(
        store: RolloverTarget,
        *,
        next_delay: Callable[[], float] = seconds_until_next_midnight,
        min_interval_seconds: float = 1.0,
) -> None:
    """
    Sleep until the next local midnight, reset, repeat.

    Failures are logged and the loop keeps going (the lazy rollover covers a missed reset).
    min_interval_seconds keeps the loop from spinning if next_delay() returns ~0 right after a reset.
    """
    delay = max(0.0, float(next_delay()))
    logger.info("Midnight rollover scheduled in %.0fs", delay)

    while True:
        await asyncio.sleep(delay)
        try:
            if await store.reset_for_new_day():
                logger.info("Daily reset completed")
        except Exception:
            logger.exception("Daily reset failed")
        delay = max(float(min_interval_seconds), float(next_delay()))
        logger.debug("Next rollover check in %.0fs", delay)
