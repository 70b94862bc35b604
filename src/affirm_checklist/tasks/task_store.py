# src/affirm_checklist/tasks/task_store.py

from __future__ import annotations

import asyncio
import logging
import secrets
import string

from ..core.clock import SystemClock, previous_day_key
from ..core.ports import Clock, KeyValueStore
from ..errors import TaskNotFound
from .task_models import DailyTaskSet, Progress, StreakInfo, Task, ToggleResult

logger = logging.getLogger(__name__)

TASKS_KEY = "dailyTasks"
DATE_KEY = "lastActiveDate"
STREAK_KEY = "streakInfo"
TITLE_KEY = "listTitle"

DEFAULT_TITLE = "To-do List"

_ID_ALPHABET = string.digits + string.ascii_lowercase


class TaskStore:
    """
    Today's checklist on top of a key-value store.

    Layout:
    - dailyTasks     -> {"date": "YYYY-MM-DD", "items": [task, ...]} (insertion order)
    - lastActiveDate -> "YYYY-MM-DD"
    - streakInfo     -> {"count": int, "lastDate": "YYYY-MM-DD" | null}
    - listTitle      -> display title of the list (survives rollover)

    Rollover is lazy: every read compares lastActiveDate with today and starts an
    empty set when the day changed, so correctness never depends on the midnight job.

    Concurrency:
    - every read-modify-write sequence (including rollover) runs under one asyncio.Lock
    - callers always receive copies; the stored sequence is only changed here
    """

    def __init__(self, kv: KeyValueStore, *, clock: Clock | None = None) -> None:
        self._kv = kv
        self._clock: Clock = clock or SystemClock()
        self._lock = asyncio.Lock()

    # ---- low-level helpers ----

    def _new_task_id(self, taken: set[str]) -> str:
        while True:
            suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
            task_id = f"{int(self._clock.now() * 1000)}-{suffix}"
            if task_id not in taken:
                return task_id

    async def _write_empty_day(self, today: str) -> None:
        await self._kv.set({TASKS_KEY: DailyTaskSet(date=today).to_dict(), DATE_KEY: today})

    async def _load_today(self) -> DailyTaskSet:
        """Read today's set, rolling over or initializing as needed. Caller holds the lock."""
        today = self._clock.today()

        last_date = await self._kv.get(DATE_KEY)
        if last_date is not None and last_date != today:
            logger.info("New day detected (last=%s today=%s), resetting tasks", last_date, today)
            await self._write_empty_day(today)
            return DailyTaskSet(date=today)

        raw = await self._kv.get(TASKS_KEY)
        if not isinstance(raw, dict):
            logger.info("No task set found, initializing for %s", today)
            await self._write_empty_day(today)
            if await self._kv.get(STREAK_KEY) is None:
                await self._kv.set({STREAK_KEY: StreakInfo().to_dict()})
            return DailyTaskSet(date=today)

        if last_date is None:
            await self._kv.set({DATE_KEY: today})

        task_set = DailyTaskSet.from_dict(raw, default_date=today)
        task_set.date = today
        return task_set

    async def _save(self, task_set: DailyTaskSet) -> None:
        await self._kv.set({TASKS_KEY: task_set.to_dict()})

    async def _read_streak(self) -> StreakInfo:
        return StreakInfo.from_dict(await self._kv.get(STREAK_KEY))

    async def _update_streak_on_completion(self) -> bool:
        """
        Credit today's streak. Returns True if today was credited by this call.

        - already credited today -> no-op
        - last credit was yesterday -> count + 1
        - anything older (or never) -> 1
        """
        today = self._clock.today()
        yesterday = previous_day_key(today)

        info = await self._read_streak()
        if info.last_date == today:
            return False

        count = info.count + 1 if info.last_date == yesterday else 1
        new_info = StreakInfo(count=count, last_date=today)
        await self._kv.set({STREAK_KEY: new_info.to_dict()})
        logger.info("Streak updated count=%s last_date=%s", new_info.count, new_info.last_date)
        return True

    # ---- public API ----

    async def ensure_initialized(self) -> None:
        """First-run hook: make sure lastActiveDate and an empty set exist."""
        async with self._lock:
            if await self._kv.get(DATE_KEY) is None:
                await self._write_empty_day(self._clock.today())
                logger.info("Store initialized for %s", self._clock.today())

    async def is_new_day(self) -> bool:
        last_date = await self._kv.get(DATE_KEY)
        return last_date != self._clock.today()

    async def reset_for_new_day(self) -> bool:
        """
        Start an empty set if the stored day is not today. Returns True if it reset.

        A wakeup that lands on a day which already rolled over leaves today's tasks alone.
        """
        async with self._lock:
            today = self._clock.today()
            last_date = await self._kv.get(DATE_KEY)
            if last_date == today:
                logger.debug("Reset skipped: tasks already belong to %s", today)
                return False
            await self._write_empty_day(today)
            logger.info("Tasks reset for new day %s (last=%s)", today, last_date)
            return True

    async def get_title(self) -> str:
        raw = await self._kv.get(TITLE_KEY)
        title = str(raw).strip() if raw is not None else ""
        return title or DEFAULT_TITLE

    async def set_title(self, title: str) -> str:
        """Persist the list title; blank text restores the default. Returns the saved title."""
        title = (title or "").strip() or DEFAULT_TITLE
        await self._kv.set({TITLE_KEY: title})
        logger.debug("List title set to %r", title)
        return title

    async def get_todays_tasks(self) -> DailyTaskSet:
        async with self._lock:
            return await self._load_today()

    async def add_task(self, text: str) -> Task:
        if not text or not text.strip():
            raise ValueError("task text is required")

        async with self._lock:
            task_set = await self._load_today()
            task = Task(id=self._new_task_id({t.id for t in task_set.items}), text=text.strip())
            task_set.items.append(task)
            await self._save(task_set)

        logger.debug("Task added id=%s total=%s", task.id, len(task_set.items))
        return task.copy()

    async def toggle_task(self, task_id: str) -> ToggleResult:
        async with self._lock:
            task_set = await self._load_today()
            task = task_set.find(task_id)
            if task is None:
                raise TaskNotFound(task_id)

            was_completed = task.completed
            task.completed = not was_completed
            task.completed_at = self._clock.now() if task.completed else None
            await self._save(task_set)

            is_first_completion = False
            if task.completed:
                try:
                    is_first_completion = await self._update_streak_on_completion()
                except Exception:
                    logger.warning("Failed to update streak for task_id=%s", task_id, exc_info=True)
                    is_first_completion = not any(
                        t.completed for t in task_set.items if t.id != task.id
                    )

        logger.debug(
            "Task toggled id=%s completed=%s first_completion=%s",
            task_id,
            task.completed,
            is_first_completion,
        )
        return ToggleResult(task=task.copy(), is_first_completion=is_first_completion)

    async def delete_task(self, task_id: str) -> None:
        async with self._lock:
            task_set = await self._load_today()
            before = len(task_set.items)
            task_set.items = [t for t in task_set.items if t.id != task_id]
            await self._save(task_set)
        if len(task_set.items) == before:
            logger.debug("delete_task: id=%s not present (no-op)", task_id)

    async def clear_all_tasks(self) -> None:
        async with self._lock:
            task_set = await self._load_today()
            task_set.items = []
            await self._save(task_set)
        logger.info("All tasks cleared")

    async def clear_completed_tasks(self) -> int:
        """Drop completed tasks, keep the rest in order. Returns how many were removed."""
        async with self._lock:
            task_set = await self._load_today()
            remaining = [t for t in task_set.items if not t.completed]
            removed = len(task_set.items) - len(remaining)
            task_set.items = remaining
            await self._save(task_set)
        return removed

    async def get_completed_tasks(self) -> list[Task]:
        task_set = await self.get_todays_tasks()
        return [t for t in task_set.items if t.completed]

    async def get_progress(self) -> Progress:
        task_set = await self.get_todays_tasks()
        return Progress(
            total=len(task_set.items),
            completed=sum(1 for t in task_set.items if t.completed),
        )

    async def get_streak(self) -> int:
        return (await self._read_streak()).count
