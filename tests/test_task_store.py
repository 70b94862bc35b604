# tests/test_task_store.py

from __future__ import annotations

import asyncio

import pytest

from affirm_checklist.errors import BackingStoreUnavailable, TaskNotFound
from affirm_checklist.tasks.task_store import DATE_KEY, STREAK_KEY, TASKS_KEY, TaskStore

from .fakes import FakeClock, FakeKeyValueStore


@pytest.mark.asyncio
async def test_first_read_initializes_empty_day(store: TaskStore, kv: FakeKeyValueStore) -> None:
    task_set = await store.get_todays_tasks()

    assert task_set.date == "2025-01-10"
    assert task_set.items == []
    assert kv.data[DATE_KEY] == "2025-01-10"
    assert kv.data[TASKS_KEY] == {"date": "2025-01-10", "items": []}
    assert kv.data[STREAK_KEY] == {"count": 0, "lastDate": None}
    assert await store.get_streak() == 0


@pytest.mark.asyncio
async def test_add_and_delete_keep_insertion_order(store: TaskStore) -> None:
    a = await store.add_task("alpha")
    b = await store.add_task("  beta  ")
    c = await store.add_task("gamma")

    assert a.completed is False and a.completed_at is None
    assert b.text == "beta"
    assert len({a.id, b.id, c.id}) == 3

    await store.delete_task(b.id)
    await store.delete_task("missing-id")  # no-op

    items = (await store.get_todays_tasks()).items
    assert [t.text for t in items] == ["alpha", "gamma"]

    d = await store.add_task("delta")
    items = (await store.get_todays_tasks()).items
    assert [t.id for t in items] == [a.id, c.id, d.id]


@pytest.mark.asyncio
async def test_add_rejects_blank_text(store: TaskStore) -> None:
    with pytest.raises(ValueError):
        await store.add_task("   ")


@pytest.mark.asyncio
async def test_returned_tasks_are_copies(store: TaskStore) -> None:
    task = await store.add_task("alpha")
    task.text = "mutated"
    task.completed = True

    items = (await store.get_todays_tasks()).items
    assert items[0].text == "alpha"
    assert items[0].completed is False


@pytest.mark.asyncio
async def test_toggle_twice_restores_state(store: TaskStore) -> None:
    task = await store.add_task("alpha")

    first = await store.toggle_task(task.id)
    assert first.task.completed is True
    assert first.task.completed_at is not None
    assert first.is_first_completion is True

    second = await store.toggle_task(task.id)
    assert second.task.completed is False
    assert second.task.completed_at is None
    assert second.is_first_completion is False

    stored = (await store.get_todays_tasks()).items[0]
    assert stored.completed is False
    assert stored.completed_at is None


@pytest.mark.asyncio
async def test_toggle_missing_task_raises(store: TaskStore) -> None:
    with pytest.raises(TaskNotFound) as exc_info:
        await store.toggle_task("nope")
    assert "nope" in str(exc_info.value)


@pytest.mark.asyncio
async def test_write_spec_review_code_scenario(store: TaskStore) -> None:
    write_spec = await store.add_task("Write spec")
    review = await store.add_task("Review code")

    r1 = await store.toggle_task(write_spec.id)
    assert r1.is_first_completion is True
    assert await store.get_streak() == 1

    r2 = await store.toggle_task(write_spec.id)
    assert r2.is_first_completion is False
    assert r2.task.completed_at is None

    # The day was already credited, even though this task was never completed before.
    r3 = await store.toggle_task(review.id)
    assert r3.task.completed is True
    assert r3.is_first_completion is False
    assert await store.get_streak() == 1


@pytest.mark.asyncio
async def test_streak_counts_consecutive_days(store: TaskStore, clock: FakeClock) -> None:
    for day in range(4):
        if day:
            clock.advance_days(1)
        t1 = await store.add_task(f"task {day}a")
        t2 = await store.add_task(f"task {day}b")
        await store.toggle_task(t1.id)
        await store.toggle_task(t2.id)

    assert await store.get_streak() == 4


@pytest.mark.asyncio
async def test_streak_resets_after_gap(store: TaskStore, clock: FakeClock) -> None:
    for _ in range(3):
        t = await store.add_task("daily")
        await store.toggle_task(t.id)
        clock.advance_days(1)
    assert await store.get_streak() == 3

    clock.advance_days(1)  # skipped a whole day
    t = await store.add_task("back again")
    result = await store.toggle_task(t.id)

    assert result.is_first_completion is True
    assert await store.get_streak() == 1


@pytest.mark.asyncio
async def test_streak_failure_is_not_propagated(store: TaskStore, kv: FakeKeyValueStore) -> None:
    a = await store.add_task("alpha")
    b = await store.add_task("beta")
    kv.fail_keys = {STREAK_KEY}

    r1 = await store.toggle_task(a.id)
    assert r1.task.completed is True
    assert r1.is_first_completion is True

    r2 = await store.toggle_task(b.id)
    assert r2.is_first_completion is False

    completed = await store.get_completed_tasks()
    assert [t.id for t in completed] == [a.id, b.id]


@pytest.mark.asyncio
async def test_rollover_is_lazy_and_idempotent(store: TaskStore, clock: FakeClock, kv: FakeKeyValueStore) -> None:
    await store.add_task("yesterday's task")
    clock.advance_days(1)

    assert await store.is_new_day() is True
    first = await store.get_todays_tasks()
    assert first.items == []
    assert first.date == "2025-01-11"
    assert kv.data[DATE_KEY] == "2025-01-11"

    added = await store.add_task("today's task")
    again = await store.get_todays_tasks()
    again2 = await store.get_todays_tasks()

    assert [t.id for t in again.items] == [added.id]
    assert [t.id for t in again2.items] == [added.id]
    assert await store.is_new_day() is False


@pytest.mark.asyncio
async def test_rollover_keeps_streak(store: TaskStore, clock: FakeClock) -> None:
    t = await store.add_task("alpha")
    await store.toggle_task(t.id)
    clock.advance_days(1)

    assert (await store.get_todays_tasks()).items == []
    assert await store.get_streak() == 1


@pytest.mark.asyncio
async def test_clear_all_and_clear_completed(store: TaskStore) -> None:
    a = await store.add_task("alpha")
    await store.add_task("beta")
    c = await store.add_task("gamma")
    await store.toggle_task(a.id)
    await store.toggle_task(c.id)

    removed = await store.clear_completed_tasks()
    assert removed == 2
    assert [t.text for t in (await store.get_todays_tasks()).items] == ["beta"]

    await store.clear_all_tasks()
    task_set = await store.get_todays_tasks()
    assert task_set.items == []
    assert task_set.date == "2025-01-10"


@pytest.mark.asyncio
async def test_progress_and_completed_tasks(store: TaskStore) -> None:
    a = await store.add_task("alpha")
    await store.add_task("beta")
    c = await store.add_task("gamma")
    await store.toggle_task(c.id)
    await store.toggle_task(a.id)

    progress = await store.get_progress()
    assert (progress.total, progress.completed) == (3, 2)

    completed = await store.get_completed_tasks()
    assert [t.text for t in completed] == ["alpha", "gamma"]


@pytest.mark.asyncio
async def test_concurrent_adds_are_not_lost(store: TaskStore) -> None:
    texts = [f"task {i}" for i in range(20)]
    await asyncio.gather(*(store.add_task(t) for t in texts))

    items = (await store.get_todays_tasks()).items
    assert sorted(t.text for t in items) == sorted(texts)


@pytest.mark.asyncio
async def test_reset_for_new_day_and_ensure_initialized(
    store: TaskStore,
    kv: FakeKeyValueStore,
    clock: FakeClock,
) -> None:
    await store.ensure_initialized()
    assert kv.data[DATE_KEY] == "2025-01-10"

    await store.add_task("alpha")
    await store.ensure_initialized()  # already initialized: keeps tasks
    assert len((await store.get_todays_tasks()).items) == 1

    # Same day: nothing to reset.
    assert await store.reset_for_new_day() is False
    assert len((await store.get_todays_tasks()).items) == 1

    clock.advance_days(1)
    assert await store.reset_for_new_day() is True
    assert kv.data[DATE_KEY] == "2025-01-11"
    assert (await store.get_todays_tasks()).items == []
    assert await store.reset_for_new_day() is False


@pytest.mark.asyncio
async def test_list_title_defaults_and_survives_rollover(store: TaskStore, clock: FakeClock) -> None:
    assert await store.get_title() == "To-do List"

    assert await store.set_title("  Deep work  ") == "Deep work"
    clock.advance_days(1)
    await store.get_todays_tasks()
    assert await store.get_title() == "Deep work"

    assert await store.set_title("   ") == "To-do List"
    assert await store.get_title() == "To-do List"


@pytest.mark.asyncio
async def test_storage_errors_propagate(store: TaskStore, kv: FakeKeyValueStore) -> None:
    kv.fail_all = True
    with pytest.raises(BackingStoreUnavailable):
        await store.get_todays_tasks()
    with pytest.raises(BackingStoreUnavailable):
        await store.add_task("alpha")
