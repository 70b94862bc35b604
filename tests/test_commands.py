# tests/test_commands.py

from __future__ import annotations

import pytest

from affirm_checklist.cli.commands import CommandRegistry, registry
from affirm_checklist.core.state import AppState

from .fakes import FakeModelRuntime


@pytest.mark.asyncio
async def test_command_registry_routes_2_and_3_params(state: AppState) -> None:
    reg = CommandRegistry()
    called = {"h2": 0, "h3": 0}
    notes: list[str] = []

    async def h2(state, args):
        called["h2"] += 1
        return "h2"

    async def h3(state, args, emit):
        called["h3"] += 1
        if emit is not None:
            emit("note")
        return "h3"

    reg.register("a", h2, "a")
    reg.register("b", h3, "b", aliases=["bee"])

    assert await reg.handle(state, "/a x") == "h2"
    assert await reg.handle(state, "/BEE y", emit=notes.append) == "h3"
    assert called == {"h2": 1, "h3": 1}
    assert notes == ["note"]


@pytest.mark.asyncio
async def test_command_registry_unknown_and_non_command(state: AppState) -> None:
    reg = CommandRegistry()
    assert await reg.handle(state, "hello") is None
    assert "Unknown command" in (await reg.handle(state, "/nope") or "")
    assert "Empty command" in (await reg.handle(state, "/") or "")


@pytest.mark.asyncio
async def test_add_list_done_flow(state: AppState, runtime: FakeModelRuntime) -> None:
    runtime.session.text = "Proud of you!"

    reply = await registry.handle(state, "/add Write spec")
    assert "1. [ ] Write spec" in (reply or "")
    await registry.handle(state, "/add Review code")

    notes: list[str] = []
    reply = await registry.handle(state, "/done 1", emit=notes.append)
    assert "1. [x] Write spec" in (reply or "")
    assert "Proud of you!" in (reply or "")
    assert notes == ["Generating affirmation..."]

    # Same day: no second affirmation.
    reply = await registry.handle(state, "/done 2")
    assert "2. [x] Review code" in (reply or "")
    assert "Proud of you!" not in (reply or "")
    assert len(runtime.session.prompts) == 1

    assert await registry.handle(state, "/progress") == "Progress: 2/2 tasks completed."
    assert await registry.handle(state, "/streak") == "Streak: 1 day(s)."


@pytest.mark.asyncio
async def test_done_unknown_task(state: AppState) -> None:
    assert await registry.handle(state, "/done 7") == "Task not found: 7"


@pytest.mark.asyncio
async def test_delete_and_clear(state: AppState) -> None:
    for text in ("a", "b", "c"):
        await registry.handle(state, f"/add {text}")
    await registry.handle(state, "/list")

    reply = await registry.handle(state, "/del 2")
    assert "b" not in (reply or "").split("\n", 1)[1]

    await registry.handle(state, "/done 1")
    reply = await registry.handle(state, "/clear done")
    assert (reply or "").startswith("Removed 1 completed task(s).")

    reply = await registry.handle(state, "/clear")
    assert "No tasks yet" in (reply or "")


@pytest.mark.asyncio
async def test_ai_status_and_poll(state: AppState, runtime: FakeModelRuntime) -> None:
    runtime.availability_script = ["no"]

    status = await registry.handle(state, "/ai") or ""
    assert "Availability: no" in status
    assert "Session: none" in status

    assert await registry.handle(state, "/poll 1") == "[unavailable] AI model not supported on this device"
    assert await registry.handle(state, "/poll soon") == "Usage: /poll [max seconds]"


@pytest.mark.asyncio
async def test_title_command_renames_list(state: AppState) -> None:
    assert await registry.handle(state, "/title") == "Title: To-do List"
    assert (await registry.handle(state, "/list") or "").startswith("To-do List - ")

    assert await registry.handle(state, "/title Deep  work") == "Title set: Deep work"
    assert await registry.handle(state, "/title") == "Title: Deep work"
    assert (await registry.handle(state, "/list") or "").startswith("Deep work - ")
