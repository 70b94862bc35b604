# src/affirm_checklist/cli/commands.py

from __future__ import annotations

import contextlib
import inspect
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import cast

from ..affirmations.service import AffirmationResult, AffirmationStatus
from ..core.state import AppState
from ..errors import TaskNotFound
from ..tasks.task_models import DailyTaskSet

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], Awaitable[str]]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], Awaitable[str]]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /add, /done, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        Storage errors (BackingStoreUnavailable) are not caught here: the connector
        shows them as an error banner.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return await h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return await h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        lines.append("  (a line without a leading / adds it as a task)")
        return "\n".join(lines)


registry = CommandRegistry()


def _date_label(day_key: str) -> str:
    try:
        return datetime.strptime(day_key, "%Y-%m-%d").strftime("%a, %b %d")
    except ValueError:
        return day_key


def render_task_set(state: AppState, task_set: DailyTaskSet, streak: int, title: str = "") -> str:
    """Render today's list and remember its order for numeric references."""
    state.last_listing = [t.id for t in task_set.items]

    done = sum(1 for t in task_set.items if t.completed)
    header = f"{_date_label(task_set.date)}: {done}/{len(task_set.items)} done, streak {streak}"
    if title:
        header = f"{title} - {header}"
    if not task_set.items:
        return f"{header}\n  No tasks yet. Type one to add it."

    lines = [header]
    for i, t in enumerate(task_set.items, start=1):
        mark = "x" if t.completed else " "
        lines.append(f"  {i}. [{mark}] {t.text}")
    return "\n".join(lines)


def render_affirmation(result: AffirmationResult) -> str:
    if result.status == AffirmationStatus.SUCCESS:
        return f"✨ {result.text}"
    return f"✨ {result.text} [{result.status.value}]"


async def _resolve_task_id(state: AppState, ref: str) -> str:
    """'2' -> id of the second task of the last listing (or of today's list); else ref as id."""
    if ref.isdigit():
        ids = state.last_listing
        if not ids:
            ids = [t.id for t in (await state.tasks.get_todays_tasks()).items]
        n = int(ref)
        if 1 <= n <= len(ids):
            return ids[n - 1]
    return ref


async def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


async def cmd_list(state: AppState, args: list[str]) -> str:
    task_set = await state.tasks.get_todays_tasks()
    return render_task_set(
        state,
        task_set,
        await state.tasks.get_streak(),
        title=await state.tasks.get_title(),
    )


async def cmd_add(state: AppState, args: list[str]) -> str:
    text = " ".join(args).strip()
    if not text:
        return "Usage: /add <task text>"
    await state.tasks.add_task(text)
    return await cmd_list(state, [])


async def cmd_done(
    state: AppState,
    args: list[str],
    emit: CommandEmitter | None = None,
) -> str:
    """
    /done <n|id> -> toggle a task.

    The first completion of the day also asks the model for an affirmation.
    """
    if not args:
        return "Usage: /done <number or id>"

    task_id = await _resolve_task_id(state, args[0])
    try:
        result = await state.tasks.toggle_task(task_id)
    except TaskNotFound:
        return f"Task not found: {args[0]}"

    listing = await cmd_list(state, [])
    if not result.is_first_completion:
        return listing

    if emit:
        with contextlib.suppress(Exception):
            emit("Generating affirmation...")

    completed = await state.tasks.get_completed_tasks()
    affirmation = await state.affirmations.generate_affirmation(completed)
    return f"{listing}\n\n{render_affirmation(affirmation)}"


async def cmd_delete(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /del <number or id>"
    task_id = await _resolve_task_id(state, args[0])
    await state.tasks.delete_task(task_id)
    return await cmd_list(state, [])


async def cmd_clear(state: AppState, args: list[str]) -> str:
    """
    /clear       -> remove every task for today
    /clear done  -> remove completed tasks only
    """
    if args and args[0].lower() in ("done", "completed"):
        removed = await state.tasks.clear_completed_tasks()
        return f"Removed {removed} completed task(s).\n" + await cmd_list(state, [])
    await state.tasks.clear_all_tasks()
    return await cmd_list(state, [])


async def cmd_title(state: AppState, args: list[str]) -> str:
    """
    /title         -> show the list title
    /title <text>  -> rename the list (persists across days)
    """
    if not args:
        return f"Title: {await state.tasks.get_title()}"
    title = await state.tasks.set_title(" ".join(args))
    return f"Title set: {title}"


async def cmd_progress(state: AppState, args: list[str]) -> str:
    progress = await state.tasks.get_progress()
    return f"Progress: {progress.completed}/{progress.total} tasks completed."


async def cmd_streak(state: AppState, args: list[str]) -> str:
    count = await state.tasks.get_streak()
    return f"Streak: {count} day(s)."


async def cmd_ai(state: AppState, args: list[str]) -> str:
    availability = await state.sessions.check_availability()
    st = state.sessions.status()
    return (
        "AI status:\n"
        f"  Availability: {availability.value}\n"
        f"  Session: {'ready' if st.has_session else 'none'}"
        f"{' (initializing)' if st.is_initializing else ''}\n"
        f"  Download progress: {st.download_progress:.0f}%\n"
        f"  Model: {getattr(state.settings, 'model_name', '?')}"
    )


async def cmd_poll(
    state: AppState,
    args: list[str],
    emit: CommandEmitter | None = None,
) -> str:
    """/poll [seconds] -> wait until the model is ready (default budget from settings)."""
    max_wait: float | None = None
    if args:
        try:
            max_wait = max(0.0, float(args[0]))
        except ValueError:
            return "Usage: /poll [max seconds]"

    if emit:
        with contextlib.suppress(Exception):
            emit("Waiting for the AI model...")

    result = await state.sessions.poll_for_availability(max_wait)
    return f"[{result.status}] {result.message}"


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("list", cmd_list, help_text="Show today's tasks.", aliases=["ls"])
registry.register("add", cmd_add, help_text="Add a task: /add <text>.")
registry.register("done", cmd_done, help_text="Toggle a task: /done <n|id>.", aliases=["toggle", "x"])
registry.register("del", cmd_delete, help_text="Delete a task: /del <n|id>.", aliases=["rm"])
registry.register("clear", cmd_clear, help_text="Clear tasks: /clear | /clear done.")
registry.register("title", cmd_title, help_text="Show or rename the list: /title [text].")
registry.register("progress", cmd_progress, help_text="Show completed/total for today.")
registry.register("streak", cmd_streak, help_text="Show the completion streak.")
registry.register("ai", cmd_ai, help_text="Show AI model status.", aliases=["status"])
registry.register("poll", cmd_poll, help_text="Wait for the AI model: /poll [seconds].")
