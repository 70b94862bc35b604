# src/affirm_checklist/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState
from ..errors import BackingStoreUnavailable
from ..model.events import SessionEvent, SessionEventType
from ..model.session_manager import Availability

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


class _SessionEventPrinter:
    """Print model lifecycle events; download progress only every 10%."""

    def __init__(self) -> None:
        self._last_pct = -1

    def __call__(self, event: SessionEvent) -> None:
        if event.type == SessionEventType.DOWNLOADING and event.progress is not None:
            step = int(event.progress) // 10 * 10
            if step > self._last_pct:
                self._last_pct = step
                _print_ts(f"[AI] Downloading model... {step}%")
        elif event.type == SessionEventType.READY:
            self._last_pct = -1
            _print_ts("[AI] Model ready.")
        elif event.type == SessionEventType.TIMEOUT:
            _print_ts("[AI] Model setup is taking a while; the download may still be running.")
        elif event.type == SessionEventType.FAILED:
            self._last_pct = -1
            _print_ts(f"[AI] Model setup failed ({event.error_kind}). Checklist still works!")


async def show_startup_status(state: AppState) -> None:
    """One-line AI status banner, then today's list."""
    availability = await state.sessions.check_availability()
    if availability == Availability.NO:
        _print_ts("[AI] AI affirmations unavailable. Checklist still works!")
    elif availability == Availability.AFTER_DOWNLOAD:
        _print_ts("[AI] The AI model needs a download; it starts with your first completed task.")

    reply = await command_registry.handle(state, "/list")
    if reply:
        _print_ts(reply)


async def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Type a task to add it. Use /help for commands. Use /exit to quit.\n")

    unsubscribe = state.sessions.events.subscribe(_SessionEventPrinter())

    def emit(text: str) -> None:
        # Immediate user-visible feedback for long operations (e.g., model download)
        _print_ts(text)

    try:
        while True:
            try:
                user_input = (await asyncio.to_thread(input, ">>> ")).strip()
            except EOFError:
                logger.info("Console EOF received, exiting.")
                break
            except KeyboardInterrupt:
                logger.info("Console KeyboardInterrupt, exiting.")
                print()
                break

            if not user_input:
                continue

            # Any input counts as user interaction (gates model downloads).
            state.activation.mark()

            if user_input.lower() in ("/exit", "/quit"):
                logger.info("Console exit command received.")
                break

            line = user_input if user_input.startswith("/") else f"/add {user_input}"

            try:
                reply = await command_registry.handle(state, line, emit=emit)
            except BackingStoreUnavailable as e:
                logger.error("Storage unavailable: %s", e)
                _print_ts(f"[ERROR] {e}")
                continue
            except Exception:
                logger.exception("Command handler crashed.")
                _print_ts("Internal error while handling a command.")
                continue

            if reply:
                _print_ts(reply)
    finally:
        unsubscribe()

    logger.info("Console connector finished.")
