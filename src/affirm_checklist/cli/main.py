# src/affirm_checklist/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then runs on one event loop:
- the console REPL,
- the midnight rollover job in the background (optional).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

from ..cli.bootstrap import create_initial_state, shutdown
from ..config import Settings, get_settings
from ..connectors.console_connector import run_console_loop, show_startup_status
from ..errors import BackingStoreUnavailable
from ..logging_setup import setup_logging
from ..tasks.rollover import run_midnight_rollover

logger = logging.getLogger(__name__)


async def _run(settings: Settings) -> int:
    try:
        # IMPORTANT: reuse same settings object
        state = create_initial_state(settings=settings)
        await state.tasks.ensure_initialized()
    except BackingStoreUnavailable as e:
        logger.error("Cannot start: %s", e)
        print(f"[ERROR] {e}")
        return 1

    rollover: asyncio.Task[None] | None = None
    if settings.rollover_enabled:
        rollover = asyncio.create_task(run_midnight_rollover(state.tasks))

    try:
        await show_startup_status(state)
        await run_console_loop(state)
    finally:
        if rollover is not None:
            rollover.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await rollover
        await shutdown(state)

    return 0


def main() -> int:
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "WARNING")).upper()
    console_level = getattr(logging, level_name, logging.WARNING)

    setup_logging(log_dir=settings.data_dir, console_level=console_level)
    logger.info("Starting %s...", settings.app_name)

    code = 0
    try:
        code = asyncio.run(_run(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")

    logger.info("Bye.")
    return code


if __name__ == "__main__":
    raise SystemExit(main())
