# src/affirm_checklist/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (store/tasks/model runtime/affirmations),
- tears the model side down on exit.
"""

from __future__ import annotations

import logging

from ..affirmations.prompts import session_options_from_settings
from ..affirmations.service import AffirmationService
from ..config import get_settings
from ..core.ports import ModelRuntime
from ..core.state import AppState
from ..model.offline import OfflineModelRuntime
from ..model.runtime import LocalModelRuntime
from ..model.session_manager import ModelSessionManager, UserActivation
from ..storage.kv_store import SqliteKeyValueStore
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.store_path.parent.mkdir(parents=True, exist_ok=True)


def _build_runtime(settings) -> ModelRuntime:
    base_url = str(getattr(settings, "runtime_base_url", "") or "").strip()
    if not base_url:
        logger.info("No model runtime configured; AI affirmations use fallbacks")
        return OfflineModelRuntime()
    try:
        return LocalModelRuntime(
            base_url,
            request_timeout_seconds=float(getattr(settings, "request_timeout_seconds", 60.0)),
        )
    except Exception:
        # Fallback for demos / local runs without a model server.
        logger.warning("Model runtime init failed; running offline", exc_info=True)
        return OfflineModelRuntime()


def create_initial_state(*, settings=None, runtime: ModelRuntime | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings (and the runtime) injectable makes the app easier to test and
    avoids hidden global config reads. If settings is None, falls back to get_settings().

    Raises BackingStoreUnavailable if the local store cannot be opened.
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    if runtime is None:
        runtime = _build_runtime(settings)

    kv = SqliteKeyValueStore(settings.store_path)
    activation = UserActivation()
    sessions = ModelSessionManager(
        runtime,
        session_options_from_settings(settings),
        has_activation=activation.is_active,
        timeout_warning_seconds=settings.create_timeout_warning_seconds,
        poll_interval_seconds=settings.poll_interval_seconds,
        poll_max_wait_seconds=settings.poll_max_wait_seconds,
    )

    return AppState(
        settings=settings,
        tasks=TaskStore(kv),
        runtime=runtime,
        sessions=sessions,
        affirmations=AffirmationService(sessions),
        activation=activation,
    )


async def shutdown(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        await state.sessions.destroy_session()
    except Exception:
        logger.exception("Failed to destroy model session.")

    aclose = getattr(state.runtime, "aclose", None)
    if aclose is not None:
        try:
            await aclose()
        except Exception:
            logger.debug("Runtime close failed.", exc_info=True)
