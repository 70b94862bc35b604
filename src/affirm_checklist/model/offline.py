# src/affirm_checklist/model/offline.py

from __future__ import annotations

from ..core.ports import DownloadMonitor, SessionOptions
from ..errors import ModelUnavailableError


class OfflineModelRuntime:
    """
    Runtime used when no model runtime is configured.

    Behavior:
    - availability() -> "no", so affirmations use the built-in fallbacks
    - create() refuses (nothing should call it after a "no")
    """

    async def availability(self, options: SessionOptions) -> str:
        return "no"

    async def create(self, options: SessionOptions, *, monitor: DownloadMonitor | None = None):
        raise ModelUnavailableError(
            "Offline mode: no model runtime is configured. "
            "Set AFFIRM_RUNTIME_BASE_URL to enable AI affirmations."
        )
