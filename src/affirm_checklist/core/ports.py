# src/affirm_checklist/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps the storage backend and the model runtime swappable and makes testing easier.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

DownloadMonitor = Callable[[float], None]
# Called with download progress in [0.0, 1.0] while a model is being fetched.


class KeyValueStore(Protocol):
    """
    Local key-value persistence.

    A missing key reads as None ("not yet initialized").
    Implementations raise BackingStoreUnavailable when the backend cannot be used.
    """

    async def get(self, key: str) -> Any | None: ...

    async def set(self, items: dict[str, Any]) -> None: ...


class Clock(Protocol):
    def today(self) -> str:
        """Current calendar date key (YYYY-MM-DD)."""
        ...

    def now(self) -> float:
        """Current wall-clock time (epoch seconds)."""
        ...


@dataclass(frozen=True, slots=True)
class SessionOptions:
    """
    Options shared by availability() and create().

    Runtimes key availability decisions off these options, so the session manager
    must pass the very same object to both calls.
    """

    model: str
    temperature: float = 0.7
    top_k: int = 40
    shared_context: str = ""
    expected_languages: tuple[str, ...] = ("en",)
    output_language: str = "en"


class ModelSession(Protocol):
    async def summarize(self, prompt: str, *, context: str = "") -> str: ...

    async def destroy(self) -> None: ...


class ModelRuntime(Protocol):
    """On-device model runtime (availability probe + session factory)."""

    async def availability(self, options: SessionOptions) -> str: ...

    async def create(
            self,
            options: SessionOptions,
            *,
            monitor: DownloadMonitor | None = None,
    ) -> ModelSession: ...
