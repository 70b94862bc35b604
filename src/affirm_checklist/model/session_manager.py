# src/affirm_checklist/model/session_manager.py

"""
Model session lifecycle.

    NoSession --check_availability()--> readily | after-download | no
    NoSession --init_session()--------> Initializing --> SessionReady | CreateFailed
    SessionReady --destroy_session()--> NoSession

Key invariants:
- at most one session handle exists at a time,
- at most one creation is in flight; concurrent callers await the same future and
  observe the same session (or the same error), so a model is never downloaded twice,
- availability() and create() always receive the same SessionOptions object.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

from ..core.ports import ModelRuntime, ModelSession, SessionOptions
from ..errors import ActivationRequiredError, ModelError, as_model_error
from .events import SessionEvent, SessionEventBus, SessionEventType

logger = logging.getLogger(__name__)


class Availability(StrEnum):
    READILY = "readily"
    AFTER_DOWNLOAD = "after-download"
    NO = "no"

    @classmethod
    def from_runtime(cls, raw: str | None) -> Availability:
        """Normalize runtime answers (older and newer vocabularies) onto three states."""
        value = (raw or "").strip().lower()
        if value in {"readily", "available"}:
            return cls.READILY
        if value in {"after-download", "downloadable", "downloading"}:
            return cls.AFTER_DOWNLOAD
        return cls.NO


@dataclass(frozen=True, slots=True)
class PollResult:
    available: bool
    status: str  # "ready" | "unavailable" | "timeout"
    message: str


@dataclass(frozen=True, slots=True)
class SessionStatus:
    has_session: bool
    is_initializing: bool
    download_progress: float
    last_availability: Availability | None


class UserActivation:
    """
    Liveness gate for model downloads.

    The UI calls mark() whenever the user interacts with the app; creation is
    refused until that happened at least once.
    """

    def __init__(self, active: bool = False) -> None:
        self._active = active

    def mark(self) -> None:
        self._active = True

    def is_active(self) -> bool:
        return self._active


class ModelSessionManager:
    def __init__(
            self,
            runtime: ModelRuntime,
            options: SessionOptions,
            *,
            events: SessionEventBus | None = None,
            has_activation: Callable[[], bool] | None = None,
            timeout_warning_seconds: float = 30.0,
            poll_interval_seconds: float = 5.0,
            poll_max_wait_seconds: float = 300.0,
    ) -> None:
        self._runtime = runtime
        self._options = options
        self.events = events or SessionEventBus()
        self._has_activation = has_activation or (lambda: True)
        self._timeout_warning_s = float(timeout_warning_seconds)
        self._poll_interval_s = float(poll_interval_seconds)
        self._poll_max_wait_s = float(poll_max_wait_seconds)

        self._session: ModelSession | None = None
        self._pending: asyncio.Future[ModelSession] | None = None
        self._download_progress = 0.0
        self._last_availability: Availability | None = None

    # ---- state ----

    @property
    def session(self) -> ModelSession | None:
        return self._session

    @property
    def is_initializing(self) -> bool:
        return self._pending is not None and not self._pending.done()

    @property
    def download_progress(self) -> float:
        return self._download_progress

    def status(self) -> SessionStatus:
        return SessionStatus(
            has_session=self._session is not None,
            is_initializing=self.is_initializing,
            download_progress=self._download_progress,
            last_availability=self._last_availability,
        )

    # ---- availability ----

    async def _probe(self) -> Availability:
        # Same options object as create(); see module docstring.
        raw = await self._runtime.availability(self._options)
        availability = Availability.from_runtime(raw)
        self._last_availability = availability
        self.events.publish(SessionEvent(SessionEventType.AVAILABILITY, availability=availability.value))
        return availability

    async def check_availability(self) -> Availability:
        """Probe the runtime. Never raises: a failed probe reads as "no"."""
        try:
            availability = await self._probe()
        except Exception:
            logger.error("Error checking availability", exc_info=True)
            self._last_availability = Availability.NO
            return Availability.NO
        logger.info("Availability check result: %s", availability.value)
        return availability

    async def poll_for_availability(self, max_wait_seconds: float | None = None) -> PollResult:
        """
        Re-check availability every poll interval until the model is ready, is
        reported unsupported, or the wall-clock budget runs out.

        Probe errors are transient here: logged, then retried after the same interval.
        Hitting the deadline stops polling only; an in-flight creation keeps running.
        """
        max_wait = self._poll_max_wait_s if max_wait_seconds is None else float(max_wait_seconds)
        started = time.monotonic()
        logger.info("Polling for model availability (max wait: %.0fs)", max_wait)

        while time.monotonic() - started < max_wait:
            try:
                availability = await self._probe()
            except Exception:
                logger.warning("Error during availability polling; retrying", exc_info=True)
                await asyncio.sleep(self._poll_interval_s)
                continue

            elapsed = time.monotonic() - started
            if availability == Availability.READILY:
                logger.info("Model available (after %.0fs)", elapsed)
                self.events.publish(SessionEvent.ready())
                return PollResult(available=True, status="ready", message="AI model is ready to use")

            if availability == Availability.NO:
                logger.warning("Model not available on this device")
                return PollResult(
                    available=False,
                    status="unavailable",
                    message="AI model not supported on this device",
                )

            logger.info("Model still downloading (%.0fs elapsed)", elapsed)
            await asyncio.sleep(self._poll_interval_s)

        logger.warning("Poll timeout: model took too long to become available")
        return PollResult(
            available=False,
            status="timeout",
            message="Model download timeout. Check the model runtime logs for details.",
        )

    # ---- session lifecycle ----

    async def init_session(self) -> ModelSession:
        """
        Return the ready session, creating it if needed.

        A second caller arriving while creation is in flight awaits the same
        future instead of starting another creation (and another download).
        """
        if self._session is not None:
            logger.debug("Reusing existing session")
            return self._session

        if self._pending is None:
            self._pending = asyncio.ensure_future(self._create_session())
            self._pending.add_done_callback(self._on_init_done)
        else:
            logger.info("Session already initializing, waiting for it")

        # shield: a cancelled caller must not cancel the creation other callers wait on.
        return await asyncio.shield(self._pending)

    def _on_init_done(self, fut: asyncio.Future[ModelSession]) -> None:
        if self._pending is fut:
            self._pending = None
        if not fut.cancelled():
            # Mark the exception as retrieved even if every waiter went away.
            fut.exception()

    def _on_download_progress(self, loaded: float) -> None:
        pct = max(0.0, min(100.0, float(loaded) * 100.0))
        self._download_progress = pct
        logger.debug("Downloaded %.1f%%", pct)
        self.events.publish(SessionEvent.downloading(pct))

    def _on_create_timeout(self) -> None:
        logger.warning(
            "Session creation taking >%.0fs; download might still be in progress",
            self._timeout_warning_s,
        )
        self.events.publish(SessionEvent(SessionEventType.TIMEOUT, message="Session creation is slow"))

    async def _create_session(self) -> ModelSession:
        started = time.monotonic()
        loop = asyncio.get_running_loop()
        # Soft deadline: notify only, creation keeps running.
        timeout_handle = loop.call_later(self._timeout_warning_s, self._on_create_timeout)

        try:
            if not self._has_activation():
                raise ActivationRequiredError()

            logger.info("Creating session (triggers model download if needed)")
            session = await self._runtime.create(self._options, monitor=self._on_download_progress)

        except Exception as e:
            elapsed = time.monotonic() - started
            self._session = None
            err: ModelError = as_model_error(e)
            logger.error(
                "Error creating session after %.0fs: %s (%s, kind=%s)",
                elapsed,
                e,
                e.__class__.__name__,
                err.kind.value,
            )
            self.events.publish(SessionEvent.failed(err.kind.value, str(err)))
            if err is e:
                raise
            raise err from e

        finally:
            timeout_handle.cancel()

        self._session = session
        self._download_progress = 100.0
        logger.info("Session created (took %.0fs)", time.monotonic() - started)
        self.events.publish(SessionEvent.ready())
        return session

    async def destroy_session(self) -> None:
        session = self._session
        if session is None:
            return

        self._session = None
        try:
            await session.destroy()
            logger.info("Session destroyed")
        except Exception:
            logger.error("Error destroying session", exc_info=True)
        self.events.publish(SessionEvent(SessionEventType.DESTROYED))
