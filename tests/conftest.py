# tests/conftest.py

from __future__ import annotations

import random
from types import SimpleNamespace

import pytest

from affirm_checklist.affirmations.service import AffirmationService
from affirm_checklist.core.ports import SessionOptions
from affirm_checklist.core.state import AppState
from affirm_checklist.model.events import SessionEvent, SessionEventBus
from affirm_checklist.model.session_manager import ModelSessionManager, UserActivation
from affirm_checklist.tasks.task_store import TaskStore

from .fakes import FakeClock, FakeKeyValueStore, FakeModelRuntime


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def kv() -> FakeKeyValueStore:
    return FakeKeyValueStore()


@pytest.fixture()
def store(kv: FakeKeyValueStore, clock: FakeClock) -> TaskStore:
    return TaskStore(kv, clock=clock)


@pytest.fixture()
def options() -> SessionOptions:
    return SessionOptions(model="test-model", shared_context="be kind")


@pytest.fixture()
def runtime() -> FakeModelRuntime:
    return FakeModelRuntime()


@pytest.fixture()
def activation() -> UserActivation:
    return UserActivation(active=True)


@pytest.fixture()
def events() -> tuple[SessionEventBus, list[SessionEvent]]:
    bus = SessionEventBus()
    seen: list[SessionEvent] = []
    bus.subscribe(seen.append)
    return bus, seen


@pytest.fixture()
def sessions(
    runtime: FakeModelRuntime,
    options: SessionOptions,
    activation: UserActivation,
    events: tuple[SessionEventBus, list[SessionEvent]],
) -> ModelSessionManager:
    """Session manager with tiny intervals so polling tests run fast."""
    return ModelSessionManager(
        runtime,
        options,
        events=events[0],
        has_activation=activation.is_active,
        timeout_warning_seconds=30.0,
        poll_interval_seconds=0.01,
        poll_max_wait_seconds=0.2,
    )


@pytest.fixture()
def service(sessions: ModelSessionManager) -> AffirmationService:
    return AffirmationService(sessions, rng=random.Random(7))


@pytest.fixture()
def state(
    store: TaskStore,
    runtime: FakeModelRuntime,
    sessions: ModelSessionManager,
    service: AffirmationService,
    activation: UserActivation,
) -> AppState:
    """AppState wired with deterministic fakes (no SQLite, no model server)."""
    return AppState(
        settings=SimpleNamespace(model_name="test-model"),
        tasks=store,
        runtime=runtime,
        sessions=sessions,
        affirmations=service,
        activation=activation,
    )
