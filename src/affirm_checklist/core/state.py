# src/affirm_checklist/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..affirmations.service import AffirmationService
from ..model.session_manager import ModelSessionManager, UserActivation
from ..tasks.task_store import TaskStore
from .ports import ModelRuntime


@dataclass
class AppState:
    """
    Everything a connector needs, owned by one instance and passed explicitly.

    There are no module-level singletons for tasks or the model session: tests build
    their own AppState with fakes, the CLI builds one in bootstrap.
    """

    settings: Any

    tasks: TaskStore
    runtime: ModelRuntime
    sessions: ModelSessionManager
    affirmations: AffirmationService
    activation: UserActivation

    # Task ids in the order of the last rendered list ("/done 2" refers to it).
    last_listing: list[str] = field(default_factory=list)
