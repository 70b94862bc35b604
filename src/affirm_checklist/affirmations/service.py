# src/affirm_checklist/affirmations/service.py

"""
Affirmation generation.

Flow: check availability -> (if not "no") init session, possibly downloading ->
summarize the completed-task context -> structured result.

The caller never sees a model error: every failure becomes a fallback text plus
a status code, so the checklist keeps working when the AI side does not.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum

from ..errors import ModelErrorKind, classify_model_error
from ..model.session_manager import Availability, ModelSessionManager
from ..tasks.task_models import Task
from . import prompts

logger = logging.getLogger(__name__)


class AffirmationStatus(StrEnum):
    SUCCESS = "success"
    UNAVAILABLE = "unavailable"
    QUOTA_EXCEEDED = "quota-exceeded"
    REQUIRES_ACTIVATION = "requires-activation"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class AffirmationResult:
    text: str
    is_using_fallback: bool
    status: AffirmationStatus


class AffirmationService:
    def __init__(self, sessions: ModelSessionManager, *, rng: random.Random | None = None) -> None:
        self._sessions = sessions
        self._rng = rng or random.Random()

    def build_prompt_context(self, tasks: Sequence[Task]) -> str:
        return prompts.build_prompt_context(tasks)

    def get_random_fallback(self) -> str:
        return self._rng.choice(prompts.FALLBACK_AFFIRMATIONS)

    def _fallback(self, status: AffirmationStatus, text: str | None = None) -> AffirmationResult:
        return AffirmationResult(
            text=text if text is not None else self.get_random_fallback(),
            is_using_fallback=True,
            status=status,
        )

    async def generate_affirmation(self, tasks: Sequence[Task]) -> AffirmationResult:
        logger.info("Generating affirmation for %d completed task(s)", len(tasks))

        availability = await self._sessions.check_availability()
        if availability == Availability.NO:
            logger.info("Model not available; using fallback affirmation")
            return self._fallback(AffirmationStatus.UNAVAILABLE)

        try:
            # "after-download" is fine here: creating the session starts the download.
            session = await self._sessions.init_session()
            context = self.build_prompt_context(tasks)
            prompt = prompts.build_affirmation_prompt(context)
            text = (await session.summarize(prompt, context=context)).strip()
            if not text:
                raise ValueError("model returned an empty affirmation")

        except Exception as e:
            kind = classify_model_error(e)
            logger.warning("Affirmation generation failed (%s): %s", kind.value, e)

            if kind == ModelErrorKind.QUOTA:
                return self._fallback(AffirmationStatus.QUOTA_EXCEEDED, prompts.QUOTA_MESSAGE)
            if kind == ModelErrorKind.ACTIVATION:
                return self._fallback(AffirmationStatus.REQUIRES_ACTIVATION, prompts.ACTIVATION_MESSAGE)
            return self._fallback(AffirmationStatus.ERROR)

        logger.info("Affirmation generated (%d chars)", len(text))
        return AffirmationResult(text=text, is_using_fallback=False, status=AffirmationStatus.SUCCESS)
