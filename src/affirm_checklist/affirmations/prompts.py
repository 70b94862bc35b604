# src/affirm_checklist/affirmations/prompts.py

from __future__ import annotations

from collections.abc import Sequence
from typing import Final

from ..config import Settings
from ..core.ports import SessionOptions
from ..tasks.task_models import Task

SHARED_CONTEXT: Final[str] = """
You are an encouraging and supportive assistant that provides daily
affirmations based on completed tasks. Keep affirmations positive,
personalized, and under 100 words. Focus on acknowledging effort
and progress. Be warm and genuine.
""".strip()

AFFIRMATION_REQUEST: Final[str] = (
    "Please provide a warm, encouraging affirmation that acknowledges my progress "
    "and motivates me to continue."
)

NO_TASKS_CONTEXT: Final[str] = "No tasks completed yet."

FALLBACK_AFFIRMATIONS: Final[tuple[str, ...]] = (
    "Great work! You're making progress! 🌟",
    "Keep it up! Every task completed is a step forward. 💪",
    "You're doing amazing! Stay focused! ✨",
    "Progress over perfection! You're crushing it! 🎯",
    "Every completion brings you closer to your goals! 🚀",
)

QUOTA_MESSAGE: Final[str] = "Daily AI limit reached. Try again tomorrow!"
ACTIVATION_MESSAGE: Final[str] = "Please interact with the app to enable AI features."


def build_prompt_context(tasks: Sequence[Task]) -> str:
    if not tasks:
        return NO_TASKS_CONTEXT
    task_list = "\n".join(f"- {t.text}" for t in tasks)
    return f"I've completed {len(tasks)} task(s) today:\n{task_list}"


def build_affirmation_prompt(context: str) -> str:
    return f"{context}\n\n{AFFIRMATION_REQUEST}"


def session_options_from_settings(settings: Settings) -> SessionOptions:
    """The one options object used for both availability() and create()."""
    return SessionOptions(
        model=settings.model_name,
        temperature=settings.temperature,
        top_k=settings.top_k,
        shared_context=SHARED_CONTEXT,
        expected_languages=tuple(settings.expected_languages),
        output_language=settings.output_language,
    )
