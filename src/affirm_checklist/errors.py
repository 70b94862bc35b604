# src/affirm_checklist/errors.py

"""
Error types shared by the checklist and the model layer.

Policy:
- storage errors (BackingStoreUnavailable) propagate up to the UI,
- model errors (ModelError and subclasses) never reach the UI; the affirmation
  service turns them into a fallback result with a status code.
"""

from __future__ import annotations

from enum import StrEnum

import openai


class ChecklistError(Exception):
    """Base class for all errors raised by affirm_checklist."""


class BackingStoreUnavailable(ChecklistError):
    """The local key-value store could not be read or written."""


class TaskNotFound(ChecklistError, KeyError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task with id {task_id} not found")
        self.task_id = task_id

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message.
        return str(self.args[0])


class ModelErrorKind(StrEnum):
    ACTIVATION = "activation"
    QUOTA = "quota"
    UNAVAILABLE = "unavailable"
    GENERIC = "generic"


class ModelError(ChecklistError):
    kind: ModelErrorKind = ModelErrorKind.GENERIC


class ActivationRequiredError(ModelError):
    kind = ModelErrorKind.ACTIVATION

    def __init__(self, message: str = "User activation required to download model") -> None:
        super().__init__(message)


class QuotaExceededError(ModelError):
    kind = ModelErrorKind.QUOTA


class ModelUnavailableError(ModelError):
    kind = ModelErrorKind.UNAVAILABLE


class SessionCreationError(ModelError):
    kind = ModelErrorKind.GENERIC


def _is_rate_limit_error(exc: BaseException) -> bool:
    if isinstance(exc, openai.RateLimitError):
        return True
    return exc.__class__.__name__ in {"RateLimitError", "TooManyRequestsError", "QuotaExceededError"}


def classify_model_error(exc: BaseException) -> ModelErrorKind:
    """
    Map any exception raised by the model runtime to a ModelErrorKind.

    Our own ModelError types carry their kind. Everything else is classified by
    type name first, then by message text (runtimes are not consistent about
    exception types for quota/activation failures).
    """
    if isinstance(exc, ModelError):
        return exc.kind

    if _is_rate_limit_error(exc):
        return ModelErrorKind.QUOTA

    msg = str(exc).lower()
    if "quota" in msg:
        return ModelErrorKind.QUOTA
    if "activation" in msg:
        return ModelErrorKind.ACTIVATION
    return ModelErrorKind.GENERIC


def as_model_error(exc: Exception) -> ModelError:
    """Wrap a runtime exception into the ModelError subclass matching its kind."""
    if isinstance(exc, ModelError):
        return exc

    kind = classify_model_error(exc)
    msg = str(exc).strip() or exc.__class__.__name__
    if kind == ModelErrorKind.QUOTA:
        return QuotaExceededError(msg)
    if kind == ModelErrorKind.ACTIVATION:
        return ActivationRequiredError(msg)
    return SessionCreationError(msg)
