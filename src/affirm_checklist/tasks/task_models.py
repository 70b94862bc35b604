# src/affirm_checklist/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any


@dataclass(slots=True)
class Task:
    id: str
    text: str
    completed: bool = False
    completed_at: float | None = None  # epoch seconds

    def copy(self) -> Task:
        return replace(self)

    def to_dict(self) -> dict[str, Any]:
        # Keys match the persisted layout (camelCase is part of the storage format).
        return {
            "id": self.id,
            "text": self.text,
            "completed": self.completed,
            "completedAt": self.completed_at,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Task:
        completed_at = raw.get("completedAt")
        return cls(
            id=str(raw.get("id") or ""),
            text=str(raw.get("text") or ""),
            completed=bool(raw.get("completed", False)),
            completed_at=float(completed_at) if completed_at is not None else None,
        )


@dataclass(slots=True)
class DailyTaskSet:
    date: str
    items: list[Task] = field(default_factory=list)

    def find(self, task_id: str) -> Task | None:
        for t in self.items:
            if t.id == task_id:
                return t
        return None

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.date, "items": [t.to_dict() for t in self.items]}

    @classmethod
    def from_dict(cls, raw: dict[str, Any], *, default_date: str) -> DailyTaskSet:
        items_raw = raw.get("items")
        items = [Task.from_dict(x) for x in items_raw if isinstance(x, dict)] if isinstance(items_raw, list) else []
        return cls(date=str(raw.get("date") or default_date), items=items)


@dataclass(slots=True)
class StreakInfo:
    count: int = 0
    last_date: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"count": self.count, "lastDate": self.last_date}

    @classmethod
    def from_dict(cls, raw: Any) -> StreakInfo:
        if not isinstance(raw, dict):
            return cls()
        try:
            count = max(0, int(raw.get("count") or 0))
        except (TypeError, ValueError):
            count = 0
        last = raw.get("lastDate")
        return cls(count=count, last_date=str(last) if last else None)


@dataclass(frozen=True, slots=True)
class ToggleResult:
    task: Task
    is_first_completion: bool


@dataclass(frozen=True, slots=True)
class Progress:
    total: int
    completed: int
