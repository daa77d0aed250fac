"""Typed dataclasses for the TaskPulse data model.

Two serialized shapes exist for a task:

* ``to_dict``/``from_dict``: the local cache shape. Absent optional fields
  are omitted.
* ``to_persisted``/``from_persisted``: the remote document shape. Absent
  optional fields are written as ``None`` so a merge-upsert clears them, and
  every write carries an ``updatedAt`` server timestamp marker.

camelCase in JSON is mapped to snake_case in Python.
Unknown keys are ignored; missing or malformed keys use defaults.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from typing import Any

from taskpulse.dates import WEEKDAY_KEYS, is_day_key
from taskpulse.workspace import now_ms


CATEGORIES = ["daily", "workout", "work"]
DEFAULT_CATEGORY = "daily"

WORKOUT_PARTS = ["chest", "back", "legs", "shoulders", "arms", "core", "cardio", "full_body"]


class _ServerTimestamp:
    """Marker replaced by each remote store with its own write time."""

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()

# Fields that can be reset to "absent" through a patch.
CLEARABLE_FIELDS = {"done_at", "done_day", "due_day", "workout_part"}

_PERSISTED_NAMES = {
    "text": "text",
    "done": "done",
    "created_at": "createdAt",
    "category": "category",
    "done_at": "doneAt",
    "done_day": "doneDay",
    "due_day": "dueDay",
    "workout_part": "workoutPart",
}


# ── Coercion helpers ──────────────────────────────────────────


def _to_int(value: Any, default: int | None) -> int | None:
    if value is None:
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default


def _opt_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def _coerce_category(value: Any) -> str:
    cat = str(value).strip().lower() if value is not None else ""
    return cat if cat in CATEGORIES else DEFAULT_CATEGORY


def _coerce_part(value: Any, category: str) -> str | None:
    if category != "workout" or value is None:
        return None
    part = str(value).strip().lower()
    return part if part in WORKOUT_PARTS else None


def validate_category(category: str) -> str:
    if category not in CATEGORIES:
        raise ValueError(f"Invalid category: {category}")
    return category


def validate_workout_part(part: str) -> str:
    if part not in WORKOUT_PARTS:
        raise ValueError(f"Invalid workout part: {part}")
    return part


# ── Task ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class Task:
    id: str = ""
    text: str = ""
    done: bool = False
    created_at: int = 0  # ms since epoch
    category: str = DEFAULT_CATEGORY  # daily, workout, work
    done_at: int | None = None
    done_day: str | None = None  # YYYY-MM-DD, local
    due_day: str | None = None  # YYYY-MM-DD; None means "today"
    # workout fields
    workout_part: str | None = None

    def __post_init__(self) -> None:
        if self.category != "workout" and self.workout_part is not None:
            object.__setattr__(self, "workout_part", None)

    def effective_due(self, today: str) -> str:
        """The due day key, defaulting undated tasks to *today*."""
        return self.due_day or today

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Task:
        """Tolerant reader for the local cache shape."""
        return from_persisted(str(d.get("id", "")), d)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "text": self.text,
            "done": self.done,
            "createdAt": self.created_at,
            "category": self.category,
        }
        if self.done_at is not None:
            d["doneAt"] = self.done_at
        if self.done_day:
            d["doneDay"] = self.done_day
        if self.due_day:
            d["dueDay"] = self.due_day
        if self.category == "workout" and self.workout_part:
            d["workoutPart"] = self.workout_part
        return d


def new_task(
    text: str,
    category: str = DEFAULT_CATEGORY,
    due_day: str | None = None,
    workout_part: str | None = None,
) -> Task | None:
    """Build a fresh task. Returns None when the trimmed text is empty."""
    trimmed = (text or "").strip()
    if not trimmed:
        return None
    validate_category(category)
    if due_day is not None and not is_day_key(due_day):
        raise ValueError(f"Invalid due day: {due_day}")
    if workout_part is not None:
        validate_workout_part(workout_part)
    return Task(
        id=uuid.uuid4().hex,
        text=trimmed,
        done=False,
        created_at=now_ms(),
        category=category,
        due_day=due_day,
        workout_part=workout_part if category == "workout" else None,
    )


# ── Remote document shape ─────────────────────────────────────


def to_persisted(task: Task) -> dict[str, Any]:
    return {
        "text": task.text,
        "done": task.done,
        "createdAt": task.created_at,
        "category": task.category,
        "doneAt": task.done_at,
        "doneDay": task.done_day,
        "dueDay": task.due_day,
        "workoutPart": task.workout_part,
        "updatedAt": SERVER_TIMESTAMP,
    }


def from_persisted(task_id: str, data: dict[str, Any] | None) -> Task:
    """Deserialize a remote or cached record. Never raises; degrades to defaults."""
    if not isinstance(data, dict):
        data = {}
    category = _coerce_category(data.get("category"))
    created_at = _to_int(data.get("createdAt"), None)
    text = data.get("text")
    return Task(
        id=task_id,
        text="" if text is None else str(text),
        done=bool(data.get("done", False)),
        created_at=now_ms() if created_at is None else created_at,
        category=category,
        done_at=_to_int(data.get("doneAt"), None),
        done_day=_opt_str(data.get("doneDay")),
        due_day=_opt_str(data.get("dueDay")),
        workout_part=_coerce_part(data.get("workoutPart"), category),
    )


def apply_patch(task: Task, **changes: Any) -> tuple[Task, dict[str, Any]]:
    """Apply *changes* to *task*; return the new task and a minimal update payload.

    Only the named fields appear in the payload. Clearable fields set to
    None are sent as None so the remote document drops the value.
    """
    unknown = set(changes) - set(_PERSISTED_NAMES)
    if unknown:
        raise ValueError(f"Unknown task fields: {', '.join(sorted(unknown))}")
    for name, value in changes.items():
        if value is None and name not in CLEARABLE_FIELDS:
            raise ValueError(f"Field cannot be cleared: {name}")

    updated = replace(task, **changes)
    patch: dict[str, Any] = {"updatedAt": SERVER_TIMESTAMP}
    for name in changes:
        patch[_PERSISTED_NAMES[name]] = getattr(updated, name)
    return updated, patch


# ── Weekly workout plan ───────────────────────────────────────


@dataclass
class PlanRow:
    enabled: bool = False
    part: str = "full_body"

    @classmethod
    def from_dict(cls, d: dict[str, Any], default: PlanRow) -> PlanRow:
        if not isinstance(d, dict):
            return PlanRow(default.enabled, default.part)
        part = str(d.get("part", default.part)).strip().lower()
        return cls(
            enabled=bool(d.get("enabled", default.enabled)),
            part=part if part in WORKOUT_PARTS else default.part,
        )

    def to_dict(self) -> dict[str, Any]:
        return {"enabled": self.enabled, "part": self.part}


def _default_rows() -> dict[str, PlanRow]:
    return {
        "mon": PlanRow(True, "chest"),
        "tue": PlanRow(True, "back"),
        "wed": PlanRow(True, "legs"),
        "thu": PlanRow(True, "shoulders"),
        "fri": PlanRow(True, "arms"),
        "sat": PlanRow(False, "cardio"),
        "sun": PlanRow(False, "full_body"),
    }


@dataclass
class WorkoutPlan:
    rows: dict[str, PlanRow] = field(default_factory=_default_rows)

    @classmethod
    def from_dict(cls, d: dict[str, Any] | None) -> WorkoutPlan:
        defaults = _default_rows()
        if not d or not isinstance(d, dict):
            return cls(rows=defaults)
        return cls(rows={k: PlanRow.from_dict(d.get(k), defaults[k]) for k in WEEKDAY_KEYS})

    def to_dict(self) -> dict[str, Any]:
        return {k: self.rows[k].to_dict() for k in WEEKDAY_KEYS}

    def suggested_part(self, weekday: str) -> str | None:
        """The body part planned for *weekday*, or None when that day is off."""
        row = self.rows.get(weekday)
        if row is None or not row.enabled:
            return None
        return row.part
