"""Tests for taskpulse/models.py: task records, persistence shapes, workout plan."""

import pytest

from taskpulse.models import (
    SERVER_TIMESTAMP,
    Task,
    WorkoutPlan,
    apply_patch,
    from_persisted,
    new_task,
    to_persisted,
)

from fakes import make_task


FULL_TASK = Task(
    id="t1",
    text="Leg day",
    done=True,
    created_at=1_760_000_000_000,
    category="workout",
    done_at=1_760_000_100_000,
    done_day="2026-10-14",
    due_day="2026-10-14",
    workout_part="legs",
)


def test_persisted_round_trip():
    assert from_persisted("t1", to_persisted(FULL_TASK)) == FULL_TASK


def test_to_persisted_writes_absent_as_none_and_stamps():
    doc = to_persisted(make_task("a"))
    assert doc["doneAt"] is None
    assert doc["doneDay"] is None
    assert doc["dueDay"] is None
    assert doc["workoutPart"] is None
    assert doc["updatedAt"] is SERVER_TIMESTAMP


def test_from_persisted_defaults():
    task = from_persisted("x", {"text": "Legacy"})
    assert task.category == "daily"
    assert task.done is False
    assert task.created_at > 0
    assert task.done_at is None
    assert task.due_day is None


def test_from_persisted_coerces_numbers_and_nulls():
    task = from_persisted("x", {
        "text": "n",
        "createdAt": "1700000000000",
        "doneAt": 1.7e12,
        "doneDay": None,
        "category": "WORK",
    })
    assert task.created_at == 1_700_000_000_000
    assert task.done_at == 1_700_000_000_000
    assert task.done_day is None
    assert task.category == "work"


def test_from_persisted_never_raises_on_garbage():
    task = from_persisted("x", {"createdAt": "soon", "category": 7, "workoutPart": "wings"})
    assert task.category == "daily"
    assert task.workout_part is None
    assert from_persisted("y", None).id == "y"


def test_workout_part_dropped_outside_workout():
    assert Task(id="a", category="work", workout_part="legs").workout_part is None
    assert from_persisted("a", {"category": "daily", "workoutPart": "legs"}).workout_part is None


def test_cache_shape_omits_absent_fields():
    d = make_task("a").to_dict()
    assert "doneAt" not in d
    assert "dueDay" not in d
    assert Task.from_dict(FULL_TASK.to_dict() | {"id": "t1"}) == FULL_TASK


def test_new_task_trims_and_rejects_blank():
    task = new_task("  Buy milk  ")
    assert task.text == "Buy milk"
    assert task.category == "daily"
    assert len(task.id) == 32
    assert new_task("   ") is None


def test_new_task_validates():
    with pytest.raises(ValueError):
        new_task("x", category="hobby")
    with pytest.raises(ValueError):
        new_task("x", due_day="tomorrow")
    with pytest.raises(ValueError):
        new_task("x", category="workout", workout_part="wings")
    for bad in ("2026-1-014", " 2026-1-14", "+026-10-14"):
        with pytest.raises(ValueError):
            new_task("x", due_day=bad)


def test_apply_patch_minimal_payload():
    updated, patch = apply_patch(make_task("a"), done=True, done_day="2026-10-14", done_at=5)
    assert updated.done and updated.done_day == "2026-10-14"
    assert patch == {"updatedAt": SERVER_TIMESTAMP, "done": True, "doneDay": "2026-10-14", "doneAt": 5}


def test_apply_patch_clears_to_none():
    task = make_task("a", done=True, done_day="2026-10-14")
    updated, patch = apply_patch(task, done=False, done_at=None, done_day=None)
    assert updated.done_day is None
    assert patch["doneDay"] is None
    assert patch["doneAt"] is None


def test_apply_patch_rejects_unknown_and_unclearable():
    with pytest.raises(ValueError):
        apply_patch(make_task("a"), colour="red")
    with pytest.raises(ValueError):
        apply_patch(make_task("a"), text=None)


def test_workout_plan_defaults_and_suggestion():
    plan = WorkoutPlan()
    assert plan.suggested_part("wed") == "legs"
    assert plan.suggested_part("sat") is None


def test_workout_plan_from_dict_fills_missing_days():
    plan = WorkoutPlan.from_dict({"mon": {"enabled": False, "part": "core"}, "tue": {"part": "wings"}})
    assert plan.rows["mon"].enabled is False
    assert plan.rows["mon"].part == "core"
    assert plan.rows["tue"].part == "back"
    assert set(plan.to_dict()) == {"mon", "tue", "wed", "thu", "fri", "sat", "sun"}
