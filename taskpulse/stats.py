"""Derived statistics engine for TaskPulse.

Every function here is pure over a snapshot of tasks plus "now": counts,
streaks, the Monday-start week calendar, the 14-day cumulative series and the
flat-list filters. Nothing is cached; callers recompute on every read.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from taskpulse.dates import (
    add_days,
    day_key,
    label_date,
    label_weekday_en,
    last_n_day_keys,
    parse_day_key,
    weekday_key_from_date,
    week_keys_mon_sun,
)
from taskpulse.models import Task, WorkoutPlan, validate_category


VALID_FILTERS = {"all", "today", "tomorrow", "week", "active", "done"}

CUMULATIVE_DAYS = 14


# ── Result types ──────────────────────────────────────────────


@dataclass
class TaskCounts:
    total: int = 0
    done: int = 0
    active: int = 0
    progress_pct: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "done": self.done,
            "active": self.active,
            "progressPct": self.progress_pct,
        }


@dataclass
class WeekDayStat:
    key: str = ""
    weekday: str = ""  # Mon..Sun
    date: str = ""  # DD.MM.
    planned: int = 0
    done: int = 0
    plan_label: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "weekday": self.weekday,
            "date": self.date,
            "planned": self.planned,
            "done": self.done,
            "planLabel": self.plan_label,
        }


@dataclass
class CumulativeSeries:
    keys: list[str] = field(default_factory=list)
    values: list[int] = field(default_factory=list)
    labels: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"keys": self.keys, "values": self.values, "labels": self.labels}


@dataclass
class StatsSummary:
    today: str = ""
    counts: TaskCounts = field(default_factory=TaskCounts)
    streak: int = 0
    week: list[WeekDayStat] = field(default_factory=list)
    last_14_days: CumulativeSeries = field(default_factory=CumulativeSeries)

    def to_dict(self) -> dict[str, Any]:
        return {
            "today": self.today,
            "counts": self.counts.to_dict(),
            "streak": self.streak,
            "week": [d.to_dict() for d in self.week],
            "last14Days": self.last_14_days.to_dict(),
        }


# ── Helpers ───────────────────────────────────────────────────


def tasks_in_category(tasks: list[Task], category: str) -> list[Task]:
    validate_category(category)
    return [t for t in tasks if t.category == category]


def _done_per_day(tasks: list[Task]) -> dict[str, int]:
    per_day: dict[str, int] = defaultdict(int)
    for t in tasks:
        if t.done and t.done_day:
            per_day[t.done_day] += 1
    return per_day


def _undone_then_newest(t: Task) -> tuple[bool, int]:
    return (t.done, -t.created_at)


# ── Computation ───────────────────────────────────────────────


def compute_counts(tasks: list[Task]) -> TaskCounts:
    total = len(tasks)
    done = sum(1 for t in tasks if t.done)
    pct = 0 if total == 0 else round(done / total * 100)
    return TaskCounts(total=total, done=done, active=total - done, progress_pct=pct)


def compute_streak(tasks: list[Task], now: datetime) -> int:
    """Consecutive days, walking back from today, with at least one task done.

    Today must itself have a completion; there is no grace day.
    """
    done_days = {t.done_day for t in tasks if t.done and t.done_day}
    streak = 0
    d = now
    while day_key(d) in done_days:
        streak += 1
        d = add_days(d, -1)
    return streak


def weekly_aggregate(
    tasks: list[Task],
    now: datetime,
    plan: WorkoutPlan | None = None,
) -> list[WeekDayStat]:
    """Planned vs done counts for each day of the current Mon-Sun week."""
    today = day_key(now)
    keys = week_keys_mon_sun(now)
    planned: dict[str, int] = {k: 0 for k in keys}
    done: dict[str, int] = {k: 0 for k in keys}

    for t in tasks:
        due = t.effective_due(today)
        if due in planned:
            planned[due] += 1
        if t.done and t.done_day in done:
            done[t.done_day] += 1

    result = []
    for k in keys:
        label = None
        if plan is not None:
            label = plan.suggested_part(weekday_key_from_date(parse_day_key(k)))
        result.append(WeekDayStat(
            key=k,
            weekday=label_weekday_en(k),
            date=label_date(k),
            planned=planned[k],
            done=done[k],
            plan_label=label,
        ))
    return result


def tasks_by_day(tasks: list[Task], now: datetime) -> dict[str, list[Task]]:
    """Group tasks of the current week by effective due day."""
    today = day_key(now)
    groups: dict[str, list[Task]] = {k: [] for k in week_keys_mon_sun(now)}
    for t in tasks:
        due = t.effective_due(today)
        if due in groups:
            groups[due].append(t)
    for k in groups:
        groups[k].sort(key=_undone_then_newest)
    return groups


def cumulative_series(tasks: list[Task], now: datetime, days: int = CUMULATIVE_DAYS) -> CumulativeSeries:
    """Running total of completions over the *days* ending today, oldest first."""
    keys = last_n_day_keys(now, days)
    per_day = _done_per_day(tasks)

    values = []
    running = 0
    for k in keys:
        running += per_day.get(k, 0)
        values.append(running)

    return CumulativeSeries(keys=keys, values=values, labels=[label_date(k) for k in keys])


def filter_tasks(tasks: list[Task], flt: str, now: datetime) -> list[Task]:
    """Apply a list filter and the default list ordering.

    Ordering: effective due day ascending, incomplete before complete,
    newest created first.
    """
    if flt not in VALID_FILTERS:
        raise ValueError(f"Invalid filter: {flt}")

    today = day_key(now)
    tomorrow = day_key(add_days(now, 1))
    week = set(week_keys_mon_sun(now))

    if flt == "active":
        selected = [t for t in tasks if not t.done]
    elif flt == "done":
        selected = [t for t in tasks if t.done]
    elif flt == "today":
        selected = [t for t in tasks if t.effective_due(today) == today]
    elif flt == "tomorrow":
        selected = [t for t in tasks if t.effective_due(today) == tomorrow]
    elif flt == "week":
        selected = [t for t in tasks if t.effective_due(today) in week]
    else:
        selected = list(tasks)

    selected.sort(key=lambda t: (t.effective_due(today), t.done, -t.created_at))
    return selected


def build_stats(
    tasks: list[Task],
    now: datetime,
    plan: WorkoutPlan | None = None,
) -> StatsSummary:
    """Compute the full statistics summary for one category's tasks."""
    return StatsSummary(
        today=day_key(now),
        counts=compute_counts(tasks),
        streak=compute_streak(tasks, now),
        week=weekly_aggregate(tasks, now, plan),
        last_14_days=cumulative_series(tasks, now),
    )
