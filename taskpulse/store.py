"""Task Store: the authoritative in-memory collection and its mirrors.

Lifecycle::

    UNLOADED -> LOCAL_CACHE_LOADED -> REMOTE_SYNCING -> REMOTE_SYNCED
                                                   \\-> SYNC_FAILED

Every mutation is applied to the in-memory collection first, written to the
local cache as a full snapshot, and then (when a user is signed in) sent to
the remote store as an independent fire-and-forget asyncio task. Remote
failures are logged and dropped; the local state stays the system of record
until the next full fetch replaces it.

Signing in fetches the whole remote collection and replaces the local one.
Tasks added while signed out and never uploaded are discarded at that point.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable

from taskpulse.cache import PLAN_CACHE_KEY, TASKS_CACHE_KEY, LocalCache
from taskpulse.dates import WEEKDAY_KEYS, day_key, is_day_key, parse_day_key, weekday_key_from_date
from taskpulse.debounce import Debouncer
from taskpulse.models import (
    SERVER_TIMESTAMP,
    PlanRow,
    Task,
    WorkoutPlan,
    apply_patch,
    from_persisted,
    new_task,
    to_persisted,
    validate_category,
    validate_workout_part,
)
from taskpulse.remote import RemoteStore
from taskpulse.stats import StatsSummary, build_stats, filter_tasks, tasks_by_day, tasks_in_category
from taskpulse.workspace import Settings, cache_path, load_settings, now_in, now_local, resolve_timezone

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    UNLOADED = "unloaded"
    LOCAL_CACHE_LOADED = "local_cache_loaded"
    REMOTE_SYNCING = "remote_syncing"
    REMOTE_SYNCED = "remote_synced"
    SYNC_FAILED = "sync_failed"


@dataclass(frozen=True)
class Principal:
    """A signed-in user as reported by the identity provider."""

    uid: str
    display_name: str = ""


class TaskStore:
    def __init__(
        self,
        cache: LocalCache,
        remote: RemoteStore | None = None,
        clock: Callable[[], datetime] = now_local,
        plan_save_delay: float = 0.45,
    ) -> None:
        self._cache = cache
        self._remote = remote
        self._clock = clock
        self._tasks: list[Task] = []
        self._plan = WorkoutPlan()
        self._state = SyncState.UNLOADED
        self._principal: Principal | None = None
        self._generation = 0
        self._inflight: set[asyncio.Task] = set()
        self._plan_saver = Debouncer(plan_save_delay, self._save_plan_now)

    # ── State ─────────────────────────────────────────────────

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def principal(self) -> Principal | None:
        return self._principal

    @property
    def signed_in(self) -> bool:
        return self._principal is not None

    @property
    def syncing(self) -> bool:
        return self._state == SyncState.REMOTE_SYNCING

    @property
    def tasks(self) -> list[Task]:
        return list(self._tasks)

    @property
    def plan(self) -> WorkoutPlan:
        return self._plan

    def now(self) -> datetime:
        return self._clock()

    def find(self, task_id: str) -> Task | None:
        for t in self._tasks:
            if t.id == task_id:
                return t
        return None

    # ── Local cache ───────────────────────────────────────────

    def load(self) -> None:
        """Read the local cache once. Unreadable data leaves the collection empty."""
        raw = self._cache.get_json(TASKS_CACHE_KEY)
        if isinstance(raw, list):
            self._tasks = [Task.from_dict(d) for d in raw if isinstance(d, dict)]
        else:
            if raw is not None:
                logger.warning("Cached task snapshot is not a list; ignoring")
            self._tasks = []

        plan_raw = self._cache.get_json(PLAN_CACHE_KEY)
        self._plan = WorkoutPlan.from_dict(plan_raw if isinstance(plan_raw, dict) else None)

        self._state = SyncState.LOCAL_CACHE_LOADED
        logger.info("TaskStore loaded from cache total=%d", len(self._tasks))

    def _ensure_loaded(self) -> None:
        if self._state == SyncState.UNLOADED:
            self.load()

    def _set_tasks(self, tasks: list[Task]) -> None:
        self._tasks = tasks
        self._cache.set_json(TASKS_CACHE_KEY, [t.to_dict() for t in tasks])

    # ── Session ───────────────────────────────────────────────

    async def sign_in(self, principal: Principal) -> bool:
        """Fetch the remote collection for *principal* and replace local state.

        Returns True once the fetched data is in place. A fetch that finishes
        after a sign-out or another sign-in is discarded.
        """
        self._ensure_loaded()
        self._principal = principal
        self._generation += 1
        generation = self._generation

        if self._remote is None:
            logger.info("Signed in uid=%s without a remote store; local only", principal.uid)
            return True

        self._state = SyncState.REMOTE_SYNCING
        try:
            docs = await self._remote.fetch_tasks(principal.uid)
        except Exception:
            if generation == self._generation:
                self._state = SyncState.SYNC_FAILED
            logger.exception("Remote fetch failed uid=%s; keeping local data", principal.uid)
            return False

        try:
            settings = await self._remote.read_settings(principal.uid)
        except Exception:
            logger.warning("Settings read failed uid=%s; keeping cached plan", principal.uid, exc_info=True)
            settings = None

        if generation != self._generation:
            logger.info("Discarding stale fetch uid=%s", principal.uid)
            return False

        fresh = [from_persisted(task_id, data) for task_id, data in docs]
        fresh.sort(key=lambda t: t.created_at, reverse=True)
        self._set_tasks(fresh)

        plan_doc = (settings or {}).get("workoutPlan")
        if isinstance(plan_doc, dict):
            self._plan = WorkoutPlan.from_dict(plan_doc)
            self._cache.set_json(PLAN_CACHE_KEY, self._plan.to_dict())

        self._state = SyncState.REMOTE_SYNCED
        logger.info("Remote sync complete uid=%s total=%d", principal.uid, len(fresh))
        return True

    def sign_out(self) -> None:
        if self._plan_saver.pending:
            self._plan_saver.flush()
        self._principal = None
        self._generation += 1
        if self._state != SyncState.UNLOADED:
            self._state = SyncState.LOCAL_CACHE_LOADED

    # ── Remote propagation ────────────────────────────────────

    def _propagate(self, what: str, op: Callable[[str], Awaitable[None]]) -> asyncio.Task | None:
        """Schedule *op(uid)* on the running loop; no-op when signed out."""
        if self._remote is None or self._principal is None:
            return None
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._guarded(what, op(self._principal.uid)))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def _guarded(self, what: str, pending: Awaitable[None]) -> None:
        try:
            await pending
        except Exception:
            logger.warning("Remote %s failed; local state kept", what, exc_info=True)

    async def drain(self) -> None:
        """Flush a pending plan save and wait for every in-flight remote write."""
        if self._plan_saver.pending:
            self._plan_saver.flush()
        while self._inflight:
            await asyncio.gather(*list(self._inflight))

    # ── Mutations ─────────────────────────────────────────────

    def add_task(
        self,
        text: str,
        category: str = "daily",
        due_day: str | None = None,
        workout_part: str | None = None,
    ) -> Task | None:
        """Add a task at the top of the collection. Blank text is ignored."""
        self._ensure_loaded()
        if due_day is not None and not is_day_key(due_day):
            raise ValueError(f"Invalid due day: {due_day}")
        if category == "workout" and workout_part is None:
            when = parse_day_key(due_day) if due_day else self._clock()
            workout_part = self._plan.suggested_part(weekday_key_from_date(when))

        task = new_task(text, category, due_day=due_day, workout_part=workout_part)
        if task is None:
            return None

        self._set_tasks([task, *self._tasks])
        data = to_persisted(task)
        self._propagate(f"upsert task={task.id}", lambda uid: self._remote.upsert_task(uid, task.id, data))
        return task

    def add_task_inline(self, day: str, text: str, category: str = "daily") -> Task | None:
        """Add a task directly into one day of the week view."""
        return self.add_task(text, category, due_day=day)

    def toggle_task(self, task_id: str) -> Task | None:
        self._ensure_loaded()
        current = self.find(task_id)
        if current is None:
            return None

        if current.done:
            updated, patch = apply_patch(current, done=False, done_at=None, done_day=None)
        else:
            now = self._clock()
            updated, patch = apply_patch(
                current,
                done=True,
                done_at=int(now.timestamp() * 1000),
                done_day=day_key(now),
            )

        self._set_tasks([updated if t.id == task_id else t for t in self._tasks])
        self._propagate(f"patch task={task_id}", lambda uid: self._remote.update_task(uid, task_id, patch))
        return updated

    def delete_task(self, task_id: str) -> bool:
        self._ensure_loaded()
        if self.find(task_id) is None:
            return False
        self._set_tasks([t for t in self._tasks if t.id != task_id])
        self._propagate(f"delete task={task_id}", lambda uid: self._remote.delete_task(uid, task_id))
        return True

    def clear_done(self, category: str) -> list[str]:
        """Remove every completed task in *category*. Returns the removed ids."""
        validate_category(category)
        self._ensure_loaded()
        ids = [t.id for t in self._tasks if t.category == category and t.done]
        if not ids:
            return []
        removed = set(ids)
        self._set_tasks([t for t in self._tasks if t.id not in removed])
        for task_id in ids:
            self._propagate(
                f"delete task={task_id}",
                lambda uid, task_id=task_id: self._remote.delete_task(uid, task_id),
            )
        return ids

    # ── Weekly workout plan ───────────────────────────────────

    def update_plan_row(self, weekday: str, enabled: bool | None = None, part: str | None = None) -> PlanRow:
        """Edit one weekday of the plan; the remote save is debounced."""
        if weekday not in WEEKDAY_KEYS:
            raise ValueError(f"Invalid weekday: {weekday}")
        if part is not None:
            validate_workout_part(part)
        self._ensure_loaded()

        row = self._plan.rows[weekday]
        new_row = PlanRow(
            enabled=row.enabled if enabled is None else enabled,
            part=row.part if part is None else part,
        )
        self._plan = WorkoutPlan(rows={**self._plan.rows, weekday: new_row})
        self._cache.set_json(PLAN_CACHE_KEY, self._plan.to_dict())

        if self._remote is not None and self._principal is not None:
            self._plan_saver.trigger()
        return new_row

    def _save_plan_now(self) -> None:
        doc = {"workoutPlan": self._plan.to_dict(), "updatedAt": SERVER_TIMESTAMP}
        self._propagate("save plan", lambda uid: self._remote.write_settings(uid, doc))

    # ── Derived views ─────────────────────────────────────────

    def tasks_in(self, category: str) -> list[Task]:
        return tasks_in_category(self._tasks, category)

    def visible_tasks(self, category: str, flt: str = "all", now: datetime | None = None) -> list[Task]:
        return filter_tasks(self.tasks_in(category), flt, now or self._clock())

    def week_tasks(self, category: str, now: datetime | None = None) -> dict[str, list[Task]]:
        return tasks_by_day(self.tasks_in(category), now or self._clock())

    def stats(self, category: str, now: datetime | None = None) -> StatsSummary:
        plan = self._plan if category == "workout" else None
        return build_stats(self.tasks_in(category), now or self._clock(), plan)


def build_store(root: Path | None = None, settings: Settings | None = None) -> TaskStore:
    """Wire a TaskStore from the workspace settings."""
    if settings is None:
        settings = load_settings(root)

    remote: RemoteStore | None = None
    if settings.remote_backend == "memory":
        from taskpulse.remote import MemoryRemoteStore
        remote = MemoryRemoteStore()
    elif settings.remote_backend == "firestore":
        from taskpulse.remote_firestore import FirestoreRemoteStore
        remote = FirestoreRemoteStore(project=settings.firestore_project)

    tz = resolve_timezone(settings.timezone)
    store = TaskStore(
        cache=LocalCache(cache_path(root)),
        remote=remote,
        clock=lambda: now_in(tz),
        plan_save_delay=settings.plan_save_delay_ms / 1000,
    )
    store.load()
    return store
