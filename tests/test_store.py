"""Tests for taskpulse/store.py: optimistic mutations, cache mirror, remote sync."""

import asyncio
import logging

import pytest

from taskpulse.cache import TASKS_CACHE_KEY, LocalCache
from taskpulse.models import to_persisted
from taskpulse.store import Principal, SyncState, TaskStore, build_store

from fakes import NOW, TODAY, BrokenFetchRemote, BrokenSettingsRemote, FailingRemote, GatedRemote, make_task

ALICE = Principal(uid="alice", display_name="Alice")


def _store(cache, remote):
    s = TaskStore(cache=cache, remote=remote, clock=lambda: NOW, plan_save_delay=0.05)
    s.load()
    return s


def test_load_empty_cache(store):
    assert store.state == SyncState.LOCAL_CACHE_LOADED
    assert store.tasks == []


def test_load_corrupt_snapshot_is_empty(cache, remote):
    cache.set(TASKS_CACHE_KEY, "{broken")
    assert _store(cache, remote).tasks == []


def test_load_non_list_snapshot_is_empty(cache, remote):
    cache.set_json(TASKS_CACHE_KEY, {"id": "a"})
    assert _store(cache, remote).tasks == []


def test_add_signed_out_is_local_only(store, cache, remote):
    task = store.add_task("  Buy milk ")
    assert task.text == "Buy milk"
    assert task.due_day is None
    assert store.tasks == [task]
    assert cache.get_json(TASKS_CACHE_KEY) == [task.to_dict()]
    assert remote.calls == []


def test_add_blank_is_noop(store, cache):
    assert store.add_task("   ") is None
    assert store.tasks == []
    assert cache.get(TASKS_CACHE_KEY) is None


def test_add_puts_newest_first(store):
    first = store.add_task("one")
    second = store.add_task("two")
    assert [t.id for t in store.tasks] == [second.id, first.id]


def test_add_workout_uses_plan_suggestion(store):
    wed = store.add_task("Squats", "workout", due_day="2026-10-14")
    sat = store.add_task("Walk", "workout", due_day="2026-10-17")
    undated = store.add_task("Bench", "workout")
    explicit = store.add_task("Run", "workout", workout_part="cardio")
    assert wed.workout_part == "legs"
    assert sat.workout_part is None
    assert undated.workout_part == "legs"  # NOW is a Wednesday
    assert explicit.workout_part == "cardio"


def test_add_inline_sets_due_day(store):
    task = store.add_task_inline("2026-10-16", "Report", "work")
    assert task.due_day == "2026-10-16"
    assert task.category == "work"


def test_toggle_sets_and_clears_completion(store):
    task = store.add_task("Stretch")
    done = store.toggle_task(task.id)
    assert done.done is True
    assert done.done_day == TODAY
    assert done.done_at == int(NOW.timestamp() * 1000)

    undone = store.toggle_task(task.id)
    assert undone.done is False
    assert undone.done_at is None
    assert undone.done_day is None
    assert store.find(task.id) == undone


def test_toggle_unknown_id(store):
    assert store.toggle_task("missing") is None


def test_delete_and_clear_done_scoped_to_category(store):
    a = store.add_task("a")
    b = store.add_task("b")
    w = store.add_task("w", "work")
    store.toggle_task(a.id)
    store.toggle_task(w.id)

    assert store.clear_done("daily") == [a.id]
    assert {t.id for t in store.tasks} == {b.id, w.id}
    assert store.delete_task(b.id) is True
    assert store.delete_task(b.id) is False
    assert [t.id for t in store.tasks] == [w.id]


def test_mutations_survive_reload(store, cache, remote):
    task = store.add_task("Persist me", due_day="2026-10-15")
    store.toggle_task(task.id)
    reloaded = _store(cache, remote)
    assert reloaded.tasks == store.tasks


def test_derived_views(store):
    a = store.add_task("a")
    store.add_task("b", "work")
    store.toggle_task(a.id)
    stats = store.stats("daily")
    assert stats.counts.total == 1
    assert stats.streak == 1
    assert [t.id for t in store.visible_tasks("daily", "done")] == [a.id]
    assert [t.id for t in store.week_tasks("daily")[TODAY]] == [a.id]
    assert store.stats("workout").week[0].plan_label == "chest"


@pytest.mark.asyncio
async def test_sign_in_replaces_local_collection(store, remote):
    local = store.add_task("Buy milk")
    assert remote.calls == []

    old = make_task("r-old", created_at=100)
    new = make_task("r-new", created_at=200)
    for t in (old, new):
        await remote.upsert_task("alice", t.id, to_persisted(t))
    remote.calls.clear()

    assert await store.sign_in(ALICE) is True
    assert store.state == SyncState.REMOTE_SYNCED
    # pre-sign-in local task is dropped: the fetch replaces, it does not merge
    assert [t.id for t in store.tasks] == ["r-new", "r-old"]
    assert store.find(local.id) is None
    assert remote.names() == ["fetch_tasks", "read_settings"]


@pytest.mark.asyncio
async def test_sign_in_loads_remote_plan(store, remote):
    await remote.write_settings("alice", {"workoutPlan": {"sat": {"enabled": True, "part": "core"}}})
    await store.sign_in(ALICE)
    assert store.plan.suggested_part("sat") == "core"


@pytest.mark.asyncio
async def test_signed_in_mutations_reach_remote(store, remote):
    await store.sign_in(ALICE)
    task = store.add_task("Leg day", "workout")
    await store.drain()
    assert remote.tasks["alice"][task.id]["text"] == "Leg day"
    assert remote.tasks["alice"][task.id]["workoutPart"] == "legs"

    store.toggle_task(task.id)
    await store.drain()
    doc = remote.tasks["alice"][task.id]
    assert doc["done"] is True
    assert doc["doneDay"] == TODAY
    assert isinstance(doc["updatedAt"], int)

    store.clear_done("workout")
    await store.drain()
    assert remote.tasks["alice"] == {}


@pytest.mark.asyncio
async def test_local_state_applied_before_remote_write(store, remote):
    await store.sign_in(ALICE)
    task = store.add_task("Quick")
    # the upsert is scheduled but has not run yet
    assert store.tasks == [task]
    assert "upsert_task" not in remote.names()
    await store.drain()
    assert "upsert_task" in remote.names()


@pytest.mark.asyncio
async def test_remote_write_failures_are_swallowed(cache, caplog):
    remote = FailingRemote()
    store = _store(cache, remote)
    await store.sign_in(ALICE)
    with caplog.at_level(logging.WARNING, logger="taskpulse.store"):
        task = store.add_task("Offline")
        store.toggle_task(task.id)
        await store.drain()
    assert store.find(task.id).done is True
    assert cache.get_json(TASKS_CACHE_KEY)[0]["done"] is True
    assert "Remote upsert" in caplog.text
    assert "Remote patch" in caplog.text


@pytest.mark.asyncio
async def test_fetch_failure_keeps_local_data(cache):
    store = _store(cache, BrokenFetchRemote())
    task = store.add_task("Keep me")
    assert await store.sign_in(ALICE) is False
    assert store.state == SyncState.SYNC_FAILED
    assert store.tasks == [task]


@pytest.mark.asyncio
async def test_settings_read_failure_keeps_fetched_tasks(cache):
    remote = BrokenSettingsRemote()
    await remote.upsert_task("alice", "remote", to_persisted(make_task("remote")))
    store = _store(cache, remote)
    store.update_plan_row("mon", part="core")

    assert await store.sign_in(ALICE) is True
    assert store.state == SyncState.REMOTE_SYNCED
    assert [t.id for t in store.tasks] == ["remote"]
    assert store.plan.rows["mon"].part == "core"


def test_add_rejects_malformed_due_day(store, cache):
    for bad in (20261014, "2026-1-014"):
        with pytest.raises(ValueError):
            store.add_task("x", "workout", due_day=bad)
    assert store.tasks == []


@pytest.mark.asyncio
async def test_stale_fetch_is_discarded(cache):
    remote = GatedRemote()
    await remote.upsert_task("alice", "remote", to_persisted(make_task("remote")))
    store = _store(cache, remote)
    local = store.add_task("Local")

    pending = asyncio.ensure_future(store.sign_in(ALICE))
    await asyncio.sleep(0)
    assert store.syncing
    store.sign_out()
    remote.release.set()

    assert await pending is False
    assert store.tasks == [local]
    assert store.state == SyncState.LOCAL_CACHE_LOADED


@pytest.mark.asyncio
async def test_sign_out_stops_remote_writes(store, remote):
    await store.sign_in(ALICE)
    store.sign_out()
    remote.calls.clear()
    store.add_task("Offline again")
    await store.drain()
    assert remote.calls == []


@pytest.mark.asyncio
async def test_plan_edits_are_debounced(store, remote):
    await store.sign_in(ALICE)
    remote.calls.clear()

    store.update_plan_row("sat", enabled=True)
    await asyncio.sleep(0.01)
    store.update_plan_row("sat", part="core")
    await asyncio.sleep(0.01)
    assert "write_settings" not in remote.names()

    await asyncio.sleep(0.15)
    assert remote.names().count("write_settings") == 1
    saved = remote.settings["alice"]["workoutPlan"]["sat"]
    assert saved == {"enabled": True, "part": "core"}


@pytest.mark.asyncio
async def test_drain_flushes_pending_plan_save(store, remote):
    await store.sign_in(ALICE)
    store.update_plan_row("mon", enabled=False)
    await store.drain()
    assert remote.settings["alice"]["workoutPlan"]["mon"]["enabled"] is False


def test_plan_edit_signed_out_is_cached_only(store, cache, remote):
    row = store.update_plan_row("sun", enabled=True, part="cardio")
    assert row.enabled and row.part == "cardio"
    assert _store(cache, remote).plan.suggested_part("sun") == "cardio"
    assert remote.calls == []


def test_plan_edit_validates(store):
    with pytest.raises(ValueError):
        store.update_plan_row("funday", enabled=True)
    with pytest.raises(ValueError):
        store.update_plan_row("mon", part="wings")


def test_build_store_from_settings(workspace):
    store = build_store(workspace)
    assert store.state == SyncState.LOCAL_CACHE_LOADED
    task = store.add_task("From settings")
    assert LocalCache(workspace / "cache.json").get_json(TASKS_CACHE_KEY)[0]["id"] == task.id


def test_build_store_resolves_timezone_once(workspace):
    store = build_store(workspace)
    (workspace / "settings.yaml").write_text("remote_backend: bogus\n", encoding="utf-8")

    assert store.now().tzinfo.key == "Europe/Berlin"
    assert store.add_task("Still works") is not None
