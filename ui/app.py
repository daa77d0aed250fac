from __future__ import annotations

import logging
import os
import secrets
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import Body, Depends, FastAPI, HTTPException, status
from fastapi.responses import Response
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from taskpulse import (
    CATEGORIES,
    Principal,
    TaskStore,
    build_area_chart,
    build_store,
    day_key,
    load_settings,
    log_dir,
    render_svg,
)
from taskpulse.logging_setup import setup_logging

logger = logging.getLogger(__name__)

GUEST = "guest"

_store: TaskStore | None = None


def get_store() -> TaskStore:
    global _store
    if _store is None:
        _store = build_store()
    return _store


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = load_settings()
    setup_logging(log_dir=log_dir(), console_level=settings.log_level)
    logger.info("TaskPulse UI starting backend=%s", settings.remote_backend)
    yield
    if _store is not None:
        await _store.drain()


app = FastAPI(title="TaskPulse", version="0.1.0", lifespan=lifespan)

security = HTTPBasic(auto_error=False)


# ── Auth ──────────────────────────────────────────────────────


def get_current_user(credentials: HTTPBasicCredentials | None = Depends(security)) -> str:
    expected_username = os.environ.get("TASKPULSE_USERNAME", "")
    expected_password = os.environ.get("TASKPULSE_PASSWORD", "")

    if credentials is None:
        if not expected_username or not expected_password:
            return GUEST
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Basic"},
        )

    if not expected_username or not expected_password:
        return GUEST

    correct_username = secrets.compare_digest(credentials.username.encode("utf-8"), expected_username.encode("utf-8"))
    correct_password = secrets.compare_digest(credentials.password.encode("utf-8"), expected_password.encode("utf-8"))

    if not (correct_username and correct_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )

    return credentials.username


async def session_store(
    username: str = Depends(get_current_user),
    store: TaskStore = Depends(get_store),
) -> TaskStore:
    """The store, signed in as the requesting user (or signed out for guests)."""
    if username == GUEST:
        if store.signed_in:
            store.sign_out()
    elif store.principal is None or store.principal.uid != username:
        await store.sign_in(Principal(uid=username, display_name=username))
    return store


def _category(category: str) -> str:
    if category not in CATEGORIES:
        raise HTTPException(status_code=400, detail=f"Invalid category: {category}")
    return category


# ── Endpoints ─────────────────────────────────────────────────


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"ok": "true"}


@app.get("/api/session")
async def api_session(store: TaskStore = Depends(session_store)) -> dict[str, Any]:
    principal = store.principal
    return {
        "signedIn": principal is not None,
        "uid": principal.uid if principal else None,
        "displayName": principal.display_name if principal else None,
        "state": store.state.value,
        "syncing": store.syncing,
    }


@app.get("/api/tasks")
async def api_list_tasks(
    category: str = "daily",
    filter: str = "all",
    store: TaskStore = Depends(session_store),
) -> dict[str, Any]:
    try:
        tasks = store.visible_tasks(_category(category), filter)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"tasks": [t.to_dict() for t in tasks]}


@app.post("/api/tasks")
async def api_create_task(payload: dict[str, Any] = Body(...), store: TaskStore = Depends(session_store)) -> dict[str, Any]:
    """Create a task; the due day defaults to today like the add form."""
    try:
        task = store.add_task(
            str(payload.get("text", "")),
            _category(str(payload.get("category", "daily"))),
            due_day=payload.get("dueDay") or day_key(store.now()),
            workout_part=payload.get("workoutPart"),
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if task is None:
        raise HTTPException(status_code=400, detail="Task text is empty")
    return {"ok": True, "task": task.to_dict()}


@app.post("/api/tasks/inline")
async def api_create_task_inline(payload: dict[str, Any] = Body(...), store: TaskStore = Depends(session_store)) -> dict[str, Any]:
    day = payload.get("day")
    if not day:
        raise HTTPException(status_code=400, detail="Missing day")
    try:
        task = store.add_task_inline(str(day), str(payload.get("text", "")), _category(str(payload.get("category", "daily"))))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if task is None:
        raise HTTPException(status_code=400, detail="Task text is empty")
    return {"ok": True, "task": task.to_dict()}


@app.post("/api/tasks/clear_done")
async def api_clear_done(payload: dict[str, Any] = Body(default={}), store: TaskStore = Depends(session_store)) -> dict[str, Any]:
    removed = store.clear_done(_category(str(payload.get("category", "daily"))))
    return {"ok": True, "removed": removed}


@app.post("/api/tasks/{task_id}/toggle")
async def api_toggle_task(task_id: str, store: TaskStore = Depends(session_store)) -> dict[str, Any]:
    task = store.toggle_task(task_id)
    if task is None:
        raise HTTPException(status_code=404, detail=f"Task not found: {task_id}")
    return {"ok": True, "task": task.to_dict()}


@app.delete("/api/tasks/{task_id}")
async def api_delete_task(task_id: str, store: TaskStore = Depends(session_store)) -> dict[str, Any]:
    if not store.delete_task(task_id):
        raise HTTPException(status_code=404, detail=f"Task not found: {task_id}")
    return {"ok": True}


@app.get("/api/week")
async def api_week(category: str = "daily", store: TaskStore = Depends(session_store)) -> dict[str, Any]:
    groups = store.week_tasks(_category(category))
    return {"days": {k: [t.to_dict() for t in v] for k, v in groups.items()}}


@app.get("/api/stats")
async def api_stats(category: str = "daily", store: TaskStore = Depends(session_store)) -> dict[str, Any]:
    summary = store.stats(_category(category))
    series = summary.last_14_days
    chart = build_area_chart(series.values, series.labels)
    return {**summary.to_dict(), "chart": chart.to_dict()}


@app.get("/api/chart.svg")
async def api_chart_svg(category: str = "daily", store: TaskStore = Depends(session_store)) -> Response:
    series = store.stats(_category(category)).last_14_days
    svg = render_svg(build_area_chart(series.values, series.labels))
    return Response(content=svg, media_type="image/svg+xml")


@app.get("/api/plan")
async def api_plan(store: TaskStore = Depends(session_store)) -> dict[str, Any]:
    return {"plan": store.plan.to_dict()}


@app.put("/api/plan/{weekday}")
async def api_update_plan(
    weekday: str,
    payload: dict[str, Any] = Body(...),
    store: TaskStore = Depends(session_store),
) -> dict[str, Any]:
    enabled = payload.get("enabled")
    if enabled is not None and not isinstance(enabled, bool):
        raise HTTPException(status_code=400, detail="enabled must be a boolean")
    try:
        row = store.update_plan_row(
            weekday,
            enabled=enabled,
            part=payload.get("part"),
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"ok": True, "weekday": weekday, "row": row.to_dict()}
