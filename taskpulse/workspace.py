"""Workspace root, settings, clock and path helpers for TaskPulse."""

from __future__ import annotations

import os
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from taskpulse.fileio import read_yaml


VALID_BACKENDS = {"none", "memory", "firestore"}

DEFAULT_PLAN_SAVE_DELAY_MS = 450


def workspace_root() -> Path:
    """Get the workspace root directory (holds settings.yaml and the local cache)."""
    return Path(
        os.environ.get("TASKPULSE_ROOT", str(Path.home() / ".taskpulse"))
    ).expanduser().resolve()


# ── Settings ──────────────────────────────────────────────────


@dataclass
class Settings:
    timezone: str | None = None  # None: system local zone
    remote_backend: str = "none"  # none, memory, firestore
    firestore_project: str | None = None
    plan_save_delay_ms: int = DEFAULT_PLAN_SAVE_DELAY_MS
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Settings:
        if not d or not isinstance(d, dict):
            return cls()
        backend = str(d.get("remote_backend", "none") or "none").strip().lower()
        if backend not in VALID_BACKENDS:
            raise ValueError(f"Invalid remote_backend: {backend}")
        return cls(
            timezone=d.get("timezone") or None,
            remote_backend=backend,
            firestore_project=d.get("firestore_project") or None,
            plan_save_delay_ms=int(d.get("plan_save_delay_ms", DEFAULT_PLAN_SAVE_DELAY_MS)),
            log_level=str(d.get("log_level", "INFO")).upper(),
        )


def load_settings(root: Path | None = None) -> Settings:
    """Load settings.yaml into a Settings model (defaults when missing)."""
    return Settings.from_dict(read_yaml(settings_path(root)))


# ── Clock ─────────────────────────────────────────────────────


def resolve_timezone(name: str | None) -> ZoneInfo | None:
    """ZoneInfo for *name*, or None (system local zone) when unset or unknown."""
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return None


def get_user_timezone(root: Path | None = None) -> ZoneInfo | None:
    """Get the configured timezone, or None for the system local zone."""
    return resolve_timezone(load_settings(root).timezone)


def now_in(tz: ZoneInfo | None) -> datetime:
    if tz is None:
        return datetime.now().astimezone()
    return datetime.now(tz)


def now_local(root: Path | None = None) -> datetime:
    """Get current wall-clock datetime in the user's timezone."""
    return now_in(get_user_timezone(root))


def now_ms() -> int:
    """Milliseconds since the epoch."""
    return int(time.time() * 1000)


# ── Path helpers ──────────────────────────────────────────────

def settings_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "settings.yaml"


def cache_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "cache.json"


def log_dir(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "logs"
