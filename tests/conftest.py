"""Shared test fixtures for TaskPulse tests."""

from __future__ import annotations

import os
from pathlib import Path

import pytest
import yaml

from taskpulse.cache import LocalCache
from taskpulse.store import TaskStore

from fakes import NOW, RecordingRemote


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Create a temporary workspace with a settings file."""
    root = tmp_path / "workspace"
    root.mkdir(parents=True)

    settings = {
        "timezone": "Europe/Berlin",
        "remote_backend": "memory",
        "plan_save_delay_ms": 20,
        "log_level": "debug",
    }
    (root / "settings.yaml").write_text(
        yaml.dump(settings, default_flow_style=False), encoding="utf-8"
    )

    os.environ["TASKPULSE_ROOT"] = str(root)
    yield root
    if "TASKPULSE_ROOT" in os.environ:
        del os.environ["TASKPULSE_ROOT"]


@pytest.fixture
def remote() -> RecordingRemote:
    return RecordingRemote()


@pytest.fixture
def cache(tmp_path: Path) -> LocalCache:
    return LocalCache(tmp_path / "cache.json")


@pytest.fixture
def store(cache: LocalCache, remote: RecordingRemote) -> TaskStore:
    s = TaskStore(cache=cache, remote=remote, clock=lambda: NOW, plan_save_delay=0.05)
    s.load()
    return s
