"""Local durable cache: a JSON file holding one string value per key."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from taskpulse.fileio import read_json, write_json_atomic
from taskpulse.workspace import cache_path

logger = logging.getLogger(__name__)

TASKS_CACHE_KEY = "taskpulse_cache_v9"
PLAN_CACHE_KEY = "taskpulse_plan_v1"


class LocalCache:
    """Key-value mirror of the in-memory state, written atomically on every set."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path if path is not None else cache_path()

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, str]:
        try:
            data = read_json(self._path)
        except (OSError, ValueError):
            logger.warning("Local cache unreadable path=%s; starting empty", self._path, exc_info=True)
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def get(self, key: str) -> str | None:
        return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        write_json_atomic(self._path, data)

    def get_json(self, key: str) -> object | None:
        """Decode the JSON string stored under *key*; None when missing or malformed."""
        raw = self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Local cache key=%s holds malformed JSON; ignoring", key)
            return None

    def set_json(self, key: str, value: object) -> None:
        self.set(key, json.dumps(value, ensure_ascii=False))
