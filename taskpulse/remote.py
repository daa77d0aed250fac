"""Remote document store port and the in-process implementation.

Layout mirrors the hosted database: ``users/{uid}/todos/{task_id}`` holds one
document per task and ``users/{uid}/settings/main`` holds the weekly plan.
The core never queries; it always fetches the whole task collection.
"""

from __future__ import annotations

import copy
from typing import Any, Protocol

from taskpulse.models import SERVER_TIMESTAMP
from taskpulse.workspace import now_ms

TASKS_COLLECTION = "todos"
SETTINGS_COLLECTION = "settings"
SETTINGS_DOC = "main"

Document = dict[str, Any]


class RemoteStoreError(Exception):
    """Raised by remote stores when a document operation cannot be completed."""


class RemoteStore(Protocol):
    async def fetch_tasks(self, uid: str) -> list[tuple[str, Document]]: ...

    async def upsert_task(self, uid: str, task_id: str, data: Document) -> None: ...

    async def update_task(self, uid: str, task_id: str, patch: Document) -> None: ...

    async def delete_task(self, uid: str, task_id: str) -> None: ...

    async def read_settings(self, uid: str) -> Document | None: ...

    async def write_settings(self, uid: str, data: Document) -> None: ...


def _stamp(data: Document) -> Document:
    return {k: (now_ms() if v is SERVER_TIMESTAMP else v) for k, v in data.items()}


class MemoryRemoteStore:
    """Dict-backed RemoteStore for offline runs and tests.

    ``upsert`` and settings writes merge into existing documents; ``update``
    requires the document to exist, like the hosted store.
    """

    def __init__(self) -> None:
        self.tasks: dict[str, dict[str, Document]] = {}
        self.settings: dict[str, Document] = {}

    async def fetch_tasks(self, uid: str) -> list[tuple[str, Document]]:
        return [(tid, copy.deepcopy(doc)) for tid, doc in self.tasks.get(uid, {}).items()]

    async def upsert_task(self, uid: str, task_id: str, data: Document) -> None:
        docs = self.tasks.setdefault(uid, {})
        docs.setdefault(task_id, {}).update(_stamp(data))

    async def update_task(self, uid: str, task_id: str, patch: Document) -> None:
        docs = self.tasks.get(uid, {})
        if task_id not in docs:
            raise RemoteStoreError(f"No document users/{uid}/{TASKS_COLLECTION}/{task_id}")
        docs[task_id].update(_stamp(patch))

    async def delete_task(self, uid: str, task_id: str) -> None:
        self.tasks.get(uid, {}).pop(task_id, None)

    async def read_settings(self, uid: str) -> Document | None:
        doc = self.settings.get(uid)
        return copy.deepcopy(doc) if doc is not None else None

    async def write_settings(self, uid: str, data: Document) -> None:
        self.settings.setdefault(uid, {}).update(_stamp(data))
