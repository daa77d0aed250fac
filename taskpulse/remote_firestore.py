"""Cloud Firestore implementation of the RemoteStore port."""

from __future__ import annotations

import logging
from typing import Any

from google.cloud import firestore

from taskpulse.models import SERVER_TIMESTAMP
from taskpulse.remote import SETTINGS_COLLECTION, SETTINGS_DOC, TASKS_COLLECTION, Document

logger = logging.getLogger(__name__)


def _resolve(data: Document) -> Document:
    return {k: (firestore.SERVER_TIMESTAMP if v is SERVER_TIMESTAMP else v) for k, v in data.items()}


class FirestoreRemoteStore:
    def __init__(self, client: Any | None = None, project: str | None = None) -> None:
        self._db = client if client is not None else firestore.AsyncClient(project=project)

    def _user(self, uid: str):
        return self._db.collection("users").document(uid)

    def _task_ref(self, uid: str, task_id: str):
        return self._user(uid).collection(TASKS_COLLECTION).document(task_id)

    def _settings_ref(self, uid: str):
        return self._user(uid).collection(SETTINGS_COLLECTION).document(SETTINGS_DOC)

    async def fetch_tasks(self, uid: str) -> list[tuple[str, Document]]:
        out = []
        async for snap in self._user(uid).collection(TASKS_COLLECTION).stream():
            out.append((snap.id, snap.to_dict() or {}))
        logger.debug("Fetched %d task documents uid=%s", len(out), uid)
        return out

    async def upsert_task(self, uid: str, task_id: str, data: Document) -> None:
        await self._task_ref(uid, task_id).set(_resolve(data), merge=True)

    async def update_task(self, uid: str, task_id: str, patch: Document) -> None:
        await self._task_ref(uid, task_id).update(_resolve(patch))

    async def delete_task(self, uid: str, task_id: str) -> None:
        await self._task_ref(uid, task_id).delete()

    async def read_settings(self, uid: str) -> Document | None:
        snap = await self._settings_ref(uid).get()
        if not snap.exists:
            return None
        return snap.to_dict()

    async def write_settings(self, uid: str, data: Document) -> None:
        await self._settings_ref(uid).set(_resolve(data), merge=True)
