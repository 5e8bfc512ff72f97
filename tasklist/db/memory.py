"""In-process document store selected by a ``memory://`` connection string."""

from __future__ import annotations

import copy
import threading
from typing import Any, Dict, List, Optional

from bson import ObjectId

from tasklist.core.config import Settings
from tasklist.db.documents import now_utc, parse_object_id, to_task


class MemoryTaskCollection:
    def __init__(self):
        self._docs: Dict[ObjectId, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    async def find(self, skip: int = 0, limit: int = 100) -> List[Dict[str, Any]]:
        with self._lock:
            docs = sorted(
                self._docs.values(), key=lambda d: (d["created_at"], d["_id"]), reverse=True
            )
            return [to_task(copy.deepcopy(d)) for d in docs[skip : skip + limit]]

    async def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            ts = now_utc()
            d = dict(data)
            d.update({"_id": ObjectId(), "created_at": ts, "updated_at": ts})
            self._docs[d["_id"]] = d
            return to_task(copy.deepcopy(d))

    async def find_by_id(self, task_id: str) -> Optional[Dict[str, Any]]:
        oid = parse_object_id(task_id)
        with self._lock:
            d = self._docs.get(oid)
            return to_task(copy.deepcopy(d)) if d else None

    async def find_by_id_and_update(
        self, task_id: str, patch: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        oid = parse_object_id(task_id)
        with self._lock:
            d = self._docs.get(oid)
            if not d:
                return None
            d.update(patch)
            d["updated_at"] = now_utc()
            return to_task(copy.deepcopy(d))

    async def find_by_id_and_delete(self, task_id: str) -> Optional[Dict[str, Any]]:
        oid = parse_object_id(task_id)
        with self._lock:
            return to_task(self._docs.pop(oid, None))


class MemoryConnection:
    """Connection handle backed by process memory; data lives as long as the handle."""

    def __init__(self, name: str):
        self.name = name
        self.tasks = MemoryTaskCollection()
        self.closed = False

    async def ping(self) -> bool:
        return not self.closed

    async def ensure_indexes(self) -> None:
        return None

    async def close(self) -> None:
        self.closed = True


async def connect_memory(uri: str, settings: Settings) -> MemoryConnection:
    name = uri.split("://", 1)[-1].strip("/") or settings.mongodb_db
    return MemoryConnection(name)
