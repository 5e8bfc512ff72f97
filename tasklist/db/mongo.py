from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING, AsyncMongoClient, ReturnDocument
from pymongo.errors import PyMongoError

from tasklist.core.config import Settings
from tasklist.core.exceptions import OperationError
from tasklist.db.documents import now_utc, parse_object_id, to_task

logger = logging.getLogger(__name__)


class MongoTaskCollection:
    def __init__(self, collection):
        self._col = collection

    async def find(self, skip: int = 0, limit: int = 100) -> List[Dict[str, Any]]:
        try:
            cursor = self._col.find({}).sort([("created_at", DESCENDING), ("_id", DESCENDING)])
            docs = await cursor.skip(skip).limit(limit).to_list()
        except PyMongoError as e:
            raise OperationError(f"find failed: {e}", operation="find") from e
        return [to_task(d) for d in docs]

    async def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        ts = now_utc()
        d = dict(data)
        d.update({"created_at": ts, "updated_at": ts})
        try:
            result = await self._col.insert_one(d)
        except PyMongoError as e:
            raise OperationError(f"insert failed: {e}", operation="create") from e
        d["_id"] = result.inserted_id
        return to_task(d)

    async def find_by_id(self, task_id: str) -> Optional[Dict[str, Any]]:
        oid = parse_object_id(task_id)
        if oid is None:
            return None
        try:
            return to_task(await self._col.find_one({"_id": oid}))
        except PyMongoError as e:
            raise OperationError(f"find_one failed: {e}", operation="find_by_id") from e

    async def find_by_id_and_update(
        self, task_id: str, patch: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        oid = parse_object_id(task_id)
        if oid is None:
            return None
        p = dict(patch)
        p["updated_at"] = now_utc()
        try:
            doc = await self._col.find_one_and_update(
                {"_id": oid},
                {"$set": p},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            raise OperationError(
                f"find_one_and_update failed: {e}", operation="find_by_id_and_update"
            ) from e
        return to_task(doc)

    async def find_by_id_and_delete(self, task_id: str) -> Optional[Dict[str, Any]]:
        oid = parse_object_id(task_id)
        if oid is None:
            return None
        try:
            return to_task(await self._col.find_one_and_delete({"_id": oid}))
        except PyMongoError as e:
            raise OperationError(
                f"find_one_and_delete failed: {e}", operation="find_by_id_and_delete"
            ) from e


class MongoConnection:
    def __init__(self, client: AsyncMongoClient, db):
        self.client = client
        self.db = db
        self.name = db.name
        self.tasks = MongoTaskCollection(db.tasks)

    async def ping(self) -> bool:
        try:
            await self.client.admin.command("ping")
            return True
        except PyMongoError as e:
            logger.warning("Mongo ping failed: %s", e)
            return False

    async def ensure_indexes(self) -> None:
        await self.db.tasks.create_index([("created_at", DESCENDING)])

    async def close(self) -> None:
        await self.client.close()


async def connect_mongo(uri: str, settings: Settings) -> MongoConnection:
    """Open a client and verify the server answers before handing it out."""
    client = AsyncMongoClient(
        uri,
        serverSelectionTimeoutMS=settings.mongodb_timeout_ms,
        tz_aware=True,
    )
    try:
        await client.admin.command("ping")
    except PyMongoError:
        await client.close()
        raise
    db = client.get_default_database(default=settings.mongodb_db)
    return MongoConnection(client, db)
