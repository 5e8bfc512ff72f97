from typing import Any, Dict, List, Optional

from tasklist.cache.decorators import async_cached, async_cached_expire
from tasklist.models import TaskCreate, TaskUpdate


class TaskService:
    @staticmethod
    async def create_task(task_data: TaskCreate, conn) -> Dict[str, Any]:
        return await conn.tasks.create(task_data.model_dump())

    @staticmethod
    async def get_all_tasks(conn, skip: int = 0, limit: int = 100) -> List[Dict[str, Any]]:
        return await conn.tasks.find(skip=skip, limit=limit)

    @staticmethod
    @async_cached(lambda task_id, *_, **__: f"task:{task_id}", l2_ttl=120)
    async def get_task(task_id: str, conn) -> Optional[Dict[str, Any]]:
        return await conn.tasks.find_by_id(task_id)

    @staticmethod
    @async_cached_expire(lambda task_id, *_, **__: f"task:{task_id}")
    async def update_task(task_id: str, task_data: TaskUpdate, conn) -> Optional[Dict[str, Any]]:
        update_data = task_data.model_dump(exclude_unset=True)
        # title is required on the stored document; an explicit null leaves it as is
        if update_data.get("title", "") is None:
            del update_data["title"]
        if not update_data:
            return await conn.tasks.find_by_id(task_id)
        return await conn.tasks.find_by_id_and_update(task_id, update_data)

    @staticmethod
    @async_cached_expire(lambda task_id, *_, **__: f"task:{task_id}")
    async def delete_task(task_id: str, conn) -> bool:
        deleted = await conn.tasks.find_by_id_and_delete(task_id)
        return deleted is not None
