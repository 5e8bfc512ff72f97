import logging

from fastapi import APIRouter, HTTPException, Query, status

from tasklist.core.exceptions import OperationError
from tasklist.database import DbDep
from tasklist.models import TaskCreate, TaskResponse, TaskUpdate
from tasklist.services.task_service import TaskService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["tasks"])


def _not_found(task_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Task with id {task_id} not found",
    )


def _failed(action: str, e: OperationError) -> HTTPException:
    logger.error("Failed to %s task: %s", action, e)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action} task",
    )


@router.get("", response_model=list[TaskResponse])
async def get_tasks(
    db: DbDep,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=100),
):
    try:
        return await TaskService.get_all_tasks(db, skip, limit)
    except OperationError as e:
        raise _failed("list", e)


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(task_data: TaskCreate, db: DbDep):
    """Create a new task"""
    try:
        return await TaskService.create_task(task_data, db)
    except OperationError as e:
        raise _failed("create", e)


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(task_id: str, db: DbDep):
    """Get a specific task by ID"""
    try:
        task = await TaskService.get_task(task_id, db)
    except OperationError as e:
        raise _failed("fetch", e)

    if not task:
        raise _not_found(task_id)
    return task


@router.api_route("/{task_id}", methods=["PUT", "PATCH"], response_model=TaskResponse)
async def update_task(task_id: str, task_data: TaskUpdate, db: DbDep):
    """Update the supplied fields of a task"""
    try:
        task = await TaskService.update_task(task_id, task_data, db)
    except OperationError as e:
        raise _failed("update", e)

    if not task:
        raise _not_found(task_id)
    return task


@router.delete("/{task_id}")
async def delete_task(task_id: str, db: DbDep):
    """Delete a task"""
    try:
        deleted = await TaskService.delete_task(task_id, db)
    except OperationError as e:
        raise _failed("delete", e)

    if not deleted:
        raise _not_found(task_id)
    return {"message": "Task deleted"}
