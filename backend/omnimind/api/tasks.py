"""Task API endpoints: task management, filtering and upcoming deadlines."""

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from omnimind.core.database import get_db
from omnimind.core.security import get_current_user
from omnimind.models.user import User
from omnimind.services.task_service import (
    list_tasks,
    get_upcoming_tasks,
    get_task,
    create_task,
    update_task,
    complete_task,
    delete_task,
    TaskServiceError,
)

router = APIRouter(prefix="/api/v1/tasks", tags=["tasks"])

TaskStatus = Literal["todo", "in_progress", "completed", "blocked", "cancelled"]
Priority = Literal["low", "medium", "high"]


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class CreateTaskRequest(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=5000)
    project_id: str | None = None
    status: TaskStatus = "todo"
    priority: Priority = "medium"
    due_date: datetime | None = None
    estimated_duration: int | None = Field(default=None, ge=1, le=1440)
    tags: list[str] = []


class UpdateTaskRequest(BaseModel):
    model_config = {"extra": "forbid"}

    title: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=5000)
    project_id: str | None = None
    status: TaskStatus | None = None
    priority: Priority | None = None
    due_date: datetime | None = None
    estimated_duration: int | None = Field(default=None, ge=1, le=1440)
    actual_duration: int | None = Field(default=None, ge=0)
    tags: list[str] | None = None

    @model_validator(mode="before")
    @classmethod
    def reject_null_required(cls, data):
        if isinstance(data, dict):
            for key in ("title", "status", "priority"):
                if key in data and data[key] is None:
                    raise ValueError(f"{key} cannot be null")
        return data


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.get("")
async def api_list_tasks(
    project_id: str | None = Query(None),
    status: TaskStatus | None = Query(None),
    priority: Priority | None = Query(None),
    due_date_from: datetime | None = Query(None),
    due_date_to: datetime | None = Query(None),
    sort: Literal["created_at", "updated_at", "due_date", "title", "priority"] = Query("due_date"),
    order: Literal["asc", "desc"] = Query("asc"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List tasks for the current user, filtered and paginated."""
    result = await list_tasks(
        db,
        user,
        project_id=project_id,
        status=status,
        priority=priority,
        due_date_from=due_date_from,
        due_date_to=due_date_to,
        sort=sort,
        order=order,
        page=page,
        limit=limit,
    )
    return {"success": True, **result}


@router.get("/upcoming")
async def api_upcoming_tasks(
    days: int = Query(7, ge=1, le=90),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Open tasks due in the next `days` days."""
    return {"success": True, "tasks": await get_upcoming_tasks(db, user, days=days)}


@router.get("/{task_id}")
async def api_get_task(
    task_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        task = await get_task(db, user, task_id)
    except TaskServiceError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "task": task}


@router.post("", status_code=status.HTTP_201_CREATED)
async def api_create_task(
    body: CreateTaskRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        task = await create_task(db, user, **body.model_dump())
    except TaskServiceError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "task": task}


@router.put("/{task_id}")
async def api_update_task(
    task_id: str,
    body: UpdateTaskRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    updates = body.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No valid fields to update")
    try:
        task = await update_task(db, user, task_id, updates)
    except TaskServiceError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "task": task}


@router.patch("/{task_id}/complete")
async def api_complete_task(
    task_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Mark a task as completed."""
    try:
        task = await complete_task(db, user, task_id)
    except TaskServiceError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "task": task}


@router.delete("/{task_id}")
async def api_delete_task(
    task_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        await delete_task(db, user, task_id)
    except TaskServiceError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "message": "Task deleted successfully"}
