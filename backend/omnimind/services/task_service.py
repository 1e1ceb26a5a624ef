"""Task service — owner-scoped CRUD, filtering, pagination and upcoming tasks."""

import logging
import math
from datetime import datetime, timedelta, timezone

from sqlalchemy import select, func, case
from sqlalchemy.ext.asyncio import AsyncSession

from omnimind.core.database import isoformat, as_utc
from omnimind.models.project import Project
from omnimind.models.task import Task
from omnimind.models.user import User

logger = logging.getLogger(__name__)

# priority sorts by urgency rather than alphabetically
_PRIORITY_RANK = case((Task.priority == "high", 3), (Task.priority == "medium", 2), else_=1)

SORT_COLUMNS = {
    "created_at": Task.created_at,
    "updated_at": Task.updated_at,
    "due_date": Task.due_date,
    "title": Task.title,
    "priority": _PRIORITY_RANK,
}


class TaskServiceError(Exception):
    pass


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

async def list_tasks(
    db: AsyncSession,
    user: User,
    project_id: str | None = None,
    status: str | None = None,
    priority: str | None = None,
    due_date_from: datetime | None = None,
    due_date_to: datetime | None = None,
    sort: str = "due_date",
    order: str = "asc",
    page: int = 1,
    limit: int = 50,
) -> dict:
    """List a page of tasks; the total counts every row matching the same filters."""
    filters = [Task.user_id == user.id]
    if project_id:
        filters.append(Task.project_id == project_id)
    if status:
        filters.append(Task.status == status)
    if priority:
        filters.append(Task.priority == priority)
    if due_date_from:
        filters.append(Task.due_date >= as_utc(due_date_from))
    if due_date_to:
        filters.append(Task.due_date <= as_utc(due_date_to))

    column = SORT_COLUMNS.get(sort, Task.due_date)
    stmt = (
        select(Task, Project.name, Project.color)
        .outerjoin(Project, Task.project_id == Project.id)
        .where(*filters)
        .order_by((column.asc() if order == "asc" else column.desc()).nulls_last(), Task.id)
        .limit(limit)
        .offset((page - 1) * limit)
    )
    result = await db.execute(stmt)
    tasks = [
        serialize_task(task, project_name=name, project_color=color)
        for task, name, color in result.all()
    ]

    total = (await db.execute(select(func.count(Task.id)).where(*filters))).scalar() or 0

    return {
        "tasks": tasks,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit),
        },
    }


async def get_upcoming_tasks(db: AsyncSession, user: User, days: int = 7) -> list[dict]:
    """Open tasks due between now and now + days, soonest first."""
    now = datetime.now(timezone.utc)
    stmt = (
        select(Task, Project.name)
        .outerjoin(Project, Task.project_id == Project.id)
        .where(
            Task.user_id == user.id,
            Task.status.not_in(("completed", "cancelled")),
            Task.due_date.between(now, now + timedelta(days=days)),
        )
        .order_by(Task.due_date.asc())
        .limit(20)
    )
    result = await db.execute(stmt)
    return [serialize_task(task, project_name=name) for task, name in result.all()]


async def _get_owned(db: AsyncSession, user: User, task_id: str) -> Task:
    result = await db.execute(
        select(Task).where(Task.id == task_id, Task.user_id == user.id)
    )
    task = result.scalar_one_or_none()
    if not task:
        raise TaskServiceError("Task not found")
    return task


async def _check_project(db: AsyncSession, user: User, project_id: str) -> None:
    result = await db.execute(
        select(Project.id).where(Project.id == project_id, Project.user_id == user.id)
    )
    if result.scalar_one_or_none() is None:
        raise TaskServiceError("Project not found")


async def get_task(db: AsyncSession, user: User, task_id: str) -> dict:
    return serialize_task(await _get_owned(db, user, task_id))


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

async def create_task(
    db: AsyncSession,
    user: User,
    title: str,
    description: str | None = None,
    project_id: str | None = None,
    status: str = "todo",
    priority: str = "medium",
    due_date: datetime | None = None,
    estimated_duration: int | None = None,
    tags: list[str] | None = None,
) -> dict:
    if project_id:
        await _check_project(db, user, project_id)

    task = Task(
        user_id=user.id,
        project_id=project_id,
        title=title,
        description=description,
        status=status,
        priority=priority,
        due_date=as_utc(due_date),
        estimated_duration=estimated_duration,
        tags=tags or [],
        completed_at=datetime.now(timezone.utc) if status == "completed" else None,
    )
    db.add(task)
    await db.commit()
    await db.refresh(task)
    logger.info("Task created: %s by user %s", task.id, user.id)
    return serialize_task(task)


async def update_task(db: AsyncSession, user: User, task_id: str, updates: dict) -> dict:
    """Apply an already allow-listed set of field updates.

    A move to `completed` stamps completed_at unless it is already set;
    any other status clears it.
    """
    task = await _get_owned(db, user, task_id)

    if updates.get("project_id"):
        await _check_project(db, user, updates["project_id"])

    for key, value in updates.items():
        if key == "due_date":
            value = as_utc(value)
        setattr(task, key, value)

    if "status" in updates:
        if updates["status"] == "completed":
            if task.completed_at is None:
                task.completed_at = datetime.now(timezone.utc)
        else:
            task.completed_at = None
    task.updated_at = datetime.now(timezone.utc)

    await db.commit()
    await db.refresh(task)
    return serialize_task(task)


async def complete_task(db: AsyncSession, user: User, task_id: str) -> dict:
    """Mark a task as completed, stamping completed_at with the current time."""
    task = await _get_owned(db, user, task_id)
    now = datetime.now(timezone.utc)
    task.status = "completed"
    task.completed_at = now
    task.updated_at = now

    await db.commit()
    await db.refresh(task)
    return serialize_task(task)


async def delete_task(db: AsyncSession, user: User, task_id: str) -> None:
    task = await _get_owned(db, user, task_id)
    await db.delete(task)
    await db.commit()
    logger.info("Task deleted: %s by user %s", task_id, user.id)


# ---------------------------------------------------------------------------
# Serializer
# ---------------------------------------------------------------------------

_UNSET = object()


def serialize_task(task: Task, project_name=_UNSET, project_color=_UNSET) -> dict:
    data = {
        "id": task.id,
        "user_id": task.user_id,
        "project_id": task.project_id,
        "title": task.title,
        "description": task.description,
        "status": task.status,
        "priority": task.priority,
        "due_date": isoformat(task.due_date),
        "completed_at": isoformat(task.completed_at),
        "estimated_duration": task.estimated_duration,
        "actual_duration": task.actual_duration,
        "tags": task.tags or [],
        "created_at": isoformat(task.created_at),
        "updated_at": isoformat(task.updated_at),
    }
    if project_name is not _UNSET:
        data["project_name"] = project_name
    if project_color is not _UNSET:
        data["project_color"] = project_color
    return data
