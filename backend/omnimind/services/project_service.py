"""Project service — owner-scoped CRUD, task rollups and status stats."""

import logging
from datetime import datetime, timezone

from sqlalchemy import select, func, case, delete
from sqlalchemy.ext.asyncio import AsyncSession

from omnimind.core.database import query, isoformat, as_utc
from omnimind.models.project import Project
from omnimind.models.task import Task
from omnimind.models.user import User

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "created_at": Project.created_at,
    "updated_at": Project.updated_at,
    "due_date": Project.due_date,
    "name": Project.name,
}


class ProjectServiceError(Exception):
    pass


async def list_projects(
    db: AsyncSession,
    user: User,
    status: str | None = None,
    sort: str = "created_at",
    order: str = "desc",
) -> list[dict]:
    """List the user's projects with task totals."""
    completed = func.coalesce(func.sum(case((Task.status == "completed", 1), else_=0)), 0)
    stmt = (
        select(Project, func.count(Task.id), completed)
        .outerjoin(Task, Task.project_id == Project.id)
        .where(Project.user_id == user.id)
        .group_by(Project.id)
    )
    if status:
        stmt = stmt.where(Project.status == status)

    column = SORT_COLUMNS.get(sort, Project.created_at)
    stmt = stmt.order_by(column.asc() if order == "asc" else column.desc())

    result = await db.execute(stmt)
    projects = []
    for project, task_count, completed_tasks in result.all():
        data = _serialize_project(project)
        data["task_count"] = int(task_count or 0)
        data["completed_tasks"] = int(completed_tasks or 0)
        projects.append(data)
    return projects


async def get_project_stats(db: AsyncSession, user: User) -> list[dict]:
    rows = await query(
        db,
        """
        SELECT status,
               COUNT(*) AS count,
               COUNT(CASE WHEN due_date < :now THEN 1 END) AS overdue
        FROM projects
        WHERE user_id = :user_id
        GROUP BY status
        """,
        {"user_id": user.id, "now": datetime.now(timezone.utc)},
    )
    return [
        {"status": r["status"], "count": int(r["count"]), "overdue": int(r["overdue"])}
        for r in rows
    ]


async def _get_owned(db: AsyncSession, user: User, project_id: str) -> Project:
    result = await db.execute(
        select(Project).where(Project.id == project_id, Project.user_id == user.id)
    )
    project = result.scalar_one_or_none()
    if not project:
        raise ProjectServiceError("Project not found")
    return project


async def get_project(db: AsyncSession, user: User, project_id: str) -> dict:
    """Get a project and a short listing of its tasks."""
    project = await _get_owned(db, user, project_id)

    result = await db.execute(
        select(Task)
        .where(Task.project_id == project.id)
        .order_by(Task.created_at.asc())
    )
    data = _serialize_project(project)
    data["tasks"] = [
        {
            "id": t.id,
            "title": t.title,
            "status": t.status,
            "priority": t.priority,
            "due_date": isoformat(t.due_date),
        }
        for t in result.scalars().all()
    ]
    return data


async def create_project(
    db: AsyncSession,
    user: User,
    name: str,
    description: str | None = None,
    color: str = "#3B82F6",
    icon: str = "📋",
    due_date: datetime | None = None,
    status: str = "active",
) -> dict:
    project = Project(
        user_id=user.id,
        name=name,
        description=description,
        color=color,
        icon=icon,
        due_date=as_utc(due_date),
        status=status,
    )
    db.add(project)
    await db.commit()
    await db.refresh(project)
    logger.info("Project created: %s by user %s", project.id, user.id)
    return _serialize_project(project)


async def update_project(
    db: AsyncSession, user: User, project_id: str, updates: dict
) -> dict:
    """Apply an already allow-listed set of field updates."""
    project = await _get_owned(db, user, project_id)
    for key, value in updates.items():
        if key == "due_date":
            value = as_utc(value)
        setattr(project, key, value)
    project.updated_at = datetime.now(timezone.utc)

    await db.commit()
    await db.refresh(project)
    return _serialize_project(project)


async def delete_project(db: AsyncSession, user: User, project_id: str) -> None:
    """Delete a project; its tasks go with it through the FK cascade."""
    result = await db.execute(
        delete(Project)
        .where(Project.id == project_id, Project.user_id == user.id)
        .returning(Project.id)
    )
    deleted = result.scalar_one_or_none()
    if not deleted:
        raise ProjectServiceError("Project not found")
    await db.commit()
    logger.info("Project deleted: %s by user %s", project_id, user.id)


def _serialize_project(project: Project) -> dict:
    return {
        "id": project.id,
        "user_id": project.user_id,
        "name": project.name,
        "description": project.description,
        "status": project.status,
        "color": project.color,
        "icon": project.icon,
        "due_date": isoformat(project.due_date),
        "created_at": isoformat(project.created_at),
        "updated_at": isoformat(project.updated_at),
    }
