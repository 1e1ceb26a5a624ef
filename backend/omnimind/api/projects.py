"""Project API endpoints."""

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from omnimind.core.database import get_db
from omnimind.core.security import get_current_user
from omnimind.models.user import User
from omnimind.services.project_service import (
    list_projects,
    get_project_stats,
    get_project,
    create_project,
    update_project,
    delete_project,
    ProjectServiceError,
)

router = APIRouter(prefix="/api/v1/projects", tags=["projects"])

ProjectStatus = Literal["active", "completed", "archived", "on_hold"]
HEX_COLOR = r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$"


# --- Schemas ---

class CreateProjectRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=5000)
    color: str = Field(default="#3B82F6", pattern=HEX_COLOR)
    icon: str = Field(default="📋", max_length=50)
    due_date: datetime | None = None
    status: ProjectStatus = "active"


class UpdateProjectRequest(BaseModel):
    model_config = {"extra": "forbid"}

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=5000)
    color: str | None = Field(default=None, pattern=HEX_COLOR)
    icon: str | None = Field(default=None, max_length=50)
    due_date: datetime | None = None
    status: ProjectStatus | None = None

    @model_validator(mode="before")
    @classmethod
    def reject_null_required(cls, data):
        if isinstance(data, dict):
            for key in ("name", "status", "color", "icon"):
                if key in data and data[key] is None:
                    raise ValueError(f"{key} cannot be null")
        return data


# --- Routes ---

@router.get("")
async def api_list_projects(
    status: ProjectStatus | None = Query(None),
    sort: Literal["created_at", "updated_at", "due_date", "name"] = Query("created_at"),
    order: Literal["asc", "desc"] = Query("desc"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    projects = await list_projects(db, user, status=status, sort=sort, order=order)
    return {"success": True, "projects": projects, "count": len(projects)}


@router.get("/stats")
async def api_project_stats(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"success": True, "stats": await get_project_stats(db, user)}


@router.get("/{project_id}")
async def api_get_project(
    project_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        project = await get_project(db, user, project_id)
    except ProjectServiceError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "project": project}


@router.post("", status_code=status.HTTP_201_CREATED)
async def api_create_project(
    body: CreateProjectRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    project = await create_project(db, user, **body.model_dump())
    return {"success": True, "project": project}


@router.put("/{project_id}")
async def api_update_project(
    project_id: str,
    body: UpdateProjectRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    updates = body.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No valid fields to update")
    try:
        project = await update_project(db, user, project_id, updates)
    except ProjectServiceError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "project": project}


@router.delete("/{project_id}")
async def api_delete_project(
    project_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        await delete_project(db, user, project_id)
    except ProjectServiceError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "message": "Project deleted successfully"}
