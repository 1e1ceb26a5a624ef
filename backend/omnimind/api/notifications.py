"""Notification API endpoints: inbox, read state and delivery preferences."""

import html
from datetime import datetime
from typing import Literal

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from omnimind.api.deps import get_email_service, send_email_quietly
from omnimind.core.database import get_db
from omnimind.core.security import get_current_user
from omnimind.models.user import User
from omnimind.services.email_service import EmailService, SafeHTML
from omnimind.services.notification_service import (
    list_notifications,
    create_notification,
    send_test_notification,
    mark_as_read,
    mark_all_as_read,
    delete_notification,
    clear_all_notifications,
    get_preferences,
    update_preferences,
    email_channel_enabled,
    NotificationServiceError,
)

router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])

NotificationType = Literal["info", "warning", "error", "reminder", "achievement", "system", "test"]


# --- Schemas ---

class CreateNotificationRequest(BaseModel):
    type: NotificationType
    title: str = Field(min_length=1, max_length=255)
    message: str = Field(min_length=1, max_length=1000)
    priority: Literal["low", "medium", "high"] = "medium"
    action_url: str | None = Field(default=None, max_length=2048)
    metadata: dict = {}
    scheduled_for: datetime | None = None


class UpdatePreferencesRequest(BaseModel):
    model_config = {"extra": "forbid"}

    notification_settings: dict | None = None
    ai_preferences: dict | None = None
    theme: Literal["light", "dark", "system"] | None = None


# --- Routes ---

@router.get("")
async def api_list_notifications(
    read: bool | None = Query(None),
    type: NotificationType | None = Query(None),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await list_notifications(db, user, read=read, type=type, limit=limit, offset=offset)
    return {"success": True, **result}


@router.post("", status_code=status.HTTP_201_CREATED)
async def api_create_notification(
    body: CreateNotificationRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    notification = await create_notification(db, user.id, **body.model_dump())
    return {"success": True, "notification": notification}


@router.get("/preferences")
async def api_get_preferences(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"success": True, "preferences": await get_preferences(db, user.id)}


@router.put("/preferences")
async def api_update_preferences(
    body: UpdatePreferencesRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    preferences = await update_preferences(db, user, body.model_dump(exclude_unset=True))
    return {"success": True, "preferences": preferences}


@router.post("/test")
async def api_test_notification(
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
):
    """Create a test notification, and email it when the email channel is on."""
    notification = await send_test_notification(db, user)

    preferences = await get_preferences(db, user.id)
    if email_service.enabled and email_channel_enabled(preferences):
        content = SafeHTML(
            f"<h3>{html.escape(notification['title'])}</h3>"
            f"<p>{html.escape(notification['message'])}</p>"
        )
        background_tasks.add_task(
            send_email_quietly,
            email_service.send_custom_notification,
            user.email,
            notification["title"],
            content,
            what="Test notification",
        )

    return {
        "success": True,
        "notification": notification,
        "message": "Test notification sent successfully",
    }


@router.patch("/read-all")
async def api_mark_all_read(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await mark_all_as_read(db, user)
    return {"success": True, "message": "All notifications marked as read"}


@router.delete("/clear-all")
async def api_clear_all(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await clear_all_notifications(db, user)
    return {"success": True, "message": "All notifications cleared"}


@router.patch("/{notification_id}/read")
async def api_mark_read(
    notification_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        notification = await mark_as_read(db, user, notification_id)
    except NotificationServiceError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "notification": notification}


@router.delete("/{notification_id}")
async def api_delete_notification(
    notification_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        await delete_notification(db, user, notification_id)
    except NotificationServiceError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "message": "Notification deleted successfully"}
