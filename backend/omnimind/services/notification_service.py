"""Notification service — in-app notifications and per-user preferences."""

import copy
import logging
from datetime import datetime, timezone

from sqlalchemy import select, func, update, delete
from sqlalchemy.ext.asyncio import AsyncSession

from omnimind.core.database import isoformat, as_utc
from omnimind.models.notification import (
    Notification,
    UserPreferences,
    DEFAULT_NOTIFICATION_SETTINGS,
    DEFAULT_AI_PREFERENCES,
)
from omnimind.models.user import User

logger = logging.getLogger(__name__)

TEST_NOTIFICATION = {
    "type": "test",
    "title": "Test Notification",
    "message": "This is a test notification from OmniMind.",
    "priority": "medium",
    "action_url": "/dashboard",
}


class NotificationServiceError(Exception):
    pass


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

async def list_notifications(
    db: AsyncSession,
    user: User,
    read: bool | None = None,
    type: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> dict:
    stmt = select(Notification).where(Notification.user_id == user.id)
    if read is not None:
        stmt = stmt.where(Notification.read == read)
    if type:
        stmt = stmt.where(Notification.type == type)
    stmt = stmt.order_by(Notification.created_at.desc()).limit(limit).offset(offset)

    result = await db.execute(stmt)
    notifications = [_serialize_notification(n) for n in result.scalars().all()]

    unread = await db.execute(
        select(func.count(Notification.id)).where(
            Notification.user_id == user.id, Notification.read.is_(False)
        )
    )
    return {"notifications": notifications, "unreadCount": unread.scalar() or 0}


async def create_notification(
    db: AsyncSession,
    user_id: str,
    type: str,
    title: str,
    message: str,
    priority: str = "medium",
    action_url: str | None = None,
    metadata: dict | None = None,
    scheduled_for: datetime | None = None,
) -> dict:
    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        priority=priority,
        action_url=action_url,
        meta=metadata or {},
        scheduled_for=as_utc(scheduled_for),
    )
    db.add(notification)
    await db.commit()
    await db.refresh(notification)
    return _serialize_notification(notification)


async def send_test_notification(db: AsyncSession, user: User) -> dict:
    notification = await create_notification(db, user.id, **TEST_NOTIFICATION)
    logger.info("Test notification sent to user %s", user.id)
    return notification


async def mark_as_read(db: AsyncSession, user: User, notification_id: str) -> dict:
    result = await db.execute(
        select(Notification).where(
            Notification.id == notification_id, Notification.user_id == user.id
        )
    )
    notification = result.scalar_one_or_none()
    if not notification:
        raise NotificationServiceError("Notification not found")

    notification.read = True
    await db.commit()
    await db.refresh(notification)
    return _serialize_notification(notification)


async def mark_all_as_read(db: AsyncSession, user: User) -> int:
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user.id, Notification.read.is_(False))
        .values(read=True)
    )
    await db.commit()
    return result.rowcount


async def delete_notification(db: AsyncSession, user: User, notification_id: str) -> None:
    result = await db.execute(
        delete(Notification)
        .where(Notification.id == notification_id, Notification.user_id == user.id)
        .returning(Notification.id)
    )
    if not result.scalar_one_or_none():
        raise NotificationServiceError("Notification not found")
    await db.commit()


async def clear_all_notifications(db: AsyncSession, user: User) -> int:
    result = await db.execute(delete(Notification).where(Notification.user_id == user.id))
    await db.commit()
    return result.rowcount


# ---------------------------------------------------------------------------
# Preferences
# ---------------------------------------------------------------------------

def default_preferences() -> dict:
    return {
        "notification_settings": copy.deepcopy(DEFAULT_NOTIFICATION_SETTINGS),
        "ai_preferences": copy.deepcopy(DEFAULT_AI_PREFERENCES),
        "theme": "light",
    }


async def get_preferences(db: AsyncSession, user_id: str) -> dict:
    """Stored preferences, or the defaults when the user has never saved any."""
    result = await db.execute(select(UserPreferences).where(UserPreferences.user_id == user_id))
    prefs = result.scalar_one_or_none()
    if not prefs:
        return default_preferences()
    return _serialize_preferences(prefs)


async def update_preferences(db: AsyncSession, user: User, updates: dict) -> dict:
    """Upsert preferences; sections that are omitted keep their stored value."""
    result = await db.execute(select(UserPreferences).where(UserPreferences.user_id == user.id))
    prefs = result.scalar_one_or_none()
    if not prefs:
        defaults = default_preferences()
        prefs = UserPreferences(user_id=user.id, **defaults)
        db.add(prefs)

    for key in ("notification_settings", "ai_preferences", "theme"):
        if updates.get(key) is not None:
            setattr(prefs, key, updates[key])
    prefs.updated_at = datetime.now(timezone.utc)

    await db.commit()
    await db.refresh(prefs)
    return _serialize_preferences(prefs)


def email_channel_enabled(preferences: dict) -> bool:
    return bool(preferences.get("notification_settings", {}).get("email", True))


# ---------------------------------------------------------------------------
# Serializers
# ---------------------------------------------------------------------------

def _serialize_notification(n: Notification) -> dict:
    return {
        "id": n.id,
        "user_id": n.user_id,
        "type": n.type,
        "title": n.title,
        "message": n.message,
        "priority": n.priority,
        "read": n.read,
        "action_url": n.action_url,
        "metadata": n.meta or {},
        "scheduled_for": isoformat(n.scheduled_for),
        "sent_at": isoformat(n.sent_at),
        "created_at": isoformat(n.created_at),
    }


def _serialize_preferences(prefs: UserPreferences) -> dict:
    return {
        "notification_settings": prefs.notification_settings,
        "ai_preferences": prefs.ai_preferences,
        "theme": prefs.theme,
        "updated_at": isoformat(prefs.updated_at),
    }
