"""Notification models: in-app notifications and per-user delivery preferences."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Boolean, DateTime, Text, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from omnimind.core.database import Base, JSONType


DEFAULT_NOTIFICATION_SETTINGS = {
    "email": True,
    "push": True,
    "sms": False,
    "dailyDigest": True,
    "quietHours": {"enabled": False, "start": "22:00", "end": "08:00"},
}

DEFAULT_AI_PREFERENCES = {
    "autoExtractTasks": True,
    "autoSchedule": True,
    "smartPrioritization": True,
    "language": "en",
}


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(String(50), nullable=False)  # info, warning, error, reminder, achievement, system, test
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[str] = mapped_column(String(20), default="medium")
    read: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    action_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    # "metadata" is reserved on declarative classes
    meta: Mapped[dict] = mapped_column("metadata", JSONType, default=dict)
    scheduled_for: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )


class UserPreferences(Base):
    __tablename__ = "user_preferences"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    notification_settings: Mapped[dict] = mapped_column(
        JSONType, default=lambda: dict(DEFAULT_NOTIFICATION_SETTINGS)
    )
    ai_preferences: Mapped[dict] = mapped_column(
        JSONType, default=lambda: dict(DEFAULT_AI_PREFERENCES)
    )
    theme: Mapped[str] = mapped_column(String(20), default="light")  # light, dark, system
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
