"""Reminder service — due-task reminders and daily digest emails.

Run periodically from `scripts/send_reminders.py`.
"""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import select, func, case
from sqlalchemy.ext.asyncio import AsyncSession

from omnimind.core.database import as_utc
from omnimind.models.meeting import Meeting
from omnimind.models.notification import Notification
from omnimind.models.project import Project
from omnimind.models.task import Task
from omnimind.models.user import User
from omnimind.services.email_service import EmailService, EmailDeliveryError
from omnimind.services.notification_service import (
    create_notification,
    get_preferences,
    email_channel_enabled,
)
from omnimind.services.task_service import serialize_task

logger = logging.getLogger(__name__)

OPEN_STATUSES = ("todo", "in_progress", "blocked")


async def _already_reminded(db: AsyncSession, user_id: str, task_id: str) -> bool:
    result = await db.execute(
        select(func.count(Notification.id)).where(
            Notification.user_id == user_id,
            Notification.type == "reminder",
            Notification.meta["task_id"].as_string() == task_id,
        )
    )
    return (result.scalar() or 0) > 0


async def send_due_task_reminders(
    db: AsyncSession, email_service: EmailService, hours: int = 24
) -> dict:
    """Remind owners about open tasks due within `hours`. Each task is reminded once."""
    now = datetime.now(timezone.utc)
    result = await db.execute(
        select(Task, User, Project.name)
        .join(User, Task.user_id == User.id)
        .outerjoin(Project, Task.project_id == Project.id)
        .where(
            Task.status.in_(OPEN_STATUSES),
            Task.due_date.between(now, now + timedelta(hours=hours)),
        )
        .order_by(Task.due_date.asc())
    )
    rows = result.all()

    reminders = emails = 0
    for task, user, project_name in rows:
        if await _already_reminded(db, user.id, task.id):
            continue

        task_data = serialize_task(task)
        await create_notification(
            db,
            user.id,
            type="reminder",
            title=f"Task due soon: {task.title}",
            message=f"\"{task.title}\" is due {as_utc(task.due_date):%Y-%m-%d %H:%M} UTC.",
            priority=task.priority,
            action_url=f"/tasks/{task.id}",
            metadata={"task_id": task.id},
        )
        reminders += 1

        prefs = await get_preferences(db, user.id)
        if not (email_service.enabled and email_channel_enabled(prefs)):
            continue
        try:
            await email_service.send_task_reminder(user, task_data, project_name)
            emails += 1
        except EmailDeliveryError as e:
            logger.warning("Reminder email for task %s not sent: %s", task.id, e)

    logger.info("Task reminders: %d created, %d emailed", reminders, emails)
    return {"reminders": reminders, "emails": emails}


async def build_digest(db: AsyncSession, user: User) -> dict:
    """Collect the numbers and lists that go into one user's daily digest."""
    now = datetime.now(timezone.utc)
    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    day_end = day_start + timedelta(days=1)
    is_open = Task.status.in_(OPEN_STATUSES)

    stats = (
        await db.execute(
            select(
                func.count(Task.id),
                func.coalesce(func.sum(case((Task.status == "completed", 1), else_=0)), 0),
                func.coalesce(func.sum(case((is_open & (Task.due_date < now), 1), else_=0)), 0),
                func.coalesce(
                    func.sum(case((is_open & Task.due_date.between(day_start, day_end), 1), else_=0)), 0
                ),
            ).where(Task.user_id == user.id)
        )
    ).one()
    total, completed, overdue, due_today = (int(v or 0) for v in stats)

    rank = case((Task.priority == "high", 3), (Task.priority == "medium", 2), else_=1)
    top = await db.execute(
        select(Task, Project.name)
        .outerjoin(Project, Task.project_id == Project.id)
        .where(Task.user_id == user.id, is_open)
        .order_by(rank.desc(), Task.due_date.asc())
        .limit(5)
    )
    priorities = [
        {
            "title": t.title,
            "priority": t.priority,
            "project": project_name,
            "due_date": as_utc(t.due_date),
        }
        for t, project_name in top.all()
    ]

    todays = await db.execute(
        select(Meeting)
        .where(Meeting.user_id == user.id, Meeting.start_time.between(day_start, day_end))
        .order_by(Meeting.start_time.asc())
    )
    meetings = []
    for m in todays.scalars().all():
        start, end = as_utc(m.start_time), as_utc(m.end_time)
        meetings.append({
            "title": m.title,
            "time": f"{start:%H:%M} UTC",
            "duration": f"{int((end - start).total_seconds() // 60)} min",
        })

    return {
        "total_tasks": total,
        "completed_tasks": completed,
        "overdue_tasks": overdue,
        "due_today": due_today,
        "priorities": priorities,
        "meetings": meetings,
        "suggestions": [],
    }


async def send_daily_digests(db: AsyncSession, email_service: EmailService) -> dict:
    """Email a digest to every user who has the daily digest and email channel on."""
    if not email_service.enabled:
        logger.warning("Daily digests skipped: SMTP is not configured")
        return {"sent": 0, "skipped": 0, "failed": 0}

    users = (await db.execute(select(User).order_by(User.created_at))).scalars().all()
    sent = skipped = failed = 0
    for user in users:
        settings = (await get_preferences(db, user.id))["notification_settings"]
        if not (settings.get("dailyDigest", True) and settings.get("email", True)):
            skipped += 1
            continue

        digest = await build_digest(db, user)
        try:
            await email_service.send_daily_digest(user, digest)
            sent += 1
        except EmailDeliveryError as e:
            failed += 1
            logger.warning("Daily digest for user %s not sent: %s", user.id, e)

    logger.info("Daily digests: %d sent, %d skipped, %d failed", sent, skipped, failed)
    return {"sent": sent, "skipped": skipped, "failed": failed}
