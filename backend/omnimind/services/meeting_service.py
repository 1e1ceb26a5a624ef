"""Meeting service — meeting records, transcripts and stored AI summaries."""

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from omnimind.core.database import isoformat, as_utc
from omnimind.models.meeting import Meeting
from omnimind.models.user import User

logger = logging.getLogger(__name__)


class MeetingServiceError(Exception):
    pass


async def list_meetings(
    db: AsyncSession,
    user: User,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> list[dict]:
    stmt = select(Meeting).where(Meeting.user_id == user.id)
    if start_date:
        stmt = stmt.where(Meeting.start_time >= as_utc(start_date))
    if end_date:
        stmt = stmt.where(Meeting.start_time <= as_utc(end_date))
    result = await db.execute(stmt.order_by(Meeting.start_time.asc()))
    return [_serialize_meeting(m) for m in result.scalars().all()]


async def _get_owned(db: AsyncSession, user_id: str, meeting_id: str) -> Meeting:
    result = await db.execute(
        select(Meeting).where(Meeting.id == meeting_id, Meeting.user_id == user_id)
    )
    meeting = result.scalar_one_or_none()
    if not meeting:
        raise MeetingServiceError("Meeting not found")
    return meeting


async def get_meeting(db: AsyncSession, user: User, meeting_id: str) -> dict:
    return _serialize_meeting(await _get_owned(db, user.id, meeting_id))


async def create_meeting(
    db: AsyncSession,
    user: User,
    title: str,
    start_time: datetime,
    end_time: datetime,
    description: str | None = None,
    source: str | None = "manual",
    source_id: str | None = None,
    transcript: str | None = None,
    participants: list[str] | None = None,
    location: str | None = None,
) -> dict:
    meeting = Meeting(
        user_id=user.id,
        title=title,
        description=description,
        start_time=as_utc(start_time),
        end_time=as_utc(end_time),
        source=source,
        source_id=source_id,
        transcript=transcript,
        participants=participants or [],
        location=location,
    )
    db.add(meeting)
    await db.commit()
    await db.refresh(meeting)
    logger.info("Meeting created: %s by user %s", meeting.id, user.id)
    return _serialize_meeting(meeting)


async def delete_meeting(db: AsyncSession, user: User, meeting_id: str) -> None:
    meeting = await _get_owned(db, user.id, meeting_id)
    await db.delete(meeting)
    await db.commit()


async def store_summary(db: AsyncSession, user_id: str, meeting_id: str, summary: dict) -> dict:
    """Write an AI summary and its action items onto a meeting the user owns."""
    meeting = await _get_owned(db, user_id, meeting_id)
    meeting.summary = summary.get("summary")
    meeting.action_items = summary.get("action_items") or []
    meeting.updated_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(meeting)
    return _serialize_meeting(meeting)


async def summarize_meeting(db: AsyncSession, user: User, meeting_id: str, ai_service) -> dict:
    """Summarize the stored transcript and keep the result on the meeting.

    Raises MeetingServiceError when the meeting is missing or has no
    transcript; AIServiceError propagates from the summarizer.
    """
    meeting = await _get_owned(db, user.id, meeting_id)
    if not meeting.transcript:
        raise MeetingServiceError("Meeting has no transcript")

    duration = _duration_minutes(meeting)
    summary = await ai_service.summarize_meeting(
        meeting.transcript, duration, meeting.participants or []
    )
    return await store_summary(db, user.id, meeting.id, summary)


def _duration_minutes(meeting: Meeting) -> int:
    start, end = as_utc(meeting.start_time), as_utc(meeting.end_time)
    return max(1, int((end - start).total_seconds() // 60))


def _serialize_meeting(m: Meeting) -> dict:
    return {
        "id": m.id,
        "user_id": m.user_id,
        "title": m.title,
        "description": m.description,
        "start_time": isoformat(m.start_time),
        "end_time": isoformat(m.end_time),
        "source": m.source,
        "source_id": m.source_id,
        "transcript": m.transcript,
        "summary": m.summary,
        "action_items": m.action_items or [],
        "participants": m.participants or [],
        "location": m.location,
        "created_at": isoformat(m.created_at),
        "updated_at": isoformat(m.updated_at),
    }
