"""Meetings API: meeting records and transcript summaries."""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from omnimind.api.deps import get_ai_service
from omnimind.core.database import get_db, as_utc
from omnimind.core.security import get_current_user
from omnimind.models.user import User
from omnimind.services.ai_service import AIService, AIServiceError
from omnimind.services.meeting_service import (
    list_meetings,
    get_meeting,
    create_meeting,
    delete_meeting,
    summarize_meeting,
    MeetingServiceError,
)

router = APIRouter(prefix="/api/v1/meetings", tags=["meetings"])


# --- Schemas ---

class CreateMeetingRequest(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=5000)
    start_time: datetime
    end_time: datetime
    source: str | None = Field(default="manual", max_length=50)
    source_id: str | None = Field(default=None, max_length=255)
    transcript: str | None = Field(default=None, max_length=50000)
    participants: list[str] = []
    location: str | None = None

    @model_validator(mode="after")
    def check_times(self):
        if as_utc(self.end_time) < as_utc(self.start_time):
            raise ValueError("end_time must not be before start_time")
        return self


# --- Routes ---

@router.get("")
async def api_list_meetings(
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    meetings = await list_meetings(db, user, start_date=start_date, end_date=end_date)
    return {"success": True, "meetings": meetings, "count": len(meetings)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def api_create_meeting(
    body: CreateMeetingRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"success": True, "meeting": await create_meeting(db, user, **body.model_dump())}


@router.get("/{meeting_id}")
async def api_get_meeting(
    meeting_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        meeting = await get_meeting(db, user, meeting_id)
    except MeetingServiceError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "meeting": meeting}


@router.delete("/{meeting_id}")
async def api_delete_meeting(
    meeting_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        await delete_meeting(db, user, meeting_id)
    except MeetingServiceError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "message": "Meeting deleted successfully"}


@router.post("/{meeting_id}/summarize")
async def api_summarize_meeting(
    meeting_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ai_service: AIService = Depends(get_ai_service),
):
    """Summarize the stored transcript and keep the summary on the meeting."""
    try:
        meeting = await summarize_meeting(db, user, meeting_id, ai_service)
    except MeetingServiceError as e:
        code = 404 if "not found" in str(e) else 400
        raise HTTPException(status_code=code, detail=str(e))
    except AIServiceError:
        raise HTTPException(status_code=500, detail="Failed to summarize meeting")
    return {"success": True, "meeting": meeting}
