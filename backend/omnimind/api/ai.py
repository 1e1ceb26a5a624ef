"""AI API endpoints: synchronous LLM helpers and the deferred job queue."""

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from omnimind.api.deps import get_ai_service
from omnimind.core.database import get_db
from omnimind.core.security import get_current_user
from omnimind.models.user import User
from omnimind.services.ai_service import AIService, AIServiceError

router = APIRouter(prefix="/api/v1/ai", tags=["ai"])

JobType = Literal["extract_tasks", "summarize_meeting", "optimize_schedule"]
JobStatus = Literal["pending", "processing", "completed", "failed"]


# --- Schemas ---

class ExtractTasksRequest(BaseModel):
    text: str = Field(min_length=10, max_length=10000)
    # The browser extension sends a bare source string
    context: dict | str | None = None


class SummarizeMeetingRequest(BaseModel):
    transcript: str = Field(min_length=50, max_length=50000)
    duration: int = Field(ge=1, le=480)
    participants: list[str] = []


class OptimizeScheduleRequest(BaseModel):
    tasks: list[dict] = Field(min_length=1)
    constraints: dict | None = None


class AnalyzeProductivityRequest(BaseModel):
    days: int = Field(default=30, ge=1, le=365)


class EmailResponseRequest(BaseModel):
    email_content: str = Field(min_length=1, max_length=20000)
    tone: str = Field(default="professional", max_length=50)


class QueueJobRequest(BaseModel):
    type: JobType
    input_data: dict


# --- Synchronous endpoints ---

@router.post("/extract-tasks")
async def api_extract_tasks(
    body: ExtractTasksRequest,
    user: User = Depends(get_current_user),
    ai_service: AIService = Depends(get_ai_service),
):
    """Extract actionable tasks from free text."""
    try:
        tasks = await ai_service.extract_tasks_from_text(body.text, body.context, user.timezone)
    except AIServiceError:
        raise HTTPException(status_code=500, detail="Failed to extract tasks")
    return {"success": True, "tasks": tasks}


@router.post("/summarize-meeting")
async def api_summarize_meeting(
    body: SummarizeMeetingRequest,
    user: User = Depends(get_current_user),
    ai_service: AIService = Depends(get_ai_service),
):
    try:
        summary = await ai_service.summarize_meeting(body.transcript, body.duration, body.participants)
    except AIServiceError:
        raise HTTPException(status_code=500, detail="Failed to summarize meeting")
    return {"success": True, "summary": summary}


@router.post("/optimize-schedule")
async def api_optimize_schedule(
    body: OptimizeScheduleRequest,
    user: User = Depends(get_current_user),
    ai_service: AIService = Depends(get_ai_service),
):
    try:
        schedule = await ai_service.optimize_schedule(body.tasks, body.constraints)
    except AIServiceError:
        raise HTTPException(status_code=500, detail="Failed to optimize schedule")
    return {"success": True, "schedule": schedule}


@router.post("/analyze-productivity")
async def api_analyze_productivity(
    body: AnalyzeProductivityRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ai_service: AIService = Depends(get_ai_service),
):
    try:
        insights = await ai_service.analyze_productivity_patterns(db, user.id, days=body.days)
    except AIServiceError:
        raise HTTPException(status_code=500, detail="Failed to analyze productivity patterns")
    return {"success": True, "insights": insights}


@router.post("/email-response")
async def api_email_response(
    body: EmailResponseRequest,
    user: User = Depends(get_current_user),
    ai_service: AIService = Depends(get_ai_service),
):
    try:
        response = await ai_service.generate_email_response(body.email_content, body.tone)
    except AIServiceError:
        raise HTTPException(status_code=500, detail="Failed to generate email response")
    return {"success": True, "response": response}


@router.get("/conflicts")
async def api_detect_conflicts(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ai_service: AIService = Depends(get_ai_service),
):
    """Look for clashes between upcoming tasks and meetings in the next 7 days."""
    try:
        analysis = await ai_service.detect_conflicts(db, user.id)
    except AIServiceError:
        raise HTTPException(status_code=500, detail="Failed to detect conflicts")
    return {"success": True, "analysis": analysis}


# --- Job queue ---

@router.post("/queue", status_code=status.HTTP_202_ACCEPTED)
async def api_queue_job(
    body: QueueJobRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ai_service: AIService = Depends(get_ai_service),
):
    """Queue an AI job; poll GET /queue/{id} for the result."""
    try:
        job = await ai_service.queue_ai_task(db, user.id, body.type, body.input_data)
    except AIServiceError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "job": job}


@router.get("/queue")
async def api_list_jobs(
    status: JobStatus | None = Query(None),
    limit: int = Query(50, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ai_service: AIService = Depends(get_ai_service),
):
    jobs = await ai_service.list_queue_entries(db, user.id, status=status, limit=limit)
    return {"success": True, "jobs": jobs}


@router.get("/queue/{job_id}")
async def api_get_job(
    job_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ai_service: AIService = Depends(get_ai_service),
):
    try:
        job = await ai_service.get_queue_entry(db, user.id, job_id)
    except AIServiceError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "job": job}
