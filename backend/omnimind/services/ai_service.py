"""AI orchestration service — prompt construction, LLM calls and the AI job queue.

Synchronous endpoints call the `extract_*`/`summarize_*`/... methods directly.
Deferred work goes through `queue_ai_task`, which persists a row in
`ai_processing_queue` and processes it on a background asyncio task.

Job lifecycle::

    pending -> processing -> completed
                          -> failed -> processing -> ...   (while retry_count < max_retries)

Claims are conditional UPDATEs, so an in-memory retry and a recovery sweep
can never run the same job concurrently.
"""

import asyncio
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import select, update, or_, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from omnimind.core.database import isoformat, as_utc, query
from omnimind.integrations.anthropic_client import LLMError
from omnimind.models.ai_queue import AIProcessingQueueEntry, JOB_TYPES
from omnimind.models.task import Task
from omnimind.models.user import User
from omnimind.services.meeting_service import store_summary, MeetingServiceError

logger = logging.getLogger(__name__)

# Keys a job's input_data must carry, per job type
REQUIRED_INPUT = {
    "extract_tasks": ("text",),
    "summarize_meeting": ("transcript",),
    "optimize_schedule": ("tasks",),
}


class AIServiceError(Exception):
    pass


class ExtractionError(AIServiceError):
    pass


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

EXTRACT_SYSTEM_PROMPT = "You extract tasks from text and return valid JSON only."

EXTRACT_PROMPT = """You are an expert task extraction assistant. Extract actionable tasks from the following text.

Text: "{text}"

Context:
- Source: {source}
- Current Date: {today}
- User Timezone: {timezone}

Return a JSON object of the form {{"tasks": [...]}}. Each task should have:
- title (string): Clear, actionable task title
- description (string): More details about the task
- priority (string: "high", "medium", or "low"): Based on urgency and importance
- estimated_duration_minutes (number): Estimated time to complete
- due_date (string in ISO format): If mentioned, extract date. If not, null
- category (string): "work", "personal", "meeting", "email", "other"
- assignee (string): If mentioned, who should do it. Default to "me"

If no tasks are found, return {{"tasks": []}}.

Only return valid JSON. No other text."""

SUMMARIZE_SYSTEM_PROMPT = "You summarize meetings and extract action items. Return valid JSON only."

SUMMARIZE_PROMPT = """You are a meeting summarization expert. Summarize this meeting and extract action items.

Meeting Transcript:
\"\"\"
{transcript}
\"\"\"

Meeting Details:
- Duration: {duration} minutes
- Participants: {participants}
- Date: {today}

Provide a comprehensive summary in JSON format with:
- summary (string): 2-3 paragraph summary of key discussion points
- key_decisions (array): List of decisions made
- action_items (array of objects): Each with:
  * task (string): Action item description
  * assignee (string): Person responsible
  * due_date (string): Deadline in ISO format
  * priority (string: "high", "medium", "low")
- next_steps (array): What needs to happen next
- follow_up_meeting (object or null): If needed, with topic and suggested_date

Only return valid JSON. No other text."""

SCHEDULE_SYSTEM_PROMPT = "You are a scheduling optimization expert. Return valid JSON only."

SCHEDULE_PROMPT = """Optimize this schedule considering tasks and constraints.

Tasks (in JSON format):
{tasks}

Constraints:
- Available hours per day: {available_hours}
- Focus hours: {focus_hours}
- Breaks: {break_duration} lunch, {short_break} short breaks every hour
- Avoid scheduling: {avoid_times}
- User preferences: {preferences}

Create an optimized schedule for the next 7 days. Return JSON with:
- daily_schedule (array of objects for each day):
  * date (string)
  * tasks (array of scheduled tasks with start_time, end_time, and task_id)
  * total_hours (number)
  * focus_time_utilization (percentage)
- recommendations (array): Suggestions for better productivity
- warnings (array): If any tasks can't be scheduled

Only return valid JSON. No other text."""

PRODUCTIVITY_SYSTEM_PROMPT = "You are a productivity analyst. Return valid JSON only."

PRODUCTIVITY_PROMPT = """Analyze this productivity data and provide insights:

Task Data (in JSON):
{rows}

Analyze and return JSON with:
- patterns (object):
  * most_productive_days (array of day names)
  * average_completion_rate (percentage)
  * common_task_types (array)
  * time_estimation_accuracy (percentage)
  * priority_distribution (object with high/medium/low percentages)
- suggestions (array): Specific, actionable suggestions for improvement
- predicted_productivity_score (number 1-100)
- recommended_focus_times (array of best times to work based on patterns)

Only return valid JSON. No other text."""

EMAIL_SYSTEM_PROMPT = "You are an email writing assistant. Return valid JSON only."

EMAIL_PROMPT = """Generate a {tone} email response based on this email:

Email Content:
\"\"\"
{email_content}
\"\"\"

Generate a response that:
1. Acknowledges the email
2. Addresses any questions or requests
3. Provides necessary information
4. Suggests next steps if needed
5. Closes politely

Return JSON with:
- subject (string): Suggested subject line
- body (string): Complete email body
- key_points (array): Main points covered
- suggested_follow_up (string or null): If follow-up is needed

Only return valid JSON. No other text."""

CONFLICTS_SYSTEM_PROMPT = "You are a scheduling conflict detection system. Return valid JSON only."

CONFLICTS_PROMPT = """Analyze these upcoming items for conflicts and provide suggestions:

Upcoming Tasks:
{tasks}

Upcoming Meetings:
{meetings}

Analyze and return JSON with:
- conflicts (array of objects):
  * type (string): "time_conflict", "priority_conflict", "workload_conflict"
  * description (string)
  * items_involved (array of item IDs)
  * severity (string: "high", "medium", "low")
- suggestions (array of objects):
  * type (string): "reschedule", "delegate", "break_down", "prioritize"
  * description (string)
  * items_affected (array of item IDs)
  * estimated_benefit (string)
- workload_assessment (object):
  * total_hours_required (number)
  * available_hours (number, default 40)
  * overload_percentage (number)
  * recommended_adjustments (array)

Only return valid JSON. No other text."""


def _today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def _dumps(value: Any) -> str:
    return json.dumps(value, indent=2, default=str)


class AIService:
    def __init__(
        self,
        llm,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        max_retries: int = 3,
        retry_delay: float = 5.0,
        visibility_timeout: float = 300.0,
    ):
        self.llm = llm
        self.session_factory = session_factory
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.visibility_timeout = visibility_timeout
        self._tasks: set[asyncio.Task] = set()
        self._poller: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # LLM-backed operations
    # ------------------------------------------------------------------

    async def extract_tasks_from_text(
        self, text: str, context: dict | str | None = None, default_timezone: str = "UTC"
    ) -> list:
        # A bare string names the source (the browser extension sends one)
        if not isinstance(context, dict):
            context = {"source": context}
        prompt = EXTRACT_PROMPT.format(
            text=text,
            source=context.get("source") or "general",
            today=_today(),
            timezone=context.get("timezone") or default_timezone,
        )
        try:
            result = await self.llm.complete_json(
                EXTRACT_SYSTEM_PROMPT, prompt, temperature=0.1
            )
        except LLMError as e:
            logger.exception("Error extracting tasks")
            raise ExtractionError("Failed to extract tasks") from e

        if isinstance(result, list):
            return result
        if isinstance(result, dict) and isinstance(result.get("tasks"), list):
            return result["tasks"]
        logger.warning("Task extraction returned an unexpected shape: %s", type(result).__name__)
        raise ExtractionError("Failed to extract tasks")

    async def summarize_meeting(
        self, transcript: str, duration: int | None, participants: list[str] | None = None
    ) -> dict:
        prompt = SUMMARIZE_PROMPT.format(
            transcript=transcript,
            duration=duration or "unknown",
            participants=", ".join(participants or []),
            today=_today(),
        )
        return await self._complete_object(
            SUMMARIZE_SYSTEM_PROMPT, prompt, "Failed to summarize meeting", temperature=0.2
        )

    async def optimize_schedule(self, tasks: list, constraints: dict | None = None) -> dict:
        constraints = constraints or {}
        prompt = SCHEDULE_PROMPT.format(
            tasks=_dumps(tasks),
            available_hours=constraints.get("availableHours") or 8,
            focus_hours=constraints.get("focusHours") or "09:00-12:00",
            break_duration=constraints.get("breakDuration") or "30 minutes",
            short_break=constraints.get("shortBreak") or "5 minutes",
            avoid_times=constraints.get("avoidTimes") or "none",
            preferences=json.dumps(constraints.get("preferences") or {}),
        )
        return await self._complete_object(
            SCHEDULE_SYSTEM_PROMPT, prompt, "Failed to optimize schedule", temperature=0.3
        )

    async def analyze_productivity_patterns(
        self, db: AsyncSession, user_id: str, days: int = 30
    ) -> dict:
        since = datetime.now(timezone.utc) - timedelta(days=days)
        result = await db.execute(
            select(
                Task.created_at,
                Task.status,
                Task.priority,
                Task.estimated_duration,
                Task.actual_duration,
            )
            .where(Task.user_id == user_id, Task.created_at > since)
            .order_by(Task.created_at)
        )
        rows = []
        for created_at, status, priority, estimated, actual in result.all():
            created_at = as_utc(created_at)
            rows.append({
                "date": created_at.date().isoformat(),
                "status": status,
                "priority": priority,
                "estimated_duration": estimated,
                "actual_duration": actual,
                # 0 = Sunday
                "day_of_week": (created_at.weekday() + 1) % 7,
            })

        if not rows:
            return {"patterns": {}, "suggestions": []}

        return await self._complete_object(
            PRODUCTIVITY_SYSTEM_PROMPT,
            PRODUCTIVITY_PROMPT.format(rows=_dumps(rows)),
            "Failed to analyze productivity patterns",
            temperature=0.2,
            fast=True,
        )

    async def generate_email_response(self, email_content: str, tone: str = "professional") -> dict:
        return await self._complete_object(
            EMAIL_SYSTEM_PROMPT,
            EMAIL_PROMPT.format(tone=tone, email_content=email_content),
            "Failed to generate email response",
            temperature=0.7,
            fast=True,
        )

    async def detect_conflicts(self, db: AsyncSession, user_id: str) -> dict:
        now = datetime.now(timezone.utc)
        params = {"user_id": user_id, "now": now, "until": now + timedelta(days=7)}
        tasks = await query(
            db,
            """
            SELECT id, title, due_date, priority, estimated_duration
            FROM tasks
            WHERE user_id = :user_id
              AND status != 'completed'
              AND due_date BETWEEN :now AND :until
            """,
            params,
        )
        meetings = await query(
            db,
            """
            SELECT id, title, start_time, end_time
            FROM meetings
            WHERE user_id = :user_id
              AND start_time BETWEEN :now AND :until
            """,
            params,
        )
        return await self._complete_object(
            CONFLICTS_SYSTEM_PROMPT,
            CONFLICTS_PROMPT.format(tasks=_dumps(tasks), meetings=_dumps(meetings)),
            "Failed to detect conflicts",
            temperature=0.1,
        )

    async def _complete_object(
        self, system: str, prompt: str, error_message: str, *, temperature: float, fast: bool = False
    ) -> dict:
        try:
            result = await self.llm.complete_json(
                system, prompt, temperature=temperature, fast=fast
            )
        except LLMError as e:
            logger.exception(error_message)
            raise AIServiceError(error_message) from e
        if not isinstance(result, dict):
            logger.warning("%s: expected a JSON object, got %s", error_message, type(result).__name__)
            raise AIServiceError(error_message)
        return result

    # ------------------------------------------------------------------
    # Job queue
    # ------------------------------------------------------------------

    async def queue_ai_task(
        self, db: AsyncSession, user_id: str, type: str, input_data: dict
    ) -> dict:
        """Persist a pending job and start processing it in the background."""
        if type not in JOB_TYPES:
            raise AIServiceError(f"Unknown job type: {type}")
        missing = [key for key in REQUIRED_INPUT[type] if key not in input_data]
        if missing:
            raise AIServiceError(f"input_data is missing required field(s) for {type}: {', '.join(missing)}")

        entry = AIProcessingQueueEntry(user_id=user_id, type=type, input_data=input_data)
        db.add(entry)
        await db.commit()
        await db.refresh(entry)
        logger.info("AI job queued: %s (%s) for user %s", entry.id, type, user_id)

        self._spawn(self.process_queued_task(entry.id))
        return serialize_queue_entry(entry)

    def _claimable(self):
        return or_(
            AIProcessingQueueEntry.status == "pending",
            and_(
                AIProcessingQueueEntry.status == "failed",
                AIProcessingQueueEntry.retry_count < self.max_retries,
            ),
        )

    async def process_queued_task(self, task_id: str) -> None:
        """Run one attempt of a job. Returns quietly if the job cannot be claimed."""
        async with self.session_factory() as db:
            claimed_at = datetime.now(timezone.utc)
            result = await db.execute(
                update(AIProcessingQueueEntry)
                .where(AIProcessingQueueEntry.id == task_id, self._claimable())
                .values(status="processing", started_at=claimed_at)
                .execution_options(synchronize_session=False)
            )
            await db.commit()
            if result.rowcount != 1:
                logger.debug("AI job %s not claimable, skipping", task_id)
                return

            entry = (
                await db.execute(
                    select(AIProcessingQueueEntry).where(AIProcessingQueueEntry.id == task_id)
                )
            ).scalar_one()
            job_type, user_id = entry.type, entry.user_id
            input_data = dict(entry.input_data or {})
            attempts = entry.retry_count

            try:
                output = await self._dispatch(db, job_type, user_id, input_data)
            except Exception as e:
                logger.exception("Error processing AI job %s (%s)", task_id, job_type)
                await db.rollback()
                await self._record_failure(db, task_id, claimed_at, attempts, str(e))
                return

            await db.execute(
                update(AIProcessingQueueEntry)
                .where(
                    AIProcessingQueueEntry.id == task_id,
                    AIProcessingQueueEntry.status == "processing",
                    AIProcessingQueueEntry.started_at == claimed_at,
                )
                .values(
                    status="completed",
                    output_data=output,
                    error_message=None,
                    next_attempt_at=None,
                    processed_at=datetime.now(timezone.utc),
                )
                .execution_options(synchronize_session=False)
            )
            await db.commit()
            logger.info("AI job completed: %s (%s) for user %s", task_id, job_type, user_id)

    async def _dispatch(self, db: AsyncSession, job_type: str, user_id: str, data: dict) -> Any:
        if job_type == "extract_tasks":
            user = await db.get(User, user_id)
            return await self.extract_tasks_from_text(
                data["text"], data.get("context"), user.timezone if user else "UTC"
            )

        if job_type == "summarize_meeting":
            summary = await self.summarize_meeting(
                data["transcript"], data.get("duration"), data.get("participants")
            )
            if data.get("meeting_id"):
                try:
                    await store_summary(db, user_id, data["meeting_id"], summary)
                except MeetingServiceError:
                    logger.warning(
                        "Meeting %s not found for user %s; summary kept on the job only",
                        data["meeting_id"], user_id,
                    )
            return summary

        if job_type == "optimize_schedule":
            return await self.optimize_schedule(data["tasks"], data.get("constraints"))

        raise AIServiceError(f"Unknown task type: {job_type}")

    async def _record_failure(
        self, db: AsyncSession, task_id: str, claimed_at: datetime, attempts: int, message: str
    ) -> None:
        retry_count = attempts + 1
        will_retry = retry_count < self.max_retries
        now = datetime.now(timezone.utc)
        result = await db.execute(
            update(AIProcessingQueueEntry)
            .where(
                AIProcessingQueueEntry.id == task_id,
                AIProcessingQueueEntry.status == "processing",
                AIProcessingQueueEntry.started_at == claimed_at,
            )
            .values(
                status="failed",
                error_message=message,
                retry_count=AIProcessingQueueEntry.retry_count + 1,
                next_attempt_at=now + timedelta(seconds=self.retry_delay) if will_retry else None,
            )
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        if result.rowcount != 1:
            # A recovery sweep already timed this attempt out
            return

        if will_retry:
            logger.info(
                "AI job %s failed (attempt %d/%d), retrying in %.1fs",
                task_id, retry_count, self.max_retries, self.retry_delay,
            )
            self._spawn(self._retry_later(task_id))
        else:
            logger.error("AI job %s failed permanently after %d attempts", task_id, retry_count)

    async def _retry_later(self, task_id: str) -> None:
        await asyncio.sleep(self.retry_delay)
        await self.process_queued_task(task_id)

    async def recover_jobs(self) -> int:
        """Re-dispatch jobs an in-memory retry would have lost across a restart.

        Returns the number of jobs scheduled.
        """
        now = datetime.now(timezone.utc)
        stale_before = now - timedelta(seconds=self.visibility_timeout)
        Q = AIProcessingQueueEntry

        async with self.session_factory() as db:
            timed_out = await db.execute(
                update(Q)
                .where(Q.status == "processing", Q.started_at < stale_before)
                .values(
                    status="failed",
                    error_message="Processing timed out",
                    retry_count=Q.retry_count + 1,
                    next_attempt_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            await db.commit()
            if timed_out.rowcount:
                logger.warning("Timed out %d stale AI job(s)", timed_out.rowcount)

            result = await db.execute(
                select(Q.id)
                .where(
                    or_(
                        Q.status == "pending",
                        and_(
                            Q.status == "failed",
                            Q.retry_count < self.max_retries,
                            or_(Q.next_attempt_at.is_(None), Q.next_attempt_at <= now),
                        ),
                    )
                )
                .order_by(Q.created_at)
            )
            job_ids = list(result.scalars().all())

        for job_id in job_ids:
            self._spawn(self.process_queued_task(job_id))
        if job_ids:
            logger.info("Recovered %d AI job(s)", len(job_ids))
        return len(job_ids)

    async def run_recovery_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.recover_jobs()
            except SQLAlchemyError:
                logger.exception("AI queue recovery sweep failed")

    def start_recovery_loop(self, interval: float) -> None:
        if interval > 0 and self._poller is None:
            self._poller = asyncio.create_task(self.run_recovery_loop(interval))

    async def get_queue_entry(self, db: AsyncSession, user_id: str, job_id: str) -> dict:
        result = await db.execute(
            select(AIProcessingQueueEntry).where(
                AIProcessingQueueEntry.id == job_id,
                AIProcessingQueueEntry.user_id == user_id,
            )
        )
        entry = result.scalar_one_or_none()
        if not entry:
            raise AIServiceError("Job not found")
        return serialize_queue_entry(entry)

    async def list_queue_entries(
        self, db: AsyncSession, user_id: str, status: str | None = None, limit: int = 50
    ) -> list[dict]:
        stmt = select(AIProcessingQueueEntry).where(AIProcessingQueueEntry.user_id == user_id)
        if status:
            stmt = stmt.where(AIProcessingQueueEntry.status == status)
        stmt = stmt.order_by(AIProcessingQueueEntry.created_at.desc()).limit(limit)
        result = await db.execute(stmt)
        return [serialize_queue_entry(e) for e in result.scalars().all()]

    # ------------------------------------------------------------------
    # Background task bookkeeping
    # ------------------------------------------------------------------

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("AI background job crashed", exc_info=task.exception())

    async def drain(self) -> None:
        """Wait until no job (including scheduled retries) is in flight."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        pending = list(self._tasks)
        if self._poller is not None:
            pending.append(self._poller)
            self._poller = None
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self._tasks.clear()


def serialize_queue_entry(entry: AIProcessingQueueEntry) -> dict:
    return {
        "id": entry.id,
        "user_id": entry.user_id,
        "type": entry.type,
        "status": entry.status,
        "input_data": entry.input_data,
        "output_data": entry.output_data,
        "error_message": entry.error_message,
        "retry_count": entry.retry_count,
        "started_at": isoformat(entry.started_at),
        "next_attempt_at": isoformat(entry.next_attempt_at),
        "processed_at": isoformat(entry.processed_at),
        "created_at": isoformat(entry.created_at),
    }
