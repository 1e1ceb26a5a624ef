"""Email service — template rendering and SMTP delivery."""

import asyncio
import html
import logging
import re
import smtplib
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate

from omnimind.core.config import Settings
from omnimind.core.database import as_utc
from omnimind.services.email_templates import TEMPLATES

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")


class EmailDeliveryError(Exception):
    pass


class SafeHTML(str):
    """Markup that is already escaped and is inserted into templates verbatim."""


def _escape(value) -> str:
    if value is None:
        return ""
    if isinstance(value, SafeHTML):
        return value
    return html.escape(str(value), quote=True)


def render(template: str, variables: dict) -> tuple[str, str]:
    """Render a named template to (subject, html).

    Body values are HTML-escaped unless wrapped in SafeHTML; the subject is
    plain text. Unknown placeholders render as empty strings.
    """
    entry = TEMPLATES.get(template)
    if entry is None:
        raise EmailDeliveryError(f"Template {template} not found")

    subject = _PLACEHOLDER.sub(
        lambda m: "" if variables.get(m.group(1)) is None else str(variables[m.group(1)]),
        entry["subject"],
    )
    body = _PLACEHOLDER.sub(lambda m: _escape(variables.get(m.group(1))), entry["html"])
    return subject, body


def _format_due(value) -> str:
    if not value:
        return "No due date"
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    return as_utc(value).strftime("%A, %B %d, %Y %H:%M UTC")


class EmailService:
    def __init__(self, settings: Settings):
        self.smtp_host = settings.smtp_host
        self.smtp_port = settings.smtp_port
        self.smtp_user = settings.smtp_user
        self.smtp_password = settings.smtp_password
        self.from_name = settings.smtp_from_name
        self.frontend_url = settings.frontend_url.rstrip("/")
        self.reset_expire_minutes = settings.password_reset_expire_minutes

        if not all([self.smtp_host, self.smtp_user, self.smtp_password]):
            logger.warning("SMTP not fully configured; outgoing email is disabled")
            self.enabled = False
        else:
            self.enabled = True
            logger.info(
                "SMTP delivery configured: %s@%s:%s",
                self.smtp_user, self.smtp_host, self.smtp_port,
            )

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _connect(self) -> smtplib.SMTP:
        if self.smtp_port == 465:
            server = smtplib.SMTP_SSL(self.smtp_host, self.smtp_port, timeout=30)
        else:
            server = smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30)
            server.starttls()
        server.login(self.smtp_user, self.smtp_password)
        return server

    def _send_sync(self, to: str, subject: str, body: str) -> None:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = formataddr((self.from_name, self.smtp_user))
        msg["To"] = to
        msg["Date"] = formatdate(localtime=True)
        msg.attach(MIMEText(body, "html", "utf-8"))

        with self._connect() as server:
            server.send_message(msg)

    async def deliver(self, to: str, subject: str, body: str) -> None:
        if not self.enabled:
            raise EmailDeliveryError("SMTP is not configured")
        try:
            await asyncio.to_thread(self._send_sync, to, subject, body)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Error sending email to %s: %s", to, e)
            raise EmailDeliveryError(f"Failed to send email: {e}") from e
        logger.info("Email sent to %s: %s", to, subject)

    async def send_email(self, to: str, template: str, variables: dict) -> None:
        subject, body = render(template, variables)
        await self.deliver(to, subject, body)

    async def verify_connection(self) -> bool:
        if not self.enabled:
            return False

        def _check():
            with self._connect() as server:
                server.noop()

        try:
            await asyncio.to_thread(_check)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("SMTP connection failed: %s", e)
            return False
        logger.info("SMTP connection verified successfully")
        return True

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def send_welcome_email(self, user) -> None:
        await self.send_email(user.email, "welcome", {
            "name": user.name,
            "dashboard_url": f"{self.frontend_url}/dashboard",
            "help_url": f"{self.frontend_url}/help",
            "unsubscribe_url": f"{self.frontend_url}/settings/notifications",
            "privacy_url": f"{self.frontend_url}/privacy",
        })

    async def send_task_reminder(self, user, task: dict, project_name: str | None = None) -> None:
        description = task.get("description")
        description_block = (
            SafeHTML(f'<p style="margin: 0 0 10px 0; color: #6b7280;">{_escape(description)}</p>')
            if description else SafeHTML("")
        )
        project_block = (
            SafeHTML(f'<p style="margin: 10px 0 0 0;"><strong>Project:</strong> {_escape(project_name)}</p>')
            if project_name else SafeHTML("")
        )
        await self.send_email(user.email, "task_reminder", {
            "name": user.name,
            "task_title": task["title"],
            "task_priority": task.get("priority") or "medium",
            "task_description_block": description_block,
            "project_block": project_block,
            "due_date": _format_due(task.get("due_date")),
            "task_url": f"{self.frontend_url}/tasks/{task['id']}",
            "settings_url": f"{self.frontend_url}/settings/notifications",
        })

    async def send_daily_digest(self, user, data: dict) -> None:
        """Send the digest. `data` carries totals, `priorities`, `meetings` and `suggestions`."""
        today = datetime.now()

        priorities = "".join(
            '<div class="task-item">'
            f'<span class="priority-dot priority-{_escape(t.get("priority"))}"></span>'
            f'<strong>{_escape(t.get("title"))}</strong>'
            + (f'<span style="color: #6b7280; font-size: 14px;"> - {_escape(t["project"])}</span>' if t.get("project") else "")
            + (f'<div style="font-size: 14px; color: #6b7280; margin-top: 5px;">Due: {_escape(_format_due(t["due_date"]))}</div>' if t.get("due_date") else "")
            + "</div>"
            for t in data.get("priorities") or []
        ) or "<p>Nothing urgent on your plate today.</p>"

        meetings_block = ""
        if data.get("meetings"):
            items = "".join(
                f'<div class="task-item"><strong>{_escape(m.get("title"))}</strong>'
                f'<div style="font-size: 14px; color: #6b7280;">⏰ {_escape(m.get("time"))} | {_escape(m.get("duration"))}</div></div>'
                for m in data["meetings"]
            )
            meetings_block = f'<div class="section"><h4>📅 Today\'s Meetings</h4>{items}</div>'

        suggestions_block = ""
        if data.get("suggestions"):
            items = "".join(f"<li>{_escape(s)}</li>" for s in data["suggestions"])
            suggestions_block = f'<div class="section"><h4>💡 AI Suggestions</h4><ul>{items}</ul></div>'

        await self.send_email(user.email, "daily_digest", {
            "name": user.name,
            "date": today.strftime("%A, %B %d, %Y"),
            "day_name": today.strftime("%A"),
            "total_tasks": data.get("total_tasks", 0),
            "completed_tasks": data.get("completed_tasks", 0),
            "overdue_tasks": data.get("overdue_tasks", 0),
            "due_today": data.get("due_today", 0),
            "priorities_block": SafeHTML(priorities),
            "meetings_block": SafeHTML(meetings_block),
            "suggestions_block": SafeHTML(suggestions_block),
            "dashboard_url": f"{self.frontend_url}/dashboard",
            "settings_url": f"{self.frontend_url}/settings/notifications",
        })

    async def send_password_reset_email(self, user, reset_token: str) -> None:
        await self.send_email(user.email, "password_reset", {
            "reset_code": reset_token[:8].upper(),
            "reset_url": f"{self.frontend_url}/reset-password?token={reset_token}",
            "expires_minutes": self.reset_expire_minutes,
            "email": user.email,
        })

    async def send_custom_notification(self, email: str, subject: str, content) -> None:
        """Send free-form content in the notification layout. Plain strings are escaped."""
        await self.send_email(email, "custom_notification", {
            "subject": subject,
            "content": content,
            "dashboard_url": f"{self.frontend_url}/dashboard",
            "settings_url": f"{self.frontend_url}/settings/notifications",
        })
