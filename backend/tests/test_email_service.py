import smtplib
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from omnimind.core.config import Settings
from omnimind.services.email_service import EmailDeliveryError, EmailService, SafeHTML, render


def _service(**overrides):
    config = {
        "smtp_host": "smtp.test",
        "smtp_user": "mailer@omnimind.test",
        "smtp_password": "pw",
        "frontend_url": "https://app.omnimind.test/",
        **overrides,
    }
    service = EmailService(Settings(**config))
    service.outbox = []
    service._send_sync = lambda to, subject, body: service.outbox.append((to, subject, body))
    return service


USER = SimpleNamespace(email="alice@example.com", name="Alice <Admin>")


def test_render_escapes_substituted_values():
    subject, body = render("welcome", {"name": "<script>alert(1)</script>"})

    assert subject == "Welcome to OmniMind!"
    assert "<script>alert(1)</script>" not in body
    assert "&lt;script&gt;alert(1)&lt;/script&gt;" in body


def test_render_inserts_safe_html_verbatim():
    _, body = render("custom_notification", {"subject": "Hi", "content": SafeHTML("<p>Bold <b>move</b></p>")})
    assert "<p>Bold <b>move</b></p>" in body


def test_render_leaves_subject_unescaped_and_blanks_missing_values():
    subject, body = render("task_reminder", {"task_title": "Fix <Q3> & ship"})

    assert subject == "Task Reminder: Fix <Q3> & ship"
    assert "Fix &lt;Q3&gt; &amp; ship" in body
    assert "{{" not in body


def test_render_unknown_template():
    with pytest.raises(EmailDeliveryError):
        render("no_such_template", {})


def test_service_disabled_without_smtp_credentials():
    service = EmailService(Settings(smtp_host="", smtp_user="", smtp_password=""))
    assert service.enabled is False


async def test_disabled_service_refuses_to_send():
    service = EmailService(Settings(smtp_host="", smtp_user="", smtp_password=""))
    with pytest.raises(EmailDeliveryError):
        await service.send_welcome_email(USER)
    assert await service.verify_connection() is False


async def test_welcome_email_links_to_the_frontend():
    service = _service()
    await service.send_welcome_email(USER)

    to, subject, body = service.outbox[0]
    assert to == "alice@example.com"
    assert subject == "Welcome to OmniMind!"
    assert "Alice &lt;Admin&gt;" in body
    assert 'href="https://app.omnimind.test/dashboard"' in body


async def test_task_reminder_builds_optional_blocks():
    service = _service()
    task = {
        "id": "t-1",
        "title": "Renew <domain>",
        "description": "Before it lapses",
        "priority": "high",
        "due_date": datetime(2030, 1, 2, 15, 30, tzinfo=timezone.utc).isoformat(),
    }
    await service.send_task_reminder(USER, task, project_name="Ops & Infra")

    _, subject, body = service.outbox[0]
    assert subject == "Task Reminder: Renew <domain>"
    assert "Renew &lt;domain&gt;" in body
    assert "Before it lapses" in body
    assert "Ops &amp; Infra" in body
    assert "Wednesday, January 02, 2030 15:30 UTC" in body
    assert "https://app.omnimind.test/tasks/t-1" in body


async def test_task_reminder_without_description_or_project():
    service = _service()
    await service.send_task_reminder(USER, {"id": "t-2", "title": "Call Sam"})

    body = service.outbox[0][2]
    assert "Project:" not in body
    assert "No due date" in body


async def test_daily_digest_escapes_list_items():
    service = _service()
    await service.send_daily_digest(USER, {
        "total_tasks": 4,
        "completed_tasks": 1,
        "overdue_tasks": 1,
        "due_today": 2,
        "priorities": [{"title": "<b>Ship</b>", "priority": "high", "project": None, "due_date": None}],
        "meetings": [{"title": "Standup", "time": "09:00 UTC", "duration": "15 min"}],
        "suggestions": ["Batch <email>"],
    })

    body = service.outbox[0][2]
    assert "&lt;b&gt;Ship&lt;/b&gt;" in body
    assert "Standup" in body
    assert "Batch &lt;email&gt;" in body


async def test_password_reset_email_carries_the_token_link():
    service = _service()
    await service.send_password_reset_email(USER, "abcdef0123456789")

    _, subject, body = service.outbox[0]
    assert subject == "Reset Your OmniMind Password"
    assert "https://app.omnimind.test/reset-password?token=abcdef0123456789" in body
    assert "ABCDEF01" in body


async def test_smtp_failures_become_delivery_errors():
    service = _service()

    def broken(to, subject, body):
        raise smtplib.SMTPServerDisconnected("gone")

    service._send_sync = broken
    with pytest.raises(EmailDeliveryError):
        await service.send_custom_notification("alice@example.com", "Hi", "plain text")
