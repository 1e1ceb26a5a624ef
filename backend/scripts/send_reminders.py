"""Send due-task reminders and, optionally, the daily digest.

Meant to be run from cron. Usage:
    python -m scripts.send_reminders [--hours 24] [--digest]
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add parent dir to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from omnimind.core.config import settings
from omnimind.core.database import async_session, engine
from omnimind.core.logging_config import configure_logging
from omnimind.services.email_service import EmailService
from omnimind.services.reminder_service import send_due_task_reminders, send_daily_digests

logger = logging.getLogger("scripts.send_reminders")


async def _run(hours: int, digest: bool) -> None:
    email_service = EmailService(settings)
    if email_service.enabled and not await email_service.verify_connection():
        logger.warning("SMTP relay unreachable; reminder emails will fail and be logged")
    try:
        async with async_session() as db:
            reminders = await send_due_task_reminders(db, email_service, hours=hours)
            print(f"Reminders created: {reminders['reminders']}, emailed: {reminders['emails']}")

            if digest:
                digests = await send_daily_digests(db, email_service)
                print(
                    f"Digests sent: {digests['sent']}, skipped: {digests['skipped']}, "
                    f"failed: {digests['failed']}"
                )
    finally:
        await engine.dispose()


def main():
    parser = argparse.ArgumentParser(description="Send task reminders and daily digests")
    parser.add_argument("--hours", type=int, default=24, help="Remind about tasks due within this many hours")
    parser.add_argument("--digest", action="store_true", help="Also send the daily digest email")
    args = parser.parse_args()

    if args.hours < 1:
        parser.error("--hours must be positive")

    configure_logging(settings.log_level)
    asyncio.run(_run(args.hours, args.digest))


if __name__ == "__main__":
    main()
