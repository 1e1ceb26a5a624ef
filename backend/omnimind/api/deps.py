"""Dependencies that hand app-scoped services to route handlers."""

import logging

from fastapi import Request

from omnimind.services.ai_service import AIService
from omnimind.services.email_service import EmailService, EmailDeliveryError

logger = logging.getLogger(__name__)


def get_ai_service(request: Request) -> AIService:
    return request.app.state.ai_service


def get_email_service(request: Request) -> EmailService:
    return request.app.state.email_service


async def send_email_quietly(send, *args, what: str) -> None:
    """Background-task wrapper: delivery failures are logged, never raised."""
    try:
        await send(*args)
    except EmailDeliveryError as e:
        logger.warning("%s email not sent: %s", what, e)
