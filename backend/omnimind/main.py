import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from omnimind.core.config import Settings, settings as default_settings
from omnimind.core.database import async_session, engine, init_db
from omnimind.core.errors import register_exception_handlers
from omnimind.core.logging_config import configure_logging
from omnimind.core.middleware import RateLimitMiddleware, SecurityHeadersMiddleware
from omnimind.integrations.anthropic_client import LLMGateway
from omnimind.services.ai_service import AIService
from omnimind.services.email_service import EmailService
from omnimind.api import auth, projects, tasks, notifications, meetings, ai

logger = logging.getLogger(__name__)


def create_app(settings: Settings = default_settings) -> FastAPI:
    configure_logging(settings.log_level)

    llm = LLMGateway(
        api_key=settings.anthropic_api_key,
        model=settings.anthropic_model,
        fast_model=settings.anthropic_fast_model,
    )
    ai_service = AIService(
        llm,
        async_session,
        max_retries=settings.ai_queue_max_retries,
        retry_delay=settings.ai_queue_retry_delay_seconds,
        visibility_timeout=settings.ai_queue_visibility_timeout_seconds,
    )
    email_service = EmailService(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.auto_create_tables:
            await init_db()
        recovered = await ai_service.recover_jobs()
        ai_service.start_recovery_loop(settings.ai_queue_poll_interval_seconds)
        logger.info(
            "%s %s started (email %s, %d AI job(s) recovered)",
            settings.app_name,
            settings.version,
            "enabled" if email_service.enabled else "disabled",
            recovered,
        )
        yield
        await ai_service.shutdown()
        await engine.dispose()
        logger.info("%s stopped", settings.app_name)

    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.ai_service = ai_service
    app.state.email_service = email_service

    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(SecurityHeadersMiddleware, debug=settings.debug)
    # CORS last so it wraps everything, including 429 responses
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(auth.router)
    app.include_router(projects.router)
    app.include_router(tasks.router)
    app.include_router(notifications.router)
    app.include_router(meetings.router)
    app.include_router(ai.router)

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": settings.version,
        }

    return app


app = create_app()
