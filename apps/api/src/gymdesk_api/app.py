from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from loguru import logger

from gymdesk_api.core.settings import settings
from gymdesk_api.db.session import async_session
from .api.errors import register_error_handlers
from .api.routes import api_router
from .core.clock import Clock
from .core.logging import configure_logging
from .observability.tracing import configure_tracing
from .scheduling import JobScheduler
from .services.notifications import ChannelRegistry, ExpirationSweep


APP_VERSION = "0.1.0"


def _session_factory():
    return async_session()


def _resolve_schedule_path() -> Path:
    schedule_path = Path(settings.job_schedule_path)
    if not schedule_path.is_absolute():
        schedule_path = Path(__file__).resolve().parent.parent.parent / schedule_path
    return schedule_path


@asynccontextmanager
async def lifespan(app: FastAPI):
    clock = Clock(settings.timezone)
    registry = ChannelRegistry.from_settings(settings, session_factory=_session_factory)
    sweep = ExpirationSweep(
        _session_factory,
        registry,
        clock=clock,
        lookahead_days=settings.expiration_sweep_lookahead_days,
    )

    schedule_path = _resolve_schedule_path()
    job_scheduler = JobScheduler(
        session_factory=_session_factory,
        config_path=schedule_path,
        context={"expiration_sweep": sweep, "channel_registry": registry, "clock": clock},
        timezone=settings.timezone,
    )

    app.state.clock = clock
    app.state.channel_registry = registry
    app.state.expiration_sweep = sweep
    app.state.job_scheduler = job_scheduler

    bots_enabled = settings.telegram_bots_enabled
    if bots_enabled:
        summary = await registry.start_all()
        logger.info("Telegram bots enabled", started=summary["started"], failed=summary["failed"])
    else:
        logger.info(
            "Telegram bots disabled",
            reason="telegram_bots_enabled is false",
        )

    scheduler_enabled = settings.job_scheduler_enabled
    if scheduler_enabled:
        try:
            job_scheduler.start()
        except FileNotFoundError as exc:
            logger.exception("Job scheduler failed to start", error=str(exc))
        else:
            logger.info(
                "Job scheduler enabled",
                schedule_path=str(schedule_path),
                timezone=settings.timezone,
            )
    else:
        logger.info(
            "Job scheduler disabled",
            reason="job_scheduler_enabled is false",
        )

    try:
        yield
    finally:
        if scheduler_enabled and job_scheduler.is_running:
            await job_scheduler.stop()
        await registry.stop_all()


def create_app() -> FastAPI:
    """Application factory for the GymDesk FastAPI service."""
    configure_logging(
        service_name="gymdesk-api",
        environment=settings.environment,
        version=APP_VERSION,
    )

    app = FastAPI(
        title="GymDesk API",
        version=APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    configure_tracing(
        app,
        service_name="gymdesk-api",
        service_version=APP_VERSION,
        environment=settings.environment,
        exporter=settings.tracing_exporter,
    )

    register_error_handlers(app)
    app.include_router(api_router)

    @app.get("/healthz", tags=["Health"])
    async def health_check() -> dict[str, str]:
        return {
            "status": "ok",
            "environment": settings.environment,
            "version": APP_VERSION,
        }

    return app
