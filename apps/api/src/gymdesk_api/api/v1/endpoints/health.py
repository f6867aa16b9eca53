from __future__ import annotations

from typing import Any, Dict, Literal

from fastapi import APIRouter, Depends, Request
from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from gymdesk_api.core.settings import settings
from gymdesk_api.db.session import get_session


router = APIRouter()


class ComponentStatus(BaseModel):
    status: Literal["ready", "starting", "disabled", "error", "degraded"]
    detail: str | None = Field(default=None, description="Human readable status detail")
    last_error_at: str | None = Field(default=None, description="ISO timestamp of most recent error")
    last_success_at: str | None = Field(default=None, description="ISO timestamp of most recent success")
    metadata: Dict[str, Any] | None = Field(default=None, description="Component specific diagnostics")


class ReadinessPayload(BaseModel):
    status: Literal["ready", "degraded", "error"]
    components: Dict[str, ComponentStatus]


@router.get("/healthz", summary="Service health check")
async def service_health() -> dict[str, str]:
    return {"status": "ok"}


def _degrade(current: Literal["ready", "degraded", "error"]) -> Literal["ready", "degraded", "error"]:
    return "degraded" if current != "error" else current


@router.get("/readyz", summary="Service readiness", response_model=ReadinessPayload)
async def service_readiness(
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> ReadinessPayload:
    components: Dict[str, ComponentStatus] = {}
    status: Literal["ready", "degraded", "error"] = "ready"

    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.exception("Database readiness probe failed", error=str(exc))
        components["database"] = ComponentStatus(status="error", detail=str(exc))
        status = "error"
    else:
        components["database"] = ComponentStatus(status="ready")

    scheduler = getattr(request.app.state, "job_scheduler", None)
    if settings.job_scheduler_enabled and scheduler is not None:
        health = scheduler.health()
        running = bool(health.get("running"))
        totals = health.get("totals") or {}
        scheduler_status: Literal["ready", "starting", "degraded"] = "ready" if running else "starting"
        detail = None
        if not running:
            detail = "Job scheduler not running"
            status = _degrade(status)
        elif totals.get("run_failures"):
            scheduler_status = "degraded"
            detail = "One or more scheduled runs failed"
        components["job_scheduler"] = ComponentStatus(status=scheduler_status, detail=detail, metadata=health)
    else:
        components["job_scheduler"] = ComponentStatus(
            status="disabled",
            detail="Job scheduler disabled via settings",
        )

    sweep = getattr(request.app.state, "expiration_sweep", None)
    if sweep is not None:
        summary = sweep.last_summary
        components["expiration_sweep"] = ComponentStatus(
            status="ready",
            detail="Sweep in progress" if sweep.is_running else None,
            last_success_at=summary.completed_at.isoformat() if summary and summary.completed_at else None,
            metadata={
                "running": sweep.is_running,
                "lookahead_days": sweep.lookahead_days,
                "last_summary": summary.as_dict() if summary else None,
            },
        )
    else:
        components["expiration_sweep"] = ComponentStatus(status="starting", detail="Expiration sweep not initialised")
        status = _degrade(status)

    registry = getattr(request.app.state, "channel_registry", None)
    if settings.telegram_bots_enabled and registry is not None:
        active = registry.active_organizations
        components["messaging_channels"] = ComponentStatus(
            status="ready",
            detail=None if active else "No organization has a live messaging channel",
            metadata={"active_channels": len(active)},
        )
    else:
        components["messaging_channels"] = ComponentStatus(
            status="disabled",
            detail="Telegram bots disabled via settings",
        )

    return ReadinessPayload(status=status, components=components)
