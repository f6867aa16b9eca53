"""Accessors for the long-lived components created in the app lifespan."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from gymdesk_api.core.clock import Clock
from gymdesk_api.services.notifications import ChannelRegistry, ExpirationSweep


def _state_component(request: Request, name: str):
    component = getattr(request.app.state, name, None)
    if component is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{name.replace('_', ' ').capitalize()} not initialised",
        )
    return component


def get_clock(request: Request) -> Clock:
    return _state_component(request, "clock")


def get_channel_registry(request: Request) -> ChannelRegistry:
    return _state_component(request, "channel_registry")


def get_expiration_sweep(request: Request) -> ExpirationSweep:
    return _state_component(request, "expiration_sweep")
