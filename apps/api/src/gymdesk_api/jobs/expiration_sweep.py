"""Daily membership expiration reminder job."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from gymdesk_api.core.settings import settings
from gymdesk_api.services.notifications import ExpirationSweep

SessionFactory = Callable[[], AsyncSession] | Callable[[], Awaitable[AsyncSession]]


async def run_membership_expiration_sweep(
    *,
    session_factory: SessionFactory,
    expiration_sweep: ExpirationSweep,
    manual: bool = False,
) -> Dict[str, Any]:
    """Run the sweep unless one is already in flight.

    ``session_factory`` is accepted for scheduler compatibility; the sweep owns
    its own factory.
    """

    if not settings.expiration_sweep_enabled:
        logger.info("Expiration sweep disabled", reason="expiration_sweep_enabled is false")
        return {"skipped": True, "reason": "disabled"}

    if expiration_sweep.is_running:
        logger.warning("Expiration sweep already running; scheduled run skipped")
        return {"skipped": True, "reason": "already_running"}

    summary = await expiration_sweep.trigger(manual=manual, wait=False)
    if summary is None:
        raise RuntimeError("Expiration sweep did not complete")
    return summary.as_dict()


__all__ = ["run_membership_expiration_sweep"]
