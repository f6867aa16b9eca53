from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from gymdesk_api.api.dependencies.runtime import get_expiration_sweep
from gymdesk_api.api.dependencies.security import optional_sweep_api_key_dependency
from gymdesk_api.schemas.notification import SweepSummaryResponse
from gymdesk_api.services.notifications import ExpirationSweep

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.post(
    "/sweep",
    response_model=SweepSummaryResponse,
    dependencies=[optional_sweep_api_key_dependency()],
)
async def trigger_expiration_sweep(
    sweep: ExpirationSweep = Depends(get_expiration_sweep),
) -> SweepSummaryResponse:
    """Run the expiration sweep now, bypassing the once-per-day guard.

    Waits for an in-flight scheduled run to finish first.
    """

    summary = await sweep.trigger(manual=True)
    if summary is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Expiration sweep failed",
        )
    return SweepSummaryResponse.model_validate(summary)
