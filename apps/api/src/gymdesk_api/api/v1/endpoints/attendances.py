from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from gymdesk_api.api.dependencies.runtime import get_clock
from gymdesk_api.api.dependencies.tenant import require_organization_id
from gymdesk_api.core.clock import Clock
from gymdesk_api.core.settings import settings
from gymdesk_api.db.session import get_session
from gymdesk_api.schemas.attendance import AlreadyCheckedInResponse, CheckInRequest, CheckInResponse
from gymdesk_api.services.attendance import AlreadyCheckedIn, CheckInGuard

router = APIRouter(prefix="/attendances", tags=["Attendance"])


@router.post(
    "",
    response_model=CheckInResponse,
    status_code=status.HTTP_201_CREATED,
    responses={status.HTTP_409_CONFLICT: {"model": AlreadyCheckedInResponse}},
)
async def check_in_member(
    payload: CheckInRequest,
    organization_id: UUID = Depends(require_organization_id),
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    """Register today's attendance for a member code scanned at the front desk."""

    guard = CheckInGuard(session, clock=clock, warning_days=settings.checkin_warning_days)
    result = await guard.check_in(organization_id, payload.member_code, notes=payload.notes)
    if isinstance(result, AlreadyCheckedIn):
        body = AlreadyCheckedInResponse.from_result(result)
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=body.model_dump(mode="json", by_alias=True),
        )
    return CheckInResponse.from_result(result)
