from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from gymdesk_api.api.dependencies.runtime import get_clock
from gymdesk_api.api.dependencies.tenant import require_organization_id
from gymdesk_api.core.clock import Clock
from gymdesk_api.db.session import get_session
from gymdesk_api.schemas.membership import MembershipCreateRequest, MembershipRenewRequest, MembershipResponse
from gymdesk_api.services.memberships import MembershipStateMachine

router = APIRouter(prefix="/memberships", tags=["Memberships"])


@router.post("", response_model=MembershipResponse, status_code=status.HTTP_201_CREATED)
async def create_membership(
    payload: MembershipCreateRequest,
    organization_id: UUID = Depends(require_organization_id),
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
) -> MembershipResponse:
    machine = MembershipStateMachine(session, clock=clock)
    membership = await machine.create(
        organization_id,
        member_id=payload.member_id,
        discipline_id=payload.discipline_id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        amount_paid=payload.amount_paid,
        payment_method=payload.payment_method,
        notes=payload.notes,
    )
    return MembershipResponse.model_validate(membership)


@router.post("/{membership_id}/renew", response_model=MembershipResponse, status_code=status.HTTP_201_CREATED)
async def renew_membership(
    membership_id: UUID,
    payload: MembershipRenewRequest,
    organization_id: UUID = Depends(require_organization_id),
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
) -> MembershipResponse:
    """Expire the membership and start a new one of ``numMonths`` from today."""

    machine = MembershipStateMachine(session, clock=clock)
    membership = await machine.renew(
        organization_id,
        membership_id,
        num_months=payload.num_months,
        amount_paid=payload.amount_paid,
        payment_method=payload.payment_method,
        notes=payload.notes,
    )
    return MembershipResponse.model_validate(membership)


@router.post("/{membership_id}/expire", response_model=MembershipResponse)
async def expire_membership(
    membership_id: UUID,
    organization_id: UUID = Depends(require_organization_id),
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
) -> MembershipResponse:
    machine = MembershipStateMachine(session, clock=clock)
    membership = await machine.expire(organization_id, membership_id)
    return MembershipResponse.model_validate(membership)
