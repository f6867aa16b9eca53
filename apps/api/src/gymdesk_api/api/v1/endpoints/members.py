from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gymdesk_api.api.dependencies.runtime import get_channel_registry, get_clock
from gymdesk_api.api.dependencies.tenant import require_organization_id
from gymdesk_api.core.clock import Clock
from gymdesk_api.db.session import get_session
from gymdesk_api.models.member import Member
from gymdesk_api.models.notification import NotificationStatusEnum
from gymdesk_api.models.organization import Organization
from gymdesk_api.schemas.notification import WelcomeResponse
from gymdesk_api.services.errors import MemberNotFoundError, NotFoundError
from gymdesk_api.services.notifications import ChannelRegistry, DispatchTarget, NotificationDispatcher

router = APIRouter(prefix="/members", tags=["Members"])


@router.post("/{member_id}/welcome", response_model=WelcomeResponse)
async def send_member_welcome(
    member_id: UUID,
    organization_id: UUID = Depends(require_organization_id),
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
    registry: ChannelRegistry = Depends(get_channel_registry),
) -> WelcomeResponse:
    """Send the welcome message to a member who just linked their chat."""

    organization = await session.get(Organization, organization_id)
    if organization is None:
        raise NotFoundError(f"Organization {organization_id} not found")

    result = await session.execute(
        select(Member).where(Member.id == member_id, Member.organization_id == organization_id)
    )
    member = result.scalar_one_or_none()
    if member is None:
        raise MemberNotFoundError(f"Member {member_id} not found")

    target = DispatchTarget.from_models(organization, member)
    dispatcher = NotificationDispatcher(session, registry, clock=clock)
    outcome = await dispatcher.send_welcome(target)
    if outcome is None:
        return WelcomeResponse(status=None, delivered=False, detail="Member has no linked chat")
    return WelcomeResponse(status=outcome, delivered=outcome is NotificationStatusEnum.SENT)
