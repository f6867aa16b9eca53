from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from gymdesk_api.api.dependencies.runtime import get_channel_registry
from gymdesk_api.api.dependencies.tenant import require_organization_id
from gymdesk_api.db.session import get_session
from gymdesk_api.schemas.organization import MessagingConfigRequest, MessagingConfigResponse
from gymdesk_api.services.notifications import ChannelRegistry
from gymdesk_api.services.organizations import OrganizationMessagingService

router = APIRouter(prefix="/organizations", tags=["Organizations"])


@router.put("/messaging", response_model=MessagingConfigResponse, status_code=status.HTTP_202_ACCEPTED)
async def update_messaging_configuration(
    payload: MessagingConfigRequest,
    organization_id: UUID = Depends(require_organization_id),
    session: AsyncSession = Depends(get_session),
    registry: ChannelRegistry = Depends(get_channel_registry),
) -> MessagingConfigResponse:
    """Store the bot token; the channel restarts in the background."""

    service = OrganizationMessagingService(session, registry)
    organization, _ = await service.update_bot_token(organization_id, payload.telegram_bot_token)
    return MessagingConfigResponse(
        organization_id=organization.id,
        configured=organization.telegram_bot_token is not None,
        telegram_bot_username=organization.telegram_bot_username,
        reconciliation="scheduled" if organization.telegram_bot_token else "stopping",
    )
