"""Organization-level messaging configuration."""

from __future__ import annotations

import asyncio
from uuid import UUID

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from gymdesk_api.models.organization import Organization
from gymdesk_api.services.errors import NotFoundError
from gymdesk_api.services.notifications.channels import ChannelRegistry


class OrganizationMessagingService:
    def __init__(self, session: AsyncSession, registry: ChannelRegistry) -> None:
        self._session = session
        self._registry = registry

    async def update_bot_token(
        self,
        organization_id: UUID,
        token: str | None,
    ) -> tuple[Organization, asyncio.Task]:
        """Persist the new bot token and restart the channel without waiting on it.

        An empty token clears the configuration and stops the live channel. The
        returned task completes once reconciliation finishes; its outcome is only
        logged.
        """

        organization = await self._session.get(Organization, organization_id)
        if organization is None:
            raise NotFoundError(f"Organization {organization_id} not found")

        token = (token or "").strip() or None
        organization.telegram_bot_token = token
        if token is None:
            organization.telegram_bot_username = None
        await self._session.commit()
        await self._session.refresh(organization)

        logger.info(
            "Messaging configuration updated",
            organization_id=str(organization_id),
            configured=token is not None,
        )
        task = self._registry.reconcile_in_background(organization_id, token)
        return organization, task


__all__ = ["OrganizationMessagingService"]
