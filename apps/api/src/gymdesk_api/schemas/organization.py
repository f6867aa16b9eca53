from __future__ import annotations

from uuid import UUID

from pydantic import Field

from .common import CamelModel


class MessagingConfigRequest(CamelModel):
    telegram_bot_token: str | None = Field(default=None, max_length=256)


class MessagingConfigResponse(CamelModel):
    organization_id: UUID
    configured: bool
    telegram_bot_username: str | None = None
    reconciliation: str = "scheduled"
