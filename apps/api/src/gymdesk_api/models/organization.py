from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, String, func
from sqlalchemy.dialects.postgresql import UUID

from gymdesk_api.db.base import Base


class Organization(Base):
    """Tenant: one gym with its own members and messaging bot."""

    __tablename__ = "organizations"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, server_default="true")
    telegram_bot_token = Column(String, nullable=True)
    telegram_bot_username = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
