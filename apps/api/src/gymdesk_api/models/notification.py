from enum import Enum
from uuid import uuid4

from sqlalchemy import Column, Date, DateTime, Enum as SqlEnum, ForeignKey, Index, Text
from sqlalchemy.dialects.postgresql import UUID

from gymdesk_api.db.base import Base


class NotificationTypeEnum(str, Enum):
    WELCOME = "welcome"
    EXPIRING_SOON = "expiring_soon"
    EXPIRED = "expired"


class NotificationStatusEnum(str, Enum):
    SENT = "sent"
    FAILED = "failed"


class NotificationChannelEnum(str, Enum):
    TELEGRAM = "telegram"


class NotificationAttempt(Base):
    """Append-only record of one delivery attempt."""

    __tablename__ = "notification_attempts"
    __table_args__ = (
        Index("ix_notification_attempts_member_type_sent_at", "member_id", "type", "sent_at"),
        # NULL dedup_day never collides, so only scheduled SENT rows are constrained.
        Index("uq_notification_attempts_dedup", "member_id", "type", "dedup_day", unique=True),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    organization_id = Column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    member_id = Column(UUID(as_uuid=True), ForeignKey("members.id", ondelete="CASCADE"), nullable=False)
    type = Column(SqlEnum(NotificationTypeEnum, name="notification_type_enum"), nullable=False)
    channel = Column(
        SqlEnum(NotificationChannelEnum, name="notification_channel_enum"),
        nullable=False,
        default=NotificationChannelEnum.TELEGRAM,
    )
    status = Column(SqlEnum(NotificationStatusEnum, name="notification_status_enum"), nullable=False)
    sent_at = Column(DateTime(timezone=True), nullable=False)
    dedup_day = Column(Date, nullable=True)
    message = Column(Text, nullable=False)
    error = Column(Text, nullable=True)
