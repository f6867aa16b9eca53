from enum import Enum
from uuid import uuid4

from sqlalchemy import Column, DateTime, Enum as SqlEnum, ForeignKey, Index, Numeric, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from gymdesk_api.db.base import Base


class MembershipStatusEnum(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"


class Membership(Base):
    """Paid, time-bounded access to one discipline. Rows are never deleted."""

    __tablename__ = "memberships"
    __table_args__ = (
        Index("ix_memberships_status_end_date", "organization_id", "status", "end_date"),
        Index("ix_memberships_member_discipline", "member_id", "discipline_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    organization_id = Column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    member_id = Column(UUID(as_uuid=True), ForeignKey("members.id", ondelete="CASCADE"), nullable=False)
    discipline_id = Column(UUID(as_uuid=True), ForeignKey("disciplines.id", ondelete="RESTRICT"), nullable=False)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    status = Column(
        SqlEnum(MembershipStatusEnum, name="membership_status_enum"),
        nullable=False,
        default=MembershipStatusEnum.ACTIVE,
    )
    amount_paid = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    member = relationship("Member", lazy="raise")
    discipline = relationship("Discipline", lazy="raise")
