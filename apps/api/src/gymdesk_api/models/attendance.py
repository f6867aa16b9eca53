from uuid import uuid4

from sqlalchemy import Column, Date, DateTime, ForeignKey, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID

from gymdesk_api.db.base import Base


class Attendance(Base):
    """A single check-in scan. Created by the check-in guard only, never mutated."""

    __tablename__ = "attendances"
    __table_args__ = (
        UniqueConstraint(
            "organization_id",
            "member_id",
            "checkin_day",
            name="uq_attendances_member_day",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    organization_id = Column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    member_id = Column(UUID(as_uuid=True), ForeignKey("members.id", ondelete="CASCADE"), nullable=False)
    checked_at = Column(DateTime(timezone=True), nullable=False)
    # Local calendar day of checked_at in the configured timezone.
    checkin_day = Column(Date, nullable=False)
    notes = Column(Text, nullable=True)
