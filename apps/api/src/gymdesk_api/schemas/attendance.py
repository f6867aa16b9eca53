from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import Field

from gymdesk_api.services.attendance import AlreadyCheckedIn, CheckInResult

from .common import CamelModel


class CheckInRequest(CamelModel):
    member_code: str = Field(..., min_length=1, max_length=64)
    notes: str | None = Field(default=None, max_length=500)


class CheckInMember(CamelModel):
    id: UUID
    code: str
    name: str


class CheckInMembership(CamelModel):
    id: UUID
    discipline_id: UUID
    discipline_name: str | None = None
    start_date: datetime
    end_date: datetime
    amount_paid: Decimal


class CheckInResponse(CamelModel):
    attendance_id: UUID
    checked_at: datetime
    member: CheckInMember
    membership: CheckInMembership
    days_left: int
    warning: str | None = None

    @classmethod
    def from_result(cls, result: CheckInResult) -> "CheckInResponse":
        membership = result.membership
        return cls(
            attendance_id=result.attendance_id,
            checked_at=result.checked_at,
            member=CheckInMember(id=result.member.id, code=result.member.code, name=result.member.name),
            membership=CheckInMembership(
                id=membership.id,
                discipline_id=membership.discipline_id,
                discipline_name=membership.discipline_name,
                start_date=membership.start_date,
                end_date=membership.end_date,
                amount_paid=membership.amount_paid,
            ),
            days_left=result.days_left,
            warning=result.warning,
        )


class AlreadyCheckedInResponse(CamelModel):
    already_registered: bool = True
    registered_at: datetime
    member: CheckInMember

    @classmethod
    def from_result(cls, result: AlreadyCheckedIn) -> "AlreadyCheckedInResponse":
        return cls(
            registered_at=result.registered_at,
            member=CheckInMember(id=result.member.id, code=result.member.code, name=result.member.name),
        )
