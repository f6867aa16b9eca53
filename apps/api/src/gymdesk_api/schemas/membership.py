from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import Field, model_validator

from gymdesk_api.models.membership import MembershipStatusEnum

from .common import CamelModel


class MembershipCreateRequest(CamelModel):
    member_id: UUID
    discipline_id: UUID
    start_date: datetime
    end_date: datetime
    amount_paid: Decimal = Field(..., ge=0)
    payment_method: str | None = Field(default=None, max_length=64)
    notes: str | None = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def _check_dates(self) -> "MembershipCreateRequest":
        if self.start_date.tzinfo is None or self.end_date.tzinfo is None:
            raise ValueError("start_date and end_date must include a timezone offset")
        return self


class MembershipRenewRequest(CamelModel):
    num_months: int = Field(..., ge=1, le=36)
    amount_paid: Decimal = Field(..., ge=0)
    payment_method: str | None = Field(default=None, max_length=64)
    notes: str | None = Field(default=None, max_length=500)


class MembershipResponse(CamelModel):
    id: UUID
    organization_id: UUID
    member_id: UUID
    discipline_id: UUID
    start_date: datetime
    end_date: datetime
    status: MembershipStatusEnum
    amount_paid: Decimal
    payment_method: str | None = None
    notes: str | None = None
