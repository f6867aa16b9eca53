"""Front-desk check-in: validate the member and record at most one attendance per day."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from uuid import UUID

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from gymdesk_api.core.clock import Clock, as_utc
from gymdesk_api.models.member import Member
from gymdesk_api.models.membership import Membership, MembershipStatusEnum
from gymdesk_api.models.organization import Organization
from gymdesk_api.services.errors import (
    DuplicateCheckInError,
    MemberInactiveError,
    MemberNotFoundError,
    NoActiveMembershipError,
    NotFoundError,
    TenantSuspendedError,
)
from gymdesk_api.services.notifications.ledger import NotificationLedger

DEFAULT_WARNING_DAYS = 7


@dataclass(frozen=True, slots=True)
class MemberSnapshot:
    id: UUID
    code: str
    name: str


@dataclass(frozen=True, slots=True)
class MembershipSnapshot:
    id: UUID
    discipline_id: UUID
    discipline_name: str | None
    start_date: datetime
    end_date: datetime
    amount_paid: Decimal


@dataclass(frozen=True, slots=True)
class CheckInResult:
    attendance_id: UUID
    checked_at: datetime
    member: MemberSnapshot
    membership: MembershipSnapshot
    days_left: int
    warning: str | None = None


@dataclass(frozen=True, slots=True)
class AlreadyCheckedIn:
    """Returned instead of raising when the member already has today's attendance."""

    registered_at: datetime
    member: MemberSnapshot
    attendance_id: UUID | None = None


class CheckInGuard:
    def __init__(
        self,
        session: AsyncSession,
        *,
        clock: Clock,
        warning_days: int = DEFAULT_WARNING_DAYS,
        ledger: NotificationLedger | None = None,
    ) -> None:
        self._session = session
        self._clock = clock
        self._warning_days = warning_days
        self._ledger = ledger or NotificationLedger(session, clock=clock)

    async def check_in(
        self,
        organization_id: UUID,
        member_code: str,
        notes: str | None = None,
    ) -> CheckInResult | AlreadyCheckedIn:
        """Record today's attendance for ``member_code``.

        Domain failures raise; a repeated scan on the same local day returns
        :class:`AlreadyCheckedIn` carrying the original timestamp.
        """

        await self._require_active_organization(organization_id)
        member = await self._get_member(organization_id, member_code)
        membership = await self._get_active_membership(organization_id, member.id)

        # Snapshots first: the ledger may roll back, which expires ORM instances.
        member_snapshot = MemberSnapshot(id=member.id, code=member.code, name=member.name)
        membership_snapshot = MembershipSnapshot(
            id=membership.id,
            discipline_id=membership.discipline_id,
            discipline_name=membership.discipline.name if membership.discipline else None,
            start_date=as_utc(membership.start_date),
            end_date=as_utc(membership.end_date),
            amount_paid=membership.amount_paid,
        )

        existing = await self._ledger.find_checkin_today(organization_id, member_snapshot.id)
        if existing is not None:
            logger.info(
                "Member already checked in today",
                organization_id=str(organization_id),
                member_id=str(member_snapshot.id),
            )
            return AlreadyCheckedIn(
                registered_at=as_utc(existing.checked_at),
                member=member_snapshot,
                attendance_id=existing.id,
            )

        now = self._clock.now()
        days_left = math.ceil((membership_snapshot.end_date - now) / timedelta(days=1))
        warning = self._warning_for(days_left)

        try:
            attendance = await self._ledger.record_checkin(
                organization_id=organization_id,
                member_id=member_snapshot.id,
                notes=notes,
            )
        except DuplicateCheckInError as exc:
            logger.info(
                "Concurrent check-in collapsed onto existing attendance",
                organization_id=str(organization_id),
                member_id=str(member_snapshot.id),
            )
            return AlreadyCheckedIn(
                registered_at=as_utc(exc.existing.checked_at),
                member=member_snapshot,
                attendance_id=exc.existing.id,
            )

        logger.info(
            "Check-in recorded",
            organization_id=str(organization_id),
            member_id=str(member_snapshot.id),
            membership_id=str(membership_snapshot.id),
            days_left=days_left,
            warning=warning,
        )
        return CheckInResult(
            attendance_id=attendance.id,
            checked_at=as_utc(attendance.checked_at),
            member=member_snapshot,
            membership=membership_snapshot,
            days_left=days_left,
            warning=warning,
        )

    def _warning_for(self, days_left: int) -> str | None:
        if days_left <= 0:
            return "Membership has expired"
        if days_left <= self._warning_days:
            suffix = "day" if days_left == 1 else "days"
            return f"Membership expires in {days_left} {suffix}"
        return None

    async def _require_active_organization(self, organization_id: UUID) -> None:
        result = await self._session.execute(
            select(Organization.is_active).where(Organization.id == organization_id)
        )
        is_active = result.scalar_one_or_none()
        if is_active is None:
            raise NotFoundError(f"Organization {organization_id} not found")
        if not is_active:
            raise TenantSuspendedError(f"Organization {organization_id} is suspended")

    async def _get_member(self, organization_id: UUID, member_code: str) -> Member:
        code = member_code.strip().upper()
        result = await self._session.execute(
            select(Member).where(Member.organization_id == organization_id, Member.code == code)
        )
        member = result.scalar_one_or_none()
        if member is None:
            raise MemberNotFoundError(f"Member with code {code} not found")
        if not member.is_active:
            raise MemberInactiveError(f"Member {code} is inactive")
        return member

    async def _get_active_membership(self, organization_id: UUID, member_id: UUID) -> Membership:
        stmt = (
            select(Membership)
            .options(selectinload(Membership.discipline))
            .where(
                Membership.organization_id == organization_id,
                Membership.member_id == member_id,
                Membership.status == MembershipStatusEnum.ACTIVE,
            )
            .order_by(Membership.end_date.desc(), Membership.created_at.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        membership = result.scalar_one_or_none()
        if membership is None:
            raise NoActiveMembershipError(f"Member {member_id} has no active membership")
        return membership


__all__ = [
    "AlreadyCheckedIn",
    "CheckInGuard",
    "CheckInResult",
    "MemberSnapshot",
    "MembershipSnapshot",
]
