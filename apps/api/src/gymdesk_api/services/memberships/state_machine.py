"""Membership lifecycle: creation, expiry and renewal."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from dateutil.relativedelta import relativedelta
from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from gymdesk_api.core.clock import Clock, as_utc
from gymdesk_api.models.discipline import Discipline
from gymdesk_api.models.member import Member
from gymdesk_api.models.membership import Membership, MembershipStatusEnum
from gymdesk_api.services.errors import (
    DisciplineNotFoundError,
    InvalidMembershipError,
    InvalidMembershipTransitionError,
    MemberNotFoundError,
    MembershipConflictError,
    MembershipNotFoundError,
)


class MembershipStateMachine:
    """Owns membership status changes. ACTIVE -> EXPIRED is the only transition."""

    _ALLOWED_TRANSITIONS: dict[MembershipStatusEnum, set[MembershipStatusEnum]] = {
        MembershipStatusEnum.ACTIVE: {MembershipStatusEnum.EXPIRED},
        MembershipStatusEnum.EXPIRED: set(),
    }

    def __init__(self, session: AsyncSession, *, clock: Clock) -> None:
        self._session = session
        self._clock = clock

    async def create(
        self,
        organization_id: UUID,
        *,
        member_id: UUID,
        discipline_id: UUID,
        start_date: datetime,
        end_date: datetime,
        amount_paid: Decimal,
        payment_method: str | None = None,
        notes: str | None = None,
    ) -> Membership:
        """Create an ACTIVE membership for a member and discipline of the same organization."""

        await self._get_member(organization_id, member_id)
        await self._get_discipline(organization_id, discipline_id)

        start_date = as_utc(start_date)
        end_date = as_utc(end_date)
        if end_date <= start_date:
            raise InvalidMembershipError("Membership end date must be after its start date")
        self._validate_amount(amount_paid)

        existing = await self.get_active_membership(organization_id, member_id, discipline_id)
        if existing is not None:
            raise MembershipConflictError(
                f"Member {member_id} already has an active membership {existing.id} for this discipline"
            )

        membership = Membership(
            organization_id=organization_id,
            member_id=member_id,
            discipline_id=discipline_id,
            start_date=start_date,
            end_date=end_date,
            status=MembershipStatusEnum.ACTIVE,
            amount_paid=amount_paid,
            payment_method=payment_method,
            notes=notes,
        )
        self._session.add(membership)
        await self._session.commit()
        await self._session.refresh(membership)
        logger.info(
            "Membership created",
            organization_id=str(organization_id),
            membership_id=str(membership.id),
            member_id=str(member_id),
            discipline_id=str(discipline_id),
            end_date=end_date.isoformat(),
        )
        return membership

    async def renew(
        self,
        organization_id: UUID,
        membership_id: UUID,
        *,
        num_months: int,
        amount_paid: Decimal,
        payment_method: str | None = None,
        notes: str | None = None,
    ) -> Membership:
        """Expire the old membership and start a new one from now.

        Renewal is authoritative: the old row is expired whether or not it had
        reached its end date. Every ACTIVE row for the same member and
        discipline is expired and flushed before the replacement is inserted.
        """

        if num_months < 1:
            raise InvalidMembershipError("Renewal must cover at least one month")
        self._validate_amount(amount_paid)

        old = await self._get_membership(organization_id, membership_id)
        member_id = old.member_id
        discipline_id = old.discipline_id
        previous_status = old.status

        await self._session.execute(
            update(Membership)
            .where(
                Membership.organization_id == organization_id,
                Membership.member_id == member_id,
                Membership.discipline_id == discipline_id,
                Membership.status == MembershipStatusEnum.ACTIVE,
            )
            .values(status=MembershipStatusEnum.EXPIRED)
            .execution_options(synchronize_session="fetch")
        )
        await self._session.flush()

        start_date = self._clock.now()
        local_start = start_date.astimezone(self._clock.tz)
        end_date = as_utc(local_start + relativedelta(months=num_months))

        renewed = Membership(
            organization_id=organization_id,
            member_id=member_id,
            discipline_id=discipline_id,
            start_date=start_date,
            end_date=end_date,
            status=MembershipStatusEnum.ACTIVE,
            amount_paid=amount_paid,
            payment_method=payment_method,
            notes=notes,
        )
        self._session.add(renewed)
        await self._session.commit()
        await self._session.refresh(renewed)
        logger.info(
            "Membership renewed",
            organization_id=str(organization_id),
            previous_membership_id=str(membership_id),
            previous_status=previous_status.value,
            membership_id=str(renewed.id),
            num_months=num_months,
            end_date=end_date.isoformat(),
        )
        return renewed

    async def expire(self, organization_id: UUID, membership_id: UUID) -> Membership:
        membership = await self._get_membership(organization_id, membership_id)
        self._transition(membership, MembershipStatusEnum.EXPIRED)
        await self._session.commit()
        await self._session.refresh(membership)
        logger.info(
            "Membership expired",
            organization_id=str(organization_id),
            membership_id=str(membership_id),
        )
        return membership

    async def get_active_membership(
        self,
        organization_id: UUID,
        member_id: UUID,
        discipline_id: UUID | None = None,
    ) -> Membership | None:
        """Latest-ending ACTIVE membership; newest row wins ties."""

        stmt = select(Membership).where(
            Membership.organization_id == organization_id,
            Membership.member_id == member_id,
            Membership.status == MembershipStatusEnum.ACTIVE,
        )
        if discipline_id is not None:
            stmt = stmt.where(Membership.discipline_id == discipline_id)
        stmt = stmt.order_by(Membership.end_date.desc(), Membership.created_at.desc()).limit(1)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    def _transition(self, membership: Membership, target: MembershipStatusEnum) -> None:
        allowed = self._ALLOWED_TRANSITIONS.get(membership.status, set())
        if target not in allowed:
            raise InvalidMembershipTransitionError(membership.status, target)
        membership.status = target

    @staticmethod
    def _validate_amount(amount_paid: Decimal) -> None:
        if Decimal(amount_paid) < 0:
            raise InvalidMembershipError("Amount paid cannot be negative")

    async def _get_membership(self, organization_id: UUID, membership_id: UUID) -> Membership:
        stmt = select(Membership).where(
            Membership.id == membership_id,
            Membership.organization_id == organization_id,
        )
        result = await self._session.execute(stmt)
        membership = result.scalar_one_or_none()
        if membership is None:
            raise MembershipNotFoundError(f"Membership {membership_id} not found")
        return membership

    async def _get_member(self, organization_id: UUID, member_id: UUID) -> Member:
        stmt = select(Member).where(Member.id == member_id, Member.organization_id == organization_id)
        result = await self._session.execute(stmt)
        member = result.scalar_one_or_none()
        if member is None:
            raise MemberNotFoundError(f"Member {member_id} not found")
        return member

    async def _get_discipline(self, organization_id: UUID, discipline_id: UUID) -> Discipline:
        stmt = select(Discipline).where(
            Discipline.id == discipline_id,
            Discipline.organization_id == organization_id,
        )
        result = await self._session.execute(stmt)
        discipline = result.scalar_one_or_none()
        if discipline is None:
            raise DisciplineNotFoundError(f"Discipline {discipline_id} not found")
        return discipline


__all__ = ["MembershipStateMachine"]
