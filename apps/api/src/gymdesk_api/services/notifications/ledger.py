"""Per-day uniqueness checks for notifications and check-ins."""

from __future__ import annotations

from uuid import UUID

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gymdesk_api.core.clock import Clock
from gymdesk_api.models.attendance import Attendance
from gymdesk_api.models.notification import (
    NotificationAttempt,
    NotificationChannelEnum,
    NotificationStatusEnum,
    NotificationTypeEnum,
)
from gymdesk_api.services.errors import DuplicateCheckInError


class NotificationLedger:
    """Reads and writes the records that back the at-most-once-per-day rules.

    There is no cache: every check is a fresh query, and callers are expected to
    write right after checking. The unique indexes on ``attendances`` and
    ``notification_attempts`` catch the races the checks cannot.
    """

    def __init__(self, session: AsyncSession, *, clock: Clock) -> None:
        self._session = session
        self._clock = clock

    async def was_notified_today(
        self,
        organization_id: UUID,
        member_id: UUID,
        category: NotificationTypeEnum,
    ) -> bool:
        now = self._clock.now()
        stmt = (
            select(NotificationAttempt.id)
            .where(
                NotificationAttempt.organization_id == organization_id,
                NotificationAttempt.member_id == member_id,
                NotificationAttempt.type == category,
                NotificationAttempt.status == NotificationStatusEnum.SENT,
                NotificationAttempt.sent_at >= self._clock.start_of_day(now),
                NotificationAttempt.sent_at <= now,
            )
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def record_attempt(
        self,
        *,
        organization_id: UUID,
        member_id: UUID,
        notification_type: NotificationTypeEnum,
        status: NotificationStatusEnum,
        message: str,
        error: str | None = None,
        enforce_daily_limit: bool = False,
    ) -> NotificationAttempt | None:
        """Persist one attempt. Returns ``None`` when the daily backstop rejects it."""

        sent_at = self._clock.now()
        dedup_day = None
        if enforce_daily_limit and status == NotificationStatusEnum.SENT:
            dedup_day = self._clock.local_date(sent_at)

        attempt = NotificationAttempt(
            organization_id=organization_id,
            member_id=member_id,
            type=notification_type,
            channel=NotificationChannelEnum.TELEGRAM,
            status=status,
            sent_at=sent_at,
            dedup_day=dedup_day,
            message=message,
            error=error,
        )
        self._session.add(attempt)
        try:
            await self._session.commit()
        except IntegrityError:
            await self._session.rollback()
            logger.warning(
                "Duplicate notification suppressed by daily constraint",
                organization_id=str(organization_id),
                member_id=str(member_id),
                notification_type=notification_type.value,
            )
            return None
        return attempt

    async def find_checkin_today(self, organization_id: UUID, member_id: UUID) -> Attendance | None:
        start, end = self._clock.day_bounds()
        stmt = (
            select(Attendance)
            .where(
                Attendance.organization_id == organization_id,
                Attendance.member_id == member_id,
                Attendance.checked_at >= start,
                Attendance.checked_at < end,
            )
            .order_by(Attendance.checked_at.asc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def has_checked_in_today(self, organization_id: UUID, member_id: UUID) -> bool:
        return await self.find_checkin_today(organization_id, member_id) is not None

    async def record_checkin(
        self,
        *,
        organization_id: UUID,
        member_id: UUID,
        notes: str | None = None,
    ) -> Attendance:
        checked_at = self._clock.now()
        attendance = Attendance(
            organization_id=organization_id,
            member_id=member_id,
            checked_at=checked_at,
            checkin_day=self._clock.local_date(checked_at),
            notes=notes,
        )
        self._session.add(attendance)
        try:
            await self._session.commit()
        except IntegrityError as exc:
            await self._session.rollback()
            existing = await self.find_checkin_today(organization_id, member_id)
            if existing is None:
                raise
            raise DuplicateCheckInError(existing) from exc
        return attendance


__all__ = ["NotificationLedger"]
