from datetime import timedelta

import pytest
from sqlalchemy import func, select

from gymdesk_api.models.attendance import Attendance
from gymdesk_api.models.notification import (
    NotificationAttempt,
    NotificationStatusEnum,
    NotificationTypeEnum,
)
from gymdesk_api.services.errors import DuplicateCheckInError
from gymdesk_api.services.notifications.ledger import NotificationLedger


@pytest.mark.asyncio
async def test_was_notified_today_only_counts_sent_attempts(session_factory, clock, seed) -> None:
    organization = await seed.organization()
    member = await seed.member(organization.id)

    async with session_factory() as session:
        ledger = NotificationLedger(session, clock=clock)
        assert not await ledger.was_notified_today(organization.id, member.id, NotificationTypeEnum.EXPIRING_SOON)

        await ledger.record_attempt(
            organization_id=organization.id,
            member_id=member.id,
            notification_type=NotificationTypeEnum.EXPIRING_SOON,
            status=NotificationStatusEnum.FAILED,
            message="hello",
            error="chat not found",
        )
        assert not await ledger.was_notified_today(organization.id, member.id, NotificationTypeEnum.EXPIRING_SOON)

        await ledger.record_attempt(
            organization_id=organization.id,
            member_id=member.id,
            notification_type=NotificationTypeEnum.EXPIRING_SOON,
            status=NotificationStatusEnum.SENT,
            message="hello",
        )
        assert await ledger.was_notified_today(organization.id, member.id, NotificationTypeEnum.EXPIRING_SOON)
        assert not await ledger.was_notified_today(organization.id, member.id, NotificationTypeEnum.EXPIRED)


@pytest.mark.asyncio
async def test_was_notified_today_resets_at_local_midnight(session_factory, clock, seed) -> None:
    organization = await seed.organization()
    member = await seed.member(organization.id)

    async with session_factory() as session:
        ledger = NotificationLedger(session, clock=clock)
        await ledger.record_attempt(
            organization_id=organization.id,
            member_id=member.id,
            notification_type=NotificationTypeEnum.EXPIRED,
            status=NotificationStatusEnum.SENT,
            message="expired",
        )

        # 23:59 local the same day.
        clock.advance(hours=13, minutes=59)
        assert await ledger.was_notified_today(organization.id, member.id, NotificationTypeEnum.EXPIRED)

        clock.advance(minutes=2)
        assert not await ledger.was_notified_today(organization.id, member.id, NotificationTypeEnum.EXPIRED)


@pytest.mark.asyncio
async def test_record_attempt_backstop_suppresses_duplicate_scheduled_send(session_factory, clock, seed) -> None:
    organization = await seed.organization()
    member = await seed.member(organization.id)

    async with session_factory() as session:
        ledger = NotificationLedger(session, clock=clock)
        first = await ledger.record_attempt(
            organization_id=organization.id,
            member_id=member.id,
            notification_type=NotificationTypeEnum.EXPIRING_SOON,
            status=NotificationStatusEnum.SENT,
            message="first",
            enforce_daily_limit=True,
        )
        assert first is not None
        assert first.dedup_day == clock.local_date()

        clock.advance(hours=1)
        second = await ledger.record_attempt(
            organization_id=organization.id,
            member_id=member.id,
            notification_type=NotificationTypeEnum.EXPIRING_SOON,
            status=NotificationStatusEnum.SENT,
            message="second",
            enforce_daily_limit=True,
        )
        manual = await ledger.record_attempt(
            organization_id=organization.id,
            member_id=member.id,
            notification_type=NotificationTypeEnum.EXPIRING_SOON,
            status=NotificationStatusEnum.SENT,
            message="manual",
        )

    assert second is None
    assert manual is not None
    assert manual.dedup_day is None

    async with session_factory() as session:
        count = await session.scalar(select(func.count()).select_from(NotificationAttempt))
    assert count == 2


@pytest.mark.asyncio
async def test_find_checkin_today_uses_local_day_bounds(session_factory, clock, seed) -> None:
    organization = await seed.organization()
    member = await seed.member(organization.id)

    async with session_factory() as session:
        ledger = NotificationLedger(session, clock=clock)
        assert not await ledger.has_checked_in_today(organization.id, member.id)

        attendance = await ledger.record_checkin(organization_id=organization.id, member_id=member.id)
        assert attendance.checkin_day == clock.local_date()
        assert await ledger.has_checked_in_today(organization.id, member.id)

        clock.advance(days=1)
        assert not await ledger.has_checked_in_today(organization.id, member.id)


@pytest.mark.asyncio
async def test_record_checkin_backstop_returns_winning_row(session_factory, clock, seed) -> None:
    organization = await seed.organization()
    member = await seed.member(organization.id)

    async with session_factory() as session:
        ledger = NotificationLedger(session, clock=clock)
        winner = await ledger.record_checkin(organization_id=organization.id, member_id=member.id)
        winner_id = winner.id

    clock.advance(minutes=5)
    async with session_factory() as session:
        ledger = NotificationLedger(session, clock=clock)
        with pytest.raises(DuplicateCheckInError) as excinfo:
            await ledger.record_checkin(organization_id=organization.id, member_id=member.id)

    assert excinfo.value.existing.id == winner_id
    assert excinfo.value.existing.checked_at.replace(tzinfo=None) == (clock.now() - timedelta(minutes=5)).replace(
        tzinfo=None
    )

    async with session_factory() as session:
        count = await session.scalar(select(func.count()).select_from(Attendance))
    assert count == 1
