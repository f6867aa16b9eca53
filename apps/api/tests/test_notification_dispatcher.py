from datetime import timedelta

import pytest
from sqlalchemy import select

from gymdesk_api.models.notification import (
    NotificationAttempt,
    NotificationStatusEnum,
    NotificationTypeEnum,
)
from gymdesk_api.services.notifications import DispatchTarget, NotificationBucket, NotificationDispatcher
from gymdesk_api.services.notifications.templates import render_bucket_message


async def _target(seed, clock, *, chat_id="555001", days=7):
    organization = await seed.organization("Iron & Steel")
    member = await seed.member(organization.id, name="Ana <Rojas>", chat_id=chat_id)
    discipline = await seed.discipline(organization.id, "Crossfit")
    membership = await seed.membership(
        organization.id, member.id, discipline.id, end_date=clock.now() + timedelta(days=days)
    )
    return DispatchTarget.from_models(organization, member, membership, discipline_name=discipline.name)


async def _attempts(session_factory):
    async with session_factory() as session:
        result = await session.execute(select(NotificationAttempt))
        return result.scalars().all()


@pytest.mark.asyncio
async def test_dispatch_sends_rendered_message_and_records_sent(
    session_factory, clock, seed, registry, channel_factory
) -> None:
    target = await _target(seed, clock)
    await registry.start(target.organization_id, "bot")

    async with session_factory() as session:
        dispatcher = NotificationDispatcher(session, registry, clock=clock)
        status = await dispatcher.dispatch(target, NotificationBucket.EXPIRING_IN_7)

    assert status is NotificationStatusEnum.SENT
    [(recipient, text)] = channel_factory.channels["bot"].sent_messages
    assert recipient == "555001"
    assert "Ana &lt;Rojas&gt;" in text
    assert "Iron &amp; Steel" in text
    assert "17/03/2026" in text
    assert "<b>7 days</b>" in text

    [attempt] = await _attempts(session_factory)
    assert attempt.type is NotificationTypeEnum.EXPIRING_SOON
    assert attempt.status is NotificationStatusEnum.SENT
    assert attempt.dedup_day == clock.local_date()
    assert attempt.error is None
    assert attempt.message == text


@pytest.mark.asyncio
async def test_dispatch_records_failed_attempt_when_channel_rejects(
    session_factory, clock, seed, registry, channel_factory
) -> None:
    target = await _target(seed, clock, days=3)
    channel_factory.fail_with = "Forbidden: bot was blocked by the user"
    await registry.start(target.organization_id, "bot")

    async with session_factory() as session:
        dispatcher = NotificationDispatcher(session, registry, clock=clock)
        status = await dispatcher.dispatch(target, NotificationBucket.EXPIRING_IN_3)

    assert status is NotificationStatusEnum.FAILED
    [attempt] = await _attempts(session_factory)
    assert attempt.status is NotificationStatusEnum.FAILED
    assert attempt.error == "Forbidden: bot was blocked by the user"
    assert attempt.dedup_day is None


@pytest.mark.asyncio
async def test_dispatch_without_channel_records_failure(session_factory, clock, seed, registry) -> None:
    target = await _target(seed, clock, days=0)

    async with session_factory() as session:
        dispatcher = NotificationDispatcher(session, registry, clock=clock)
        status = await dispatcher.dispatch(target, NotificationBucket.EXPIRED)

    assert status is NotificationStatusEnum.FAILED
    [attempt] = await _attempts(session_factory)
    assert attempt.type is NotificationTypeEnum.EXPIRED
    assert "not configured" in attempt.error


@pytest.mark.asyncio
async def test_dispatch_without_recipient_is_a_no_op(session_factory, clock, seed, registry, channel_factory) -> None:
    target = await _target(seed, clock, chat_id=None)
    await registry.start(target.organization_id, "bot")

    async with session_factory() as session:
        dispatcher = NotificationDispatcher(session, registry, clock=clock)
        status = await dispatcher.dispatch(target, NotificationBucket.EXPIRING_IN_7)

    assert status is None
    assert channel_factory.channels["bot"].sent_messages == []
    assert await _attempts(session_factory) == []


@pytest.mark.asyncio
async def test_manual_dispatch_is_not_constrained_by_daily_backstop(
    session_factory, clock, seed, registry, channel_factory
) -> None:
    target = await _target(seed, clock)
    await registry.start(target.organization_id, "bot")

    async with session_factory() as session:
        dispatcher = NotificationDispatcher(session, registry, clock=clock)
        await dispatcher.dispatch(target, NotificationBucket.EXPIRING_IN_7)
        await dispatcher.dispatch(target, NotificationBucket.EXPIRING_IN_7, manual=True)

    attempts = await _attempts(session_factory)
    assert len(attempts) == 2
    assert sorted(attempt.dedup_day is None for attempt in attempts) == [False, True]
    assert len(channel_factory.channels["bot"].sent_messages) == 2


@pytest.mark.asyncio
async def test_send_welcome_records_welcome_attempt(session_factory, clock, seed, registry, channel_factory) -> None:
    organization = await seed.organization("Iron Temple")
    member = await seed.member(organization.id, code="M042", name="Luis")
    await registry.start(organization.id, "bot")

    async with session_factory() as session:
        dispatcher = NotificationDispatcher(session, registry, clock=clock)
        status = await dispatcher.send_welcome(DispatchTarget.from_models(organization, member))

    assert status is NotificationStatusEnum.SENT
    [(_, text)] = channel_factory.channels["bot"].sent_messages
    assert "Welcome to Iron Temple" in text
    assert "M042" in text
    [attempt] = await _attempts(session_factory)
    assert attempt.type is NotificationTypeEnum.WELCOME
    assert attempt.dedup_day is None


def test_expired_template_omits_date_and_names_discipline(clock) -> None:
    text = render_bucket_message(
        NotificationBucket.EXPIRED,
        member_name="Ana",
        discipline_name="Yoga",
        end_date=clock.now(),
        organization_name="Iron Temple",
        tz=clock.tz,
    )
    assert "Yoga membership expires today" in text
    assert "/2026" not in text


def test_template_formats_end_date_in_local_timezone(clock) -> None:
    # 02:00 UTC on the 18th is still the 17th in La Paz.
    end_date = clock.now().replace(day=18, hour=2)
    text = render_bucket_message(
        NotificationBucket.EXPIRING_IN_7,
        member_name="Ana",
        discipline_name="Yoga",
        end_date=end_date,
        organization_name="Iron Temple",
        tz=clock.tz,
    )
    assert "17/03/2026" in text
