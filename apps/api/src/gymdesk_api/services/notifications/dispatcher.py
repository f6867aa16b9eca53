"""Render membership notifications, deliver them, and record the outcome."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from gymdesk_api.core.clock import Clock
from gymdesk_api.models.member import Member
from gymdesk_api.models.membership import Membership
from gymdesk_api.models.notification import NotificationStatusEnum, NotificationTypeEnum
from gymdesk_api.models.organization import Organization

from .buckets import NotificationBucket, dedup_category
from .channels import ChannelRegistry
from .ledger import NotificationLedger
from .templates import render_bucket_message, render_welcome


@dataclass(frozen=True, slots=True)
class DispatchTarget:
    """Detached view of who gets a message and what it is about.

    Built before any write so that a rollback (which expires ORM instances)
    cannot trigger lazy loads mid-sweep.
    """

    organization_id: UUID
    organization_name: str
    member_id: UUID
    member_name: str
    member_code: str
    recipient: str | None
    membership_id: UUID | None = None
    discipline_name: str | None = None
    end_date: datetime | None = None

    @classmethod
    def from_models(
        cls,
        organization: Organization,
        member: Member,
        membership: Membership | None = None,
        *,
        discipline_name: str | None = None,
    ) -> "DispatchTarget":
        return cls(
            organization_id=organization.id,
            organization_name=organization.name,
            member_id=member.id,
            member_name=member.name,
            member_code=member.code,
            recipient=member.telegram_chat_id or None,
            membership_id=membership.id if membership is not None else None,
            discipline_name=discipline_name,
            end_date=membership.end_date if membership is not None else None,
        )


class NotificationDispatcher:
    """Coordinates template rendering, channel delivery and attempt recording."""

    def __init__(
        self,
        session: AsyncSession,
        registry: ChannelRegistry,
        *,
        clock: Clock,
        ledger: NotificationLedger | None = None,
        record_attempts: bool = True,
    ) -> None:
        self._registry = registry
        self._record_attempts = record_attempts
        self._clock = clock
        self._ledger = ledger or NotificationLedger(session, clock=clock)

    async def dispatch(
        self,
        target: DispatchTarget,
        bucket: NotificationBucket,
        *,
        manual: bool = False,
    ) -> NotificationStatusEnum | None:
        """Send the bucket's message. ``None`` means the member has no recipient handle."""

        if not target.recipient:
            logger.info(
                "Member has no messaging recipient; skipping",
                organization_id=str(target.organization_id),
                member_id=str(target.member_id),
                bucket=bucket.value,
            )
            return None
        if target.end_date is None:
            raise ValueError("Expiration notifications require a membership end date")

        message = render_bucket_message(
            bucket,
            member_name=target.member_name,
            discipline_name=target.discipline_name or "",
            end_date=target.end_date,
            organization_name=target.organization_name,
            tz=self._clock.tz,
        )
        return await self._deliver(
            target,
            target.recipient,
            dedup_category(bucket),
            message,
            enforce_daily_limit=not manual,
            bucket=bucket.value,
        )

    async def send_welcome(self, target: DispatchTarget) -> NotificationStatusEnum | None:
        if not target.recipient:
            logger.info(
                "Member has no messaging recipient; welcome skipped",
                organization_id=str(target.organization_id),
                member_id=str(target.member_id),
            )
            return None

        message = render_welcome(target.member_name, target.member_code, target.organization_name)
        return await self._deliver(target, target.recipient, NotificationTypeEnum.WELCOME, message, enforce_daily_limit=False)

    async def _deliver(
        self,
        target: DispatchTarget,
        recipient: str,
        notification_type: NotificationTypeEnum,
        message: str,
        *,
        enforce_daily_limit: bool,
        bucket: str | None = None,
    ) -> NotificationStatusEnum:
        result = await self._registry.send(target.organization_id, recipient, message)
        status = NotificationStatusEnum.SENT if result.delivered else NotificationStatusEnum.FAILED

        attempt = None
        if self._record_attempts:
            attempt = await self._ledger.record_attempt(
                organization_id=target.organization_id,
                member_id=target.member_id,
                notification_type=notification_type,
                status=status,
                message=message,
                error=result.error,
                enforce_daily_limit=enforce_daily_limit,
            )
        log = logger.info if result.delivered else logger.warning
        log(
            "Notification attempt recorded" if self._record_attempts else "Notification attempt (not recorded)",
            organization_id=str(target.organization_id),
            member_id=str(target.member_id),
            membership_id=str(target.membership_id) if target.membership_id else None,
            notification_type=notification_type.value,
            bucket=bucket,
            status=status.value,
            recorded=attempt is not None,
            error=result.error,
        )
        return status


__all__ = ["DispatchTarget", "NotificationDispatcher"]
