"""Expiration sweep: notify members whose memberships are about to end."""

from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List
from uuid import UUID

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from gymdesk_api.core.clock import Clock
from gymdesk_api.models.membership import Membership, MembershipStatusEnum
from gymdesk_api.models.notification import NotificationStatusEnum
from gymdesk_api.models.organization import Organization

from .buckets import NotificationBucket, classify_remaining_days, dedup_category, remaining_days
from .channels import ChannelRegistry
from .dispatcher import DispatchTarget, NotificationDispatcher
from .ledger import NotificationLedger

SessionFactory = Callable[[], AsyncSession] | Callable[[], Awaitable[AsyncSession]]

DEFAULT_LOOKAHEAD_DAYS = 8


@dataclass
class SweepSummary:
    manual: bool
    started_at: datetime
    dry_run: bool = False
    completed_at: datetime | None = None
    organizations: int = 0
    candidates: int = 0
    sent: int = 0
    failed: int = 0
    errors: int = 0
    skipped_no_member: int = 0
    skipped_out_of_window: int = 0
    skipped_already_notified: int = 0
    skipped_no_recipient: int = 0

    def as_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["started_at"] = self.started_at.isoformat()
        payload["completed_at"] = self.completed_at.isoformat() if self.completed_at else None
        return payload


@dataclass(frozen=True, slots=True)
class _Candidate:
    target: DispatchTarget | None
    membership_id: UUID
    end_date: datetime


@dataclass(slots=True)
class _OrganizationBatch:
    organization_id: UUID
    name: str
    candidates: List[_Candidate] = field(default_factory=list)


class ExpirationSweep:
    """Walks active memberships inside the lookahead window and dispatches reminders.

    Runs are serialized through a single-slot lock shared by the scheduler and
    the manual trigger. The sweep only notifies; it never changes membership
    status.

    With ``record_attempts=False`` (dry runs) nothing is written, so the
    daily guard and the attempt history are left as they were.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        registry: ChannelRegistry,
        *,
        clock: Clock,
        lookahead_days: int = DEFAULT_LOOKAHEAD_DAYS,
        record_attempts: bool = True,
    ) -> None:
        self._session_factory = session_factory
        self._record_attempts = record_attempts
        self._registry = registry
        self._clock = clock
        self.lookahead_days = lookahead_days
        self._run_lock = asyncio.Lock()
        self.last_summary: SweepSummary | None = None

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    async def trigger(self, *, manual: bool = False, wait: bool = True) -> SweepSummary | None:
        """Entry point for schedulers and manual requests; errors are logged, not raised.

        With ``wait=False`` an in-flight run makes this call a no-op instead of
        queueing behind it.
        """

        if not wait and self._run_lock.locked():
            logger.warning("Expiration sweep already running; skipping trigger", manual=manual)
            return None
        try:
            return await self.run(manual=manual)
        except Exception as exc:
            logger.exception("Expiration sweep failed", manual=manual, error=str(exc))
            return None

    async def run(self, *, manual: bool = False) -> SweepSummary:
        async with self._run_lock:
            summary = await self._execute(manual=manual)
        self.last_summary = summary
        return summary

    async def _execute(self, *, manual: bool) -> SweepSummary:
        now = self._clock.now()
        summary = SweepSummary(manual=manual, started_at=now, dry_run=not self._record_attempts)
        today = self._clock.start_of_day(now)
        horizon = self._clock.local_midnight(self._clock.local_date(now) + timedelta(days=self.lookahead_days))
        logger.info(
            "Expiration sweep started",
            manual=manual,
            window_start=today.isoformat(),
            window_end=horizon.isoformat(),
        )

        session = await self._ensure_session()
        async with session as managed_session:
            batches = await self._load_candidates(managed_session, today, horizon)
            summary.organizations = len(batches)

            ledger = NotificationLedger(managed_session, clock=self._clock)
            dispatcher = NotificationDispatcher(
                managed_session,
                self._registry,
                clock=self._clock,
                ledger=ledger,
                record_attempts=self._record_attempts,
            )

            for batch in batches:
                for candidate in batch.candidates:
                    summary.candidates += 1
                    try:
                        await self._process(candidate, ledger, dispatcher, summary, manual=manual, now=now)
                    except Exception as exc:
                        summary.errors += 1
                        await managed_session.rollback()
                        logger.exception(
                            "Expiration sweep item failed",
                            organization_id=str(batch.organization_id),
                            membership_id=str(candidate.membership_id),
                            error=str(exc),
                        )

        summary.completed_at = self._clock.now()
        logger.bind(summary=summary.as_dict()).info("Expiration sweep completed")
        return summary

    async def _process(
        self,
        candidate: _Candidate,
        ledger: NotificationLedger,
        dispatcher: NotificationDispatcher,
        summary: SweepSummary,
        *,
        manual: bool,
        now: datetime,
    ) -> None:
        target = candidate.target
        if target is None:
            summary.skipped_no_member += 1
            logger.warning("Membership has no resolvable member", membership_id=str(candidate.membership_id))
            return

        days = remaining_days(candidate.end_date, now, self._clock.tz)
        bucket = classify_remaining_days(days)
        if bucket is NotificationBucket.NONE:
            summary.skipped_out_of_window += 1
            logger.debug(
                "Membership outside notification windows",
                membership_id=str(candidate.membership_id),
                remaining_days=days,
            )
            return

        category = dedup_category(bucket)
        if not manual and await ledger.was_notified_today(target.organization_id, target.member_id, category):
            summary.skipped_already_notified += 1
            logger.info(
                "Member already notified today",
                member_id=str(target.member_id),
                category=category.value,
            )
            return

        status = await dispatcher.dispatch(target, bucket, manual=manual)
        if status is None:
            summary.skipped_no_recipient += 1
        elif status is NotificationStatusEnum.SENT:
            summary.sent += 1
        else:
            summary.failed += 1

    async def _load_candidates(
        self,
        session: AsyncSession,
        window_start: datetime,
        window_end: datetime,
    ) -> List[_OrganizationBatch]:
        organizations = await session.execute(
            select(Organization.id, Organization.name)
            .where(Organization.is_active.is_(True))
            .order_by(Organization.name)
        )
        batches = [_OrganizationBatch(organization_id=row.id, name=row.name) for row in organizations]

        for batch in batches:
            stmt = (
                select(Membership)
                .options(selectinload(Membership.member), selectinload(Membership.discipline))
                .where(
                    Membership.organization_id == batch.organization_id,
                    Membership.status == MembershipStatusEnum.ACTIVE,
                    Membership.end_date >= window_start,
                    Membership.end_date <= window_end,
                )
                .order_by(Membership.end_date.asc())
            )
            result = await session.execute(stmt)
            for membership in result.scalars():
                member = membership.member
                target = None
                if member is not None and member.organization_id == batch.organization_id:
                    target = DispatchTarget(
                        organization_id=batch.organization_id,
                        organization_name=batch.name,
                        member_id=member.id,
                        member_name=member.name,
                        member_code=member.code,
                        recipient=member.telegram_chat_id or None,
                        membership_id=membership.id,
                        discipline_name=membership.discipline.name if membership.discipline else None,
                        end_date=membership.end_date,
                    )
                batch.candidates.append(
                    _Candidate(target=target, membership_id=membership.id, end_date=membership.end_date)
                )
        return batches

    async def _ensure_session(self) -> AsyncSession:
        maybe_session = self._session_factory()
        if isinstance(maybe_session, AsyncSession):
            return maybe_session
        return await maybe_session


__all__ = ["DEFAULT_LOOKAHEAD_DAYS", "ExpirationSweep", "SweepSummary"]
