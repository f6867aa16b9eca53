import sys
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from uuid import UUID

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine


def _configure_path() -> None:
    src_path = Path(__file__).resolve().parents[1] / "src"
    if src_path.exists():
        sys.path.insert(0, str(src_path))


_configure_path()

from gymdesk_api.app import create_app  # noqa: E402
from gymdesk_api.core.clock import FrozenClock, as_utc  # noqa: E402
from gymdesk_api.db.base import Base  # noqa: E402
from gymdesk_api.db.session import get_session  # noqa: E402
from gymdesk_api.models.discipline import Discipline  # noqa: E402
from gymdesk_api.models.member import Member  # noqa: E402
from gymdesk_api.models.membership import Membership, MembershipStatusEnum  # noqa: E402
from gymdesk_api.models.organization import Organization  # noqa: E402
from gymdesk_api.services.notifications import (  # noqa: E402
    ChannelRegistry,
    ExpirationSweep,
    InMemoryChannel,
)

GYM_TIMEZONE = "America/La_Paz"
# 10:00 local time in La Paz (UTC-4).
FROZEN_NOW = datetime(2026, 3, 10, 14, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    try:
        yield factory
    finally:
        await engine.dispose()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(FROZEN_NOW, GYM_TIMEZONE)


class ChannelFactory:
    """Hands out in-memory channels and remembers them by token."""

    def __init__(self) -> None:
        self.channels: dict[str, InMemoryChannel] = {}
        self.fail_with: str | None = None

    def __call__(self, token: str) -> InMemoryChannel:
        channel = InMemoryChannel(username=f"{token}_bot", fail_with=self.fail_with)
        self.channels[token] = channel
        return channel


@pytest.fixture
def channel_factory() -> ChannelFactory:
    return ChannelFactory()


@pytest.fixture
def registry(session_factory, channel_factory) -> ChannelRegistry:
    return ChannelRegistry(channel_factory=channel_factory, session_factory=session_factory)


class GymSeeder:
    """Small helpers to insert tenant-scoped rows for tests."""

    def __init__(self, session_factory, clock: FrozenClock) -> None:
        self._session_factory = session_factory
        self._clock = clock

    async def _add(self, instance):
        async with self._session_factory() as session:
            session.add(instance)
            await session.commit()
            await session.refresh(instance)
        return instance

    async def organization(
        self,
        name: str = "Iron Temple",
        *,
        token: str | None = None,
        is_active: bool = True,
    ) -> Organization:
        return await self._add(Organization(name=name, telegram_bot_token=token, is_active=is_active))

    async def member(
        self,
        organization_id: UUID,
        code: str = "M001",
        name: str = "Ana Rojas",
        *,
        chat_id: str | None = "555001",
        is_active: bool = True,
    ) -> Member:
        return await self._add(
            Member(
                organization_id=organization_id,
                code=code,
                name=name,
                telegram_chat_id=chat_id,
                is_active=is_active,
            )
        )

    async def discipline(self, organization_id: UUID, name: str = "Crossfit") -> Discipline:
        return await self._add(Discipline(organization_id=organization_id, name=name))

    async def membership(
        self,
        organization_id: UUID,
        member_id: UUID,
        discipline_id: UUID,
        *,
        end_date: datetime,
        start_date: datetime | None = None,
        status: MembershipStatusEnum = MembershipStatusEnum.ACTIVE,
        amount_paid: Decimal = Decimal("150.00"),
    ) -> Membership:
        return await self._add(
            Membership(
                organization_id=organization_id,
                member_id=member_id,
                discipline_id=discipline_id,
                start_date=as_utc(start_date or datetime(2026, 1, 1, tzinfo=timezone.utc)),
                end_date=as_utc(end_date),
                status=status,
                amount_paid=amount_paid,
            )
        )


@pytest.fixture
def seed(session_factory, clock) -> GymSeeder:
    return GymSeeder(session_factory, clock)


@pytest_asyncio.fixture
async def app_with_db(session_factory, clock, registry):
    app = create_app()

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.state.clock = clock
    app.state.channel_registry = registry
    app.state.expiration_sweep = ExpirationSweep(session_factory, registry, clock=clock)

    try:
        yield app, session_factory
    finally:
        app.dependency_overrides.clear()
        await registry.stop_all()
