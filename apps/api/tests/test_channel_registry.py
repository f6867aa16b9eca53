import asyncio
import json

import httpx
import pytest

from gymdesk_api.models.organization import Organization
from gymdesk_api.services.notifications.channels import (
    ChannelDeliveryError,
    ChannelRegistry,
    InMemoryChannel,
    TelegramBotChannel,
)


def _telegram_transport(calls: list[tuple[str, dict]], *, fail_send: bool = False) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content or b"{}")
        method = request.url.path.rsplit("/", 1)[-1]
        calls.append((request.url.path, payload))
        if method == "getMe":
            return httpx.Response(200, json={"ok": True, "result": {"id": 1, "username": "irontemple_bot"}})
        if method == "sendMessage" and fail_send:
            return httpx.Response(
                400,
                json={"ok": False, "error_code": 400, "description": "Bad Request: chat not found"},
            )
        return httpx.Response(200, json={"ok": True, "result": {"message_id": 10}})

    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_telegram_channel_validates_token_and_sends_html() -> None:
    calls: list[tuple[str, dict]] = []
    async with httpx.AsyncClient(transport=_telegram_transport(calls)) as client:
        channel = TelegramBotChannel("123:abc", base_url="https://telegram.test", http_client=client)
        username = await channel.start()
        await channel.send("555001", "<b>hi</b>")

    assert username == "irontemple_bot"
    assert calls[0][0] == "/bot123:abc/getMe"
    assert calls[1][0] == "/bot123:abc/sendMessage"
    assert calls[1][1] == {"chat_id": "555001", "text": "<b>hi</b>", "parse_mode": "HTML"}


@pytest.mark.asyncio
async def test_telegram_channel_raises_delivery_error_on_api_failure() -> None:
    calls: list[tuple[str, dict]] = []
    async with httpx.AsyncClient(transport=_telegram_transport(calls, fail_send=True)) as client:
        channel = TelegramBotChannel("123:abc", base_url="https://telegram.test", http_client=client)
        with pytest.raises(ChannelDeliveryError) as excinfo:
            await channel.send("555001", "hello")

    assert "chat not found" in str(excinfo.value)


@pytest.mark.asyncio
async def test_send_without_channel_reports_not_delivered(registry, seed) -> None:
    organization = await seed.organization()

    result = await registry.send(organization.id, "555001", "hello")

    assert result.delivered is False
    assert "not configured" in (result.error or "")


@pytest.mark.asyncio
async def test_start_persists_username_and_replaces_previous_channel(
    registry, channel_factory, seed, session_factory
) -> None:
    organization = await seed.organization()

    await registry.start(organization.id, "first")
    await registry.start(organization.id, "second")

    assert channel_factory.channels["first"].stopped is True
    assert channel_factory.channels["second"].started is True
    assert registry.get(organization.id) is channel_factory.channels["second"]

    async with session_factory() as session:
        stored = await session.get(Organization, organization.id)
    assert stored.telegram_bot_username == "second_bot"


@pytest.mark.asyncio
async def test_failed_start_keeps_existing_channel(registry, channel_factory, seed) -> None:
    organization = await seed.organization()
    await registry.start(organization.id, "good")

    class BrokenChannel(InMemoryChannel):
        async def start(self):
            raise ChannelDeliveryError("Unauthorized")

    registry._channel_factory = lambda token: BrokenChannel()

    with pytest.raises(ChannelDeliveryError):
        await registry.start(organization.id, "bad")

    assert registry.get(organization.id) is channel_factory.channels["good"]
    assert channel_factory.channels["good"].stopped is False


@pytest.mark.asyncio
async def test_channels_are_isolated_per_organization(registry, channel_factory, seed) -> None:
    first = await seed.organization("North Gym")
    second = await seed.organization("South Gym")
    await registry.start(first.id, "north")
    await registry.start(second.id, "south")

    channel_factory.channels["north"].fail_with = "Forbidden: bot was blocked by the user"
    failed = await registry.send(first.id, "1", "hello")
    delivered = await registry.send(second.id, "2", "hello")

    assert failed.delivered is False
    assert failed.error == "Forbidden: bot was blocked by the user"
    assert delivered.delivered is True
    assert channel_factory.channels["south"].sent_messages == [("2", "hello")]

    await registry.stop(first.id)
    assert registry.is_active(first.id) is False
    assert registry.is_active(second.id) is True


@pytest.mark.asyncio
async def test_start_all_only_starts_active_configured_organizations(registry, seed) -> None:
    configured = await seed.organization("Configured", token="tok-a")
    await seed.organization("No Token")
    suspended = await seed.organization("Suspended", token="tok-b", is_active=False)

    summary = await registry.start_all()

    assert summary == {"started": 1, "failed": 0}
    assert registry.active_organizations == [configured.id]
    assert registry.is_active(suspended.id) is False


@pytest.mark.asyncio
async def test_reconcile_in_background_restarts_and_stops(registry, channel_factory, seed) -> None:
    organization = await seed.organization()

    task = registry.reconcile_in_background(organization.id, "fresh")
    await task
    assert registry.get(organization.id) is channel_factory.channels["fresh"]

    registry.reconcile_in_background(organization.id, None)
    await registry.wait_for_background()
    assert registry.is_active(organization.id) is False
    assert channel_factory.channels["fresh"].stopped is True


@pytest.mark.asyncio
async def test_reconcile_failure_is_logged_not_raised(seed) -> None:
    organization = await seed.organization()

    class BrokenChannel(InMemoryChannel):
        async def start(self):
            raise ChannelDeliveryError("Unauthorized")

    registry = ChannelRegistry(channel_factory=lambda token: BrokenChannel())

    task = registry.reconcile_in_background(organization.id, "bad-token")
    await task

    assert task.exception() is None
    assert registry.is_active(organization.id) is False


class SlowStartChannel(InMemoryChannel):
    def __init__(self, token: str, delay: float) -> None:
        super().__init__(username=f"{token}_bot")
        self.token = token
        self._delay = delay

    async def start(self):
        await asyncio.sleep(self._delay)
        return await super().start()


@pytest.mark.asyncio
async def test_latest_reconcile_wins_over_slower_earlier_one(seed) -> None:
    organization = await seed.organization()
    made: dict[str, SlowStartChannel] = {}
    delays = {"old": 0.05, "new": 0.0}

    def factory(token: str) -> SlowStartChannel:
        made[token] = SlowStartChannel(token, delays[token])
        return made[token]

    registry = ChannelRegistry(channel_factory=factory)

    registry.reconcile_in_background(organization.id, "old")
    registry.reconcile_in_background(organization.id, "new")
    await registry.wait_for_background()

    assert registry.get(organization.id) is made["new"]
    assert made["old"].stopped is True
    assert made["new"].stopped is False


@pytest.mark.asyncio
async def test_clearing_token_is_not_undone_by_slower_earlier_start(seed) -> None:
    organization = await seed.organization()
    made: dict[str, SlowStartChannel] = {}

    def factory(token: str) -> SlowStartChannel:
        made[token] = SlowStartChannel(token, 0.05)
        return made[token]

    registry = ChannelRegistry(channel_factory=factory)

    registry.reconcile_in_background(organization.id, "old")
    registry.reconcile_in_background(organization.id, None)
    await registry.wait_for_background()

    assert registry.is_active(organization.id) is False
    assert made["old"].stopped is True


@pytest.mark.asyncio
async def test_stop_all_settles_pending_reconciles_before_stopping(seed) -> None:
    organization = await seed.organization()
    made: dict[str, SlowStartChannel] = {}

    def factory(token: str) -> SlowStartChannel:
        made[token] = SlowStartChannel(token, 0.05)
        return made[token]

    registry = ChannelRegistry(channel_factory=factory)

    registry.reconcile_in_background(organization.id, "pending")
    await registry.stop_all()

    assert registry.active_organizations == []
    assert made["pending"].stopped is True
