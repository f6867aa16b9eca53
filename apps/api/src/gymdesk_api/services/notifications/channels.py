"""Outbound messaging channels and the per-organization channel registry."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Protocol
from uuid import UUID

import httpx
from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gymdesk_api.core.settings import Settings
from gymdesk_api.models.organization import Organization

SessionFactory = Callable[[], AsyncSession] | Callable[[], Awaitable[AsyncSession]]


class ChannelDeliveryError(RuntimeError):
    """Raised by a channel when the platform rejects or fails a request."""


class MessagingChannel(Protocol):
    """Minimal protocol for a live outbound connection owned by one organization."""

    async def start(self) -> str | None:
        """Validate credentials and return the account handle, if any."""
        ...

    async def send(self, recipient: str, text: str) -> None:
        ...

    async def stop(self) -> None:
        ...


class TelegramBotChannel:
    """Telegram Bot API channel speaking plain HTTPS through httpx."""

    def __init__(
        self,
        token: str,
        *,
        base_url: str = "https://api.telegram.org",
        timeout_seconds: float = 10.0,
        parse_mode: str | None = "HTML",
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._parse_mode = parse_mode
        self._client = http_client or httpx.AsyncClient(timeout=timeout_seconds)
        self._owns_client = http_client is None
        self.username: str | None = None

    @classmethod
    def from_settings(cls, token: str, settings: Settings) -> "TelegramBotChannel":
        return cls(
            token,
            base_url=settings.telegram_api_base_url,
            timeout_seconds=settings.telegram_timeout_seconds,
            parse_mode=settings.telegram_parse_mode or None,
        )

    async def start(self) -> str | None:
        result = await self._call("getMe", {})
        username = result.get("username") if isinstance(result, dict) else None
        self.username = str(username) if username else None
        return self.username

    async def send(self, recipient: str, text: str) -> None:
        payload: Dict[str, Any] = {"chat_id": recipient, "text": text}
        if self._parse_mode:
            payload["parse_mode"] = self._parse_mode
        await self._call("sendMessage", payload)

    async def stop(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _call(self, method: str, payload: Dict[str, Any]) -> Any:
        url = f"{self._base_url}/bot{self._token}/{method}"
        try:
            response = await self._client.post(url, json=payload)
        except httpx.HTTPError as exc:
            raise ChannelDeliveryError(f"Telegram {method} request failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = {}
        if response.status_code >= 400 or not body.get("ok", False):
            error_code = body.get("error_code", response.status_code)
            description = body.get("description") or response.reason_phrase
            raise ChannelDeliveryError(f"Telegram {method} failed ({error_code}): {description}")
        return body.get("result")


class InMemoryChannel:
    """Stores outbound messages for inspection in tests and dry runs."""

    sent_messages: List[tuple[str, str]]

    def __init__(self, *, username: str | None = "inmemory_bot", fail_with: str | None = None) -> None:
        self.sent_messages = []
        self.username = username
        self.fail_with = fail_with
        self.started = False
        self.stopped = False

    async def start(self) -> str | None:
        self.started = True
        return self.username

    async def send(self, recipient: str, text: str) -> None:
        if self.fail_with:
            raise ChannelDeliveryError(self.fail_with)
        self.sent_messages.append((recipient, text))

    async def stop(self) -> None:
        self.stopped = True


@dataclass(frozen=True, slots=True)
class DeliveryResult:
    delivered: bool
    error: str | None = None


ChannelFactory = Callable[[str], MessagingChannel]


class ChannelRegistry:
    """Owns zero or one live channel per organization.

    Channels are created, replaced and stopped independently; a failure on one
    organization never touches another organization's channel.
    """

    def __init__(
        self,
        *,
        channel_factory: ChannelFactory,
        session_factory: SessionFactory | None = None,
    ) -> None:
        self._channel_factory = channel_factory
        self._session_factory = session_factory
        self._channels: Dict[UUID, MessagingChannel] = {}
        self._lifecycle_lock = asyncio.Lock()
        self._background: set[asyncio.Task] = set()
        # Bumped on every reconcile request; only the latest one may install a channel.
        self._generations: Dict[UUID, int] = {}

    @classmethod
    def from_settings(cls, settings: Settings, *, session_factory: SessionFactory | None = None) -> "ChannelRegistry":
        return cls(
            channel_factory=lambda token: TelegramBotChannel.from_settings(token, settings),
            session_factory=session_factory,
        )

    @property
    def active_organizations(self) -> list[UUID]:
        return list(self._channels)

    def get(self, organization_id: UUID) -> MessagingChannel | None:
        return self._channels.get(organization_id)

    def is_active(self, organization_id: UUID) -> bool:
        return organization_id in self._channels

    def _is_current(self, organization_id: UUID, generation: int) -> bool:
        return self._generations.get(organization_id, 0) == generation

    async def start(self, organization_id: UUID, token: str, *, generation: int | None = None) -> str | None:
        """Create or replace the organization's channel.

        The new channel is validated before the old one is stopped, so an invalid
        token leaves the current connection in place. If a newer reconcile was
        requested while the token was being validated, the new channel is
        discarded and ``None`` is returned.
        """

        if generation is None:
            generation = self._generations.get(organization_id, 0)
        channel = self._channel_factory(token)
        try:
            username = await channel.start()
        except Exception:
            await channel.stop()
            raise

        async with self._lifecycle_lock:
            superseded = not self._is_current(organization_id, generation)
            previous = None if superseded else self._channels.get(organization_id)
            if not superseded:
                self._channels[organization_id] = channel
        if superseded:
            await self._stop_channel(organization_id, channel)
            logger.info(
                "Superseded messaging channel discarded",
                organization_id=str(organization_id),
                username=username,
            )
            return None
        if previous is not None:
            await self._stop_channel(organization_id, previous)

        if username:
            await self._persist_username(organization_id, username)
        logger.info(
            "Messaging channel started",
            organization_id=str(organization_id),
            username=username,
            replaced=previous is not None,
            active_channels=len(self._channels),
        )
        return username

    async def stop(self, organization_id: UUID) -> bool:
        async with self._lifecycle_lock:
            channel = self._channels.pop(organization_id, None)
        if channel is None:
            return False
        await self._stop_channel(organization_id, channel)
        logger.info("Messaging channel stopped", organization_id=str(organization_id))
        return True

    async def stop_all(self) -> None:
        """Settle pending reconciles, then stop every live channel."""

        await self.wait_for_background()
        for organization_id in list(self._channels):
            await self.stop(organization_id)

    async def start_all(self) -> Dict[str, int]:
        """Start channels for every active organization with a configured token."""

        if self._session_factory is None:
            raise RuntimeError("ChannelRegistry.start_all requires a session factory")

        async with await self._open_session() as session:
            result = await session.execute(
                select(Organization.id, Organization.name, Organization.telegram_bot_token).where(
                    Organization.is_active.is_(True),
                    Organization.telegram_bot_token.is_not(None),
                )
            )
            rows = result.all()

        summary = {"started": 0, "failed": 0}
        for organization_id, name, token in rows:
            try:
                await self.start(organization_id, token)
            except Exception as exc:
                summary["failed"] += 1
                logger.exception(
                    "Messaging channel failed to start",
                    organization_id=str(organization_id),
                    organization=name,
                    error=str(exc),
                )
            else:
                summary["started"] += 1

        logger.bind(summary=summary).info("Messaging channels initialised")
        return summary

    async def send(self, organization_id: UUID, recipient: str, text: str) -> DeliveryResult:
        """Deliver ``text``; never raises, failures come back in the result."""

        channel = self._channels.get(organization_id)
        if channel is None:
            logger.warning("No messaging channel for organization", organization_id=str(organization_id))
            return DeliveryResult(delivered=False, error="Messaging channel not configured for organization")

        try:
            await channel.send(recipient, text)
        except ChannelDeliveryError as exc:
            logger.warning(
                "Message delivery failed",
                organization_id=str(organization_id),
                recipient=recipient,
                error=str(exc),
            )
            return DeliveryResult(delivered=False, error=str(exc))
        except Exception as exc:  # pragma: no cover
            logger.exception(
                "Unexpected messaging channel error",
                organization_id=str(organization_id),
                recipient=recipient,
            )
            return DeliveryResult(delivered=False, error=str(exc) or exc.__class__.__name__)
        return DeliveryResult(delivered=True)

    def reconcile_in_background(self, organization_id: UUID, token: str | None) -> asyncio.Task:
        """Restart (or stop) the organization's channel without blocking the caller."""

        generation = self._generations.get(organization_id, 0) + 1
        self._generations[organization_id] = generation
        task = asyncio.create_task(self._reconcile(organization_id, token, generation))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def wait_for_background(self) -> None:
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def _reconcile(self, organization_id: UUID, token: str | None, generation: int) -> None:
        try:
            if token:
                username = await self.start(organization_id, token, generation=generation)
                if username is None and not self._is_current(organization_id, generation):
                    return
                logger.info(
                    "Messaging channel reconciled",
                    organization_id=str(organization_id),
                    username=username,
                )
            elif self._is_current(organization_id, generation):
                await self.stop(organization_id)
                logger.info("Messaging channel removed", organization_id=str(organization_id))
        except Exception as exc:
            logger.exception(
                "Messaging channel reconciliation failed",
                organization_id=str(organization_id),
                error=str(exc),
            )

    async def _stop_channel(self, organization_id: UUID, channel: MessagingChannel) -> None:
        try:
            await channel.stop()
        except Exception as exc:  # pragma: no cover
            logger.warning(
                "Messaging channel did not stop cleanly",
                organization_id=str(organization_id),
                error=str(exc),
            )

    async def _persist_username(self, organization_id: UUID, username: str) -> None:
        if self._session_factory is None:
            return
        async with await self._open_session() as session:
            organization = await session.get(Organization, organization_id)
            if organization is None:
                return
            organization.telegram_bot_username = username
            await session.commit()

    async def _open_session(self) -> AsyncSession:
        maybe_session = self._session_factory()  # type: ignore[misc]
        if isinstance(maybe_session, AsyncSession):
            return maybe_session
        return await maybe_session


__all__ = [
    "ChannelDeliveryError",
    "ChannelRegistry",
    "DeliveryResult",
    "InMemoryChannel",
    "MessagingChannel",
    "TelegramBotChannel",
]
