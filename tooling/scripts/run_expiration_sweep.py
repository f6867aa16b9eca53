#!/usr/bin/env python3
"""Run the membership expiration sweep once, outside the API process.

Intended usage: ad-hoc operator runs or an external cron when the in-process
scheduler is disabled.

Example:
    python tooling/scripts/run_expiration_sweep.py

Use `--dry-run` to exercise candidate selection and template rendering without
sending real Telegram messages. Messages are captured by in-memory channels and
printed, and no notification attempts are written, so the real run later that
day still sends them. `--manual` bypasses the once-per-day guard, like the HTTP trigger.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from loguru import logger


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Dispatch membership expiration reminders")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Use in-memory channels instead of the Telegram Bot API.",
    )
    parser.add_argument(
        "--manual",
        action="store_true",
        help="Bypass the once-per-day notification guard.",
    )
    return parser.parse_args()


async def _run(dry_run: bool, manual: bool) -> dict:
    repo_root = Path(__file__).resolve().parents[2]
    api_src = repo_root / "apps" / "api" / "src"
    if str(api_src) not in sys.path:
        sys.path.insert(0, str(api_src))

    from sqlalchemy import select  # type: ignore import-position

    from gymdesk_api.core.clock import Clock  # type: ignore import-position
    from gymdesk_api.core.settings import settings  # type: ignore import-position
    from gymdesk_api.db.session import async_session  # type: ignore import-position
    from gymdesk_api.models.organization import Organization  # type: ignore import-position
    from gymdesk_api.services.notifications import (  # type: ignore import-position
        ChannelRegistry,
        ExpirationSweep,
        InMemoryChannel,
    )

    channels: dict[str, InMemoryChannel] = {}
    if dry_run:
        def _factory(token: str) -> InMemoryChannel:
            channel = InMemoryChannel(username="dry_run_bot")
            channels[token] = channel
            return channel

        registry = ChannelRegistry(channel_factory=_factory)
        async with async_session() as session:
            result = await session.execute(select(Organization.id).where(Organization.is_active.is_(True)))
            for organization_id in result.scalars():
                await registry.start(organization_id, str(organization_id))
    else:
        registry = ChannelRegistry.from_settings(settings, session_factory=async_session)
        await registry.start_all()

    sweep = ExpirationSweep(
        async_session,
        registry,
        clock=Clock(settings.timezone),
        lookahead_days=settings.expiration_sweep_lookahead_days,
        record_attempts=not dry_run,
    )
    try:
        summary = await sweep.run(manual=manual)
    finally:
        await registry.stop_all()

    if dry_run:
        for organization_id, channel in channels.items():
            for recipient, text in channel.sent_messages:
                print(f"--- {organization_id} -> {recipient}\n{text}\n")
    return summary.as_dict()


def main() -> int:
    args = parse_args()
    summary = asyncio.run(_run(args.dry_run, args.manual))
    logger.success("Expiration sweep run completed", dry_run=args.dry_run, manual=args.manual)
    print(json.dumps(summary, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
