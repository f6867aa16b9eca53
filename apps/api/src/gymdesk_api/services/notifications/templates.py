"""Message templates for membership notifications (Telegram HTML parse mode)."""

from __future__ import annotations

import html
from datetime import datetime
from zoneinfo import ZoneInfo

from gymdesk_api.core.clock import as_utc

from .buckets import NotificationBucket


def format_end_date(value: datetime, tz: ZoneInfo) -> str:
    return as_utc(value).astimezone(tz).strftime("%d/%m/%Y")


def render_welcome(member_name: str, member_code: str, organization_name: str) -> str:
    lines = [
        f"🎉 Welcome to {html.escape(organization_name)}!",
        "",
        f"Hi {html.escape(member_name)},",
        "",
        "Your account has been linked successfully.",
        f"Code: {html.escape(member_code)}",
        "",
        "We will remind you before your membership expires.",
        "",
        "💪 See you at the gym!",
    ]
    return "\n".join(lines)


def render_expiring_in_7(member_name: str, discipline_name: str, end_date: str, organization_name: str) -> str:
    lines = [
        "⏰ Reminder",
        "",
        f"Hi {html.escape(member_name)},",
        "",
        f"Your {html.escape(discipline_name)} membership expires in <b>7 days</b>.",
        f"Expiration date: {end_date}",
        "",
        "Drop by the front desk to renew.",
        "",
        f"🏋️ {html.escape(organization_name)}",
    ]
    return "\n".join(lines)


def render_expiring_in_3(member_name: str, discipline_name: str, end_date: str, organization_name: str) -> str:
    lines = [
        "⚠️ Heads up",
        "",
        f"Hi {html.escape(member_name)},",
        "",
        f"Your {html.escape(discipline_name)} membership expires in <b>3 days</b>.",
        f"Date: {end_date}",
        "",
        "Please renew soon to keep training.",
        "",
        f"📍 {html.escape(organization_name)}",
    ]
    return "\n".join(lines)


def render_expired(member_name: str, discipline_name: str, organization_name: str) -> str:
    lines = [
        "❌ Membership expired",
        "",
        f"Hi {html.escape(member_name)},",
        "",
        f"Your {html.escape(discipline_name)} membership expires today.",
        "",
        "Renew to keep enjoying your workouts.",
        "",
        "📞 Contact the front desk.",
        "",
        f"🏢 {html.escape(organization_name)}",
    ]
    return "\n".join(lines)


def render_bucket_message(
    bucket: NotificationBucket,
    *,
    member_name: str,
    discipline_name: str,
    end_date: datetime,
    organization_name: str,
    tz: ZoneInfo,
) -> str:
    formatted = format_end_date(end_date, tz)
    if bucket is NotificationBucket.EXPIRING_IN_7:
        return render_expiring_in_7(member_name, discipline_name, formatted, organization_name)
    if bucket is NotificationBucket.EXPIRING_IN_3:
        return render_expiring_in_3(member_name, discipline_name, formatted, organization_name)
    if bucket is NotificationBucket.EXPIRED:
        return render_expired(member_name, discipline_name, organization_name)
    raise ValueError(f"No template for bucket {bucket.value}")


__all__ = [
    "format_end_date",
    "render_bucket_message",
    "render_expired",
    "render_expiring_in_3",
    "render_expiring_in_7",
    "render_welcome",
]
