"""Classify a membership's remaining lifetime into notification buckets.

The sweep runs about once a day and memberships end at arbitrary times of day,
so the buckets are ranges rather than exact day counts: as long as the sweep
fires at least once inside each window, every membership gets one shot at each
milestone.
"""

from __future__ import annotations

from datetime import datetime, time, timezone
from enum import Enum
from zoneinfo import ZoneInfo

from gymdesk_api.core.clock import as_utc
from gymdesk_api.models.notification import NotificationTypeEnum

_SECONDS_PER_DAY = 24 * 60 * 60


class NotificationBucket(str, Enum):
    EXPIRED = "expired"
    EXPIRING_IN_3 = "expiring_in_3"
    EXPIRING_IN_7 = "expiring_in_7"
    NONE = "none"


_BUCKET_RANGES: tuple[tuple[int, int, NotificationBucket], ...] = (
    (0, 0, NotificationBucket.EXPIRED),
    (2, 4, NotificationBucket.EXPIRING_IN_3),
    (6, 8, NotificationBucket.EXPIRING_IN_7),
)

_DEDUP_CATEGORIES: dict[NotificationBucket, NotificationTypeEnum] = {
    NotificationBucket.EXPIRED: NotificationTypeEnum.EXPIRED,
    NotificationBucket.EXPIRING_IN_3: NotificationTypeEnum.EXPIRING_SOON,
    NotificationBucket.EXPIRING_IN_7: NotificationTypeEnum.EXPIRING_SOON,
}


def _local_midnight(value: datetime, tz: ZoneInfo) -> datetime:
    local = as_utc(value).astimezone(tz)
    return datetime.combine(local.date(), time.min, tzinfo=tz).astimezone(timezone.utc)


def remaining_days(end_date: datetime, now: datetime, tz: ZoneInfo) -> int:
    """Whole days between today's and the end date's local midnights.

    Rounded rather than truncated so DST shifts (23h/25h days) and clock noise
    do not move a membership into the neighbouring day.
    """

    delta = _local_midnight(end_date, tz) - _local_midnight(now, tz)
    return round(delta.total_seconds() / _SECONDS_PER_DAY)


def classify_remaining_days(days: int) -> NotificationBucket:
    for lower, upper, bucket in _BUCKET_RANGES:
        if lower <= days <= upper:
            return bucket
    return NotificationBucket.NONE


def dedup_category(bucket: NotificationBucket) -> NotificationTypeEnum:
    """Coarse category used for suppression; both "expiring" buckets share one."""

    try:
        return _DEDUP_CATEGORIES[bucket]
    except KeyError:
        raise ValueError(f"Bucket {bucket.value} has no notification category") from None


__all__ = [
    "NotificationBucket",
    "classify_remaining_days",
    "dedup_category",
    "remaining_days",
]
