from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from gymdesk_api.models.notification import NotificationTypeEnum
from gymdesk_api.services.notifications.buckets import (
    NotificationBucket,
    classify_remaining_days,
    dedup_category,
    remaining_days,
)

LA_PAZ = ZoneInfo("America/La_Paz")
NOW = datetime(2026, 3, 10, 14, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    ("days", "expected"),
    [
        (-1, NotificationBucket.NONE),
        (0, NotificationBucket.EXPIRED),
        (1, NotificationBucket.NONE),
        (2, NotificationBucket.EXPIRING_IN_3),
        (3, NotificationBucket.EXPIRING_IN_3),
        (4, NotificationBucket.EXPIRING_IN_3),
        (5, NotificationBucket.NONE),
        (6, NotificationBucket.EXPIRING_IN_7),
        (8, NotificationBucket.EXPIRING_IN_7),
        (9, NotificationBucket.NONE),
    ],
)
def test_classify_remaining_days_ranges(days: int, expected: NotificationBucket) -> None:
    assert classify_remaining_days(days) is expected


def test_remaining_days_counts_local_calendar_days() -> None:
    # 23:30 local on the same day is still "today".
    late_tonight = datetime(2026, 3, 11, 3, 30, tzinfo=timezone.utc)
    assert remaining_days(late_tonight, NOW, LA_PAZ) == 0

    # 00:30 local the next day crosses midnight even though less than a day away.
    just_after_midnight = datetime(2026, 3, 11, 4, 30, tzinfo=timezone.utc)
    assert remaining_days(just_after_midnight, NOW, LA_PAZ) == 1

    assert remaining_days(NOW + timedelta(days=7), NOW, LA_PAZ) == 7


def test_remaining_days_accepts_naive_utc_values() -> None:
    naive_end = (NOW + timedelta(days=3)).replace(tzinfo=None)
    assert remaining_days(naive_end, NOW, LA_PAZ) == 3


def test_remaining_days_survives_dst_transition() -> None:
    new_york = ZoneInfo("America/New_York")
    before_shift = datetime(2026, 3, 7, 17, 0, tzinfo=timezone.utc)
    after_shift = datetime(2026, 3, 9, 16, 0, tzinfo=timezone.utc)
    assert remaining_days(after_shift, before_shift, new_york) == 2


def test_dedup_category_groups_expiring_buckets() -> None:
    assert dedup_category(NotificationBucket.EXPIRING_IN_3) is NotificationTypeEnum.EXPIRING_SOON
    assert dedup_category(NotificationBucket.EXPIRING_IN_7) is NotificationTypeEnum.EXPIRING_SOON
    assert dedup_category(NotificationBucket.EXPIRED) is NotificationTypeEnum.EXPIRED


def test_dedup_category_rejects_none_bucket() -> None:
    with pytest.raises(ValueError):
        dedup_category(NotificationBucket.NONE)
