"""Zone-aware clock used for every calendar-day decision."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime.

    SQLite hands timestamps back without tzinfo; everything is persisted in UTC.
    """

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Clock:
    """Wall clock bound to the organization-facing timezone."""

    def __init__(self, tz: str | ZoneInfo = "UTC") -> None:
        self.tz = tz if isinstance(tz, ZoneInfo) else ZoneInfo(tz)

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def local_date(self, value: datetime | None = None) -> date:
        moment = as_utc(value) if value is not None else self.now()
        return moment.astimezone(self.tz).date()

    def local_midnight(self, local_day: date) -> datetime:
        return datetime.combine(local_day, time.min, tzinfo=self.tz).astimezone(timezone.utc)

    def start_of_day(self, value: datetime | None = None) -> datetime:
        """Local midnight of the day containing ``value``, as UTC."""

        return self.local_midnight(self.local_date(value))

    def day_bounds(self, value: datetime | None = None) -> tuple[datetime, datetime]:
        local_day = self.local_date(value)
        return self.local_midnight(local_day), self.local_midnight(local_day + timedelta(days=1))


class FrozenClock(Clock):
    """Clock pinned to a fixed instant; ``advance`` moves it forward."""

    def __init__(self, moment: datetime, tz: str | ZoneInfo = "UTC") -> None:
        super().__init__(tz)
        self._moment = as_utc(moment)

    def now(self) -> datetime:
        return self._moment

    def set(self, moment: datetime) -> None:
        self._moment = as_utc(moment)

    def advance(self, **kwargs: float) -> None:
        self._moment = self._moment + timedelta(**kwargs)


__all__ = ["Clock", "FrozenClock", "as_utc"]
