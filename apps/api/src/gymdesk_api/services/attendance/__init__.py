"""Attendance services."""

from .checkin import AlreadyCheckedIn, CheckInGuard, CheckInResult, MemberSnapshot, MembershipSnapshot

__all__ = ["AlreadyCheckedIn", "CheckInGuard", "CheckInResult", "MemberSnapshot", "MembershipSnapshot"]
