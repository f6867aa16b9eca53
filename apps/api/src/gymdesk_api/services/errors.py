"""Domain error taxonomy surfaced to request-layer callers."""

from __future__ import annotations


class GymDeskError(RuntimeError):
    """Base exception for domain failures."""


class NotFoundError(GymDeskError):
    """Raised when a resource is absent or belongs to another organization."""


class MemberNotFoundError(NotFoundError):
    pass


class DisciplineNotFoundError(NotFoundError):
    pass


class MembershipNotFoundError(NotFoundError):
    pass


class ConflictError(GymDeskError):
    """Raised when a write collides with an existing record."""


class MembershipConflictError(ConflictError):
    pass


class DuplicateCheckInError(ConflictError):
    """Raised by the ledger when the per-day attendance constraint rejects an insert."""

    def __init__(self, existing) -> None:
        super().__init__("Member already checked in today")
        self.existing = existing


class InvalidStateError(GymDeskError):
    """Raised when the current state forbids the requested operation."""


class MemberInactiveError(InvalidStateError):
    pass


class NoActiveMembershipError(InvalidStateError):
    pass


class TenantSuspendedError(InvalidStateError):
    pass


class InvalidMembershipTransitionError(InvalidStateError):
    """Raised when a membership status change violates the lifecycle."""

    def __init__(self, current_status, requested_status) -> None:
        super().__init__(f"Cannot transition membership from {current_status.value} to {requested_status.value}")
        self.current_status = current_status
        self.requested_status = requested_status


class InvalidMembershipError(GymDeskError):
    """Raised when membership input is inconsistent (dates, duration)."""


__all__ = [
    "ConflictError",
    "DisciplineNotFoundError",
    "DuplicateCheckInError",
    "GymDeskError",
    "InvalidMembershipError",
    "InvalidMembershipTransitionError",
    "InvalidStateError",
    "MemberInactiveError",
    "MemberNotFoundError",
    "MembershipConflictError",
    "MembershipNotFoundError",
    "NoActiveMembershipError",
    "NotFoundError",
    "TenantSuspendedError",
]
