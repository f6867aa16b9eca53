"""SQLAlchemy models package."""

from .organization import Organization  # noqa: F401
from .member import Member  # noqa: F401
from .discipline import Discipline  # noqa: F401
from .membership import Membership, MembershipStatusEnum  # noqa: F401
from .attendance import Attendance  # noqa: F401
from .notification import (  # noqa: F401
    NotificationAttempt,
    NotificationChannelEnum,
    NotificationStatusEnum,
    NotificationTypeEnum,
)
