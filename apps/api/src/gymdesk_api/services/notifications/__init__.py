"""Membership notification engine."""

from .buckets import NotificationBucket, classify_remaining_days, dedup_category, remaining_days
from .channels import (
    ChannelDeliveryError,
    ChannelRegistry,
    DeliveryResult,
    InMemoryChannel,
    MessagingChannel,
    TelegramBotChannel,
)
from .dispatcher import DispatchTarget, NotificationDispatcher
from .expiration_sweep import ExpirationSweep, SweepSummary
from .ledger import NotificationLedger

__all__ = [
    "ChannelDeliveryError",
    "ChannelRegistry",
    "DeliveryResult",
    "DispatchTarget",
    "ExpirationSweep",
    "InMemoryChannel",
    "MessagingChannel",
    "NotificationBucket",
    "NotificationDispatcher",
    "NotificationLedger",
    "SweepSummary",
    "TelegramBotChannel",
    "classify_remaining_days",
    "dedup_category",
    "remaining_days",
]
