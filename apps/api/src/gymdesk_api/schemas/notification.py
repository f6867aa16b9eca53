from __future__ import annotations

from datetime import datetime

from gymdesk_api.models.notification import NotificationStatusEnum

from .common import CamelModel


class SweepSummaryResponse(CamelModel):
    manual: bool
    dry_run: bool = False
    started_at: datetime
    completed_at: datetime | None = None
    organizations: int
    candidates: int
    sent: int
    failed: int
    errors: int
    skipped_no_member: int
    skipped_out_of_window: int
    skipped_already_notified: int
    skipped_no_recipient: int


class WelcomeResponse(CamelModel):
    status: NotificationStatusEnum | None = None
    delivered: bool
    detail: str | None = None
