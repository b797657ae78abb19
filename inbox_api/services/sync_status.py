"""Backlog and channel health shown on the dashboard."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol

HEALTHY_BELOW_PENDING = 50
LAGGING_BELOW_PENDING = 200

CONNECTED_WITHIN = timedelta(minutes=5)
WARNING_WITHIN = timedelta(minutes=30)


class SyncStatsRepository(Protocol):
    def count_unsynced_messages(self) -> int:
        ...

    def count_webhook_logs(self, status: str) -> int:
        ...

    def message_activity(self, since: datetime) -> tuple[int, Optional[datetime]]:
        ...


@dataclass(frozen=True)
class SyncStatus:
    pending_messages: int
    pending_webhooks: int
    sync_health: str  # healthy | lagging | critical


@dataclass(frozen=True)
class PlatformStatus:
    platform: str
    name: str
    status: str  # connected | warning | error | offline
    last_activity: Optional[datetime]
    message_count_today: int
    pending_sync: int


def sync_health(pending_messages: int) -> str:
    if pending_messages < HEALTHY_BELOW_PENDING:
        return "healthy"
    if pending_messages < LAGGING_BELOW_PENDING:
        return "lagging"
    return "critical"


def activity_status(last_activity: Optional[datetime], now: datetime) -> str:
    """Channel status from the age of its newest message."""
    if last_activity is None:
        return "offline"
    age = now - last_activity
    if age < CONNECTED_WITHIN:
        return "connected"
    if age < WARNING_WITHIN:
        return "warning"
    return "error"


def get_sync_status(stats: SyncStatsRepository) -> SyncStatus:
    pending_messages = stats.count_unsynced_messages()
    return SyncStatus(
        pending_messages=pending_messages,
        pending_webhooks=stats.count_webhook_logs("pending"),
        sync_health=sync_health(pending_messages),
    )


def get_platforms(stats: SyncStatsRepository, now: Optional[datetime] = None) -> list[PlatformStatus]:
    now = now or datetime.now(timezone.utc)
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    count_today, last_activity = stats.message_activity(start_of_day)
    return [
        PlatformStatus(
            platform="facebook",
            name="Facebook Messenger",
            status=activity_status(last_activity, now),
            last_activity=last_activity,
            message_count_today=count_today,
            pending_sync=stats.count_unsynced_messages(),
        )
    ]
