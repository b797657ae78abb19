from datetime import datetime, timedelta, timezone

import pytest

from inbox_api.services.sync_status import activity_status, get_platforms, get_sync_status, sync_health

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


class FakeStats:
    def __init__(self, unsynced=0, pending_webhooks=0, activity=(0, None)):
        self.unsynced = unsynced
        self.pending_webhooks = pending_webhooks
        self.activity = activity
        self.since = []
        self.statuses = []

    def count_unsynced_messages(self):
        return self.unsynced

    def count_webhook_logs(self, status):
        self.statuses.append(status)
        return self.pending_webhooks

    def message_activity(self, since):
        self.since.append(since)
        return self.activity


@pytest.mark.parametrize(
    "pending, expected",
    [(0, "healthy"), (49, "healthy"), (50, "lagging"), (199, "lagging"), (200, "critical")],
)
def test_sync_health_thresholds(pending, expected):
    assert sync_health(pending) == expected


@pytest.mark.parametrize(
    "age, expected",
    [
        (timedelta(seconds=30), "connected"),
        (timedelta(minutes=5), "warning"),
        (timedelta(minutes=29), "warning"),
        (timedelta(minutes=30), "error"),
    ],
)
def test_activity_status(age, expected):
    assert activity_status(NOW - age, NOW) == expected


def test_no_activity_is_offline():
    assert activity_status(None, NOW) == "offline"


def test_sync_status_counts_pending_webhooks():
    stats = FakeStats(unsynced=120, pending_webhooks=3)

    status = get_sync_status(stats)

    assert (status.pending_messages, status.pending_webhooks, status.sync_health) == (120, 3, "lagging")
    assert stats.statuses == ["pending"]


def test_platforms_use_activity_since_midnight():
    stats = FakeStats(unsynced=4, activity=(7, NOW - timedelta(minutes=10)))

    [facebook] = get_platforms(stats, now=NOW)

    assert stats.since == [datetime(2026, 10, 18, tzinfo=timezone.utc)]
    assert facebook.platform == "facebook"
    assert facebook.status == "warning"
    assert facebook.message_count_today == 7
    assert facebook.pending_sync == 4
