"""Shared fakes for the test-suite."""

from datetime import datetime, timedelta, timezone

BASE_TIME = datetime(2024, 5, 17, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock shared by the engine components under test."""

    def __init__(self, start: datetime = BASE_TIME) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


def make_payload(notification_id, *, priority="normal", category="system", created_at=None, **extra):
    payload = {
        "id": notification_id,
        "category": category,
        "priority": priority,
        "title": f"Title {notification_id}",
        "message": f"Message {notification_id}",
        "created_at": created_at or BASE_TIME,
    }
    payload.update(extra)
    return payload


class RecordingPersistence:
    """In-memory persistence collaborator that can be told to fail."""

    def __init__(self, stored=None, failures=0):
        self.stored = list(stored or [])
        self.failures = failures
        self.calls = []

    def fetch_notifications(self, user_id):
        self.calls.append(("fetch", user_id))
        return list(self.stored)

    def persist_mark_as_read(self, user_id, notification_id):
        self._maybe_fail()
        self.calls.append(("read", user_id, notification_id))

    def persist_mark_all_as_read(self, user_id, notification_ids):
        self._maybe_fail()
        self.calls.append(("read_all", user_id, tuple(notification_ids)))

    def _maybe_fail(self):
        if self.failures:
            self.failures -= 1
            raise ConnectionError("database unavailable")


async def no_sleep(_delay):
    return None
