from datetime import datetime, timedelta, timezone
from typing import Optional

from paygate.models.tier import SubscriptionTier


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2025, 3, 10, 9, 30, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeEntitlementSource:
    def __init__(self, tier: SubscriptionTier = SubscriptionTier.FREE, expires_at: Optional[datetime] = None):
        self.tier = tier
        self.expires_at = expires_at
        self.calls = 0

    def current_tier(self) -> SubscriptionTier:
        self.calls += 1
        return self.tier

    def current_tier_expiry(self) -> Optional[datetime]:
        return self.expires_at


class RecordingStore:
    """InMemoryStore-compatible store that records every write."""

    def __init__(self):
        self.data = {}
        self.writes = []

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.set_many({key: value})

    def set_many(self, values):
        self.writes.append(dict(values))
        for key, value in values.items():
            if value is None:
                self.data.pop(key, None)
            else:
                self.data[key] = value

    def delete(self, key):
        self.set_many({key: None})
