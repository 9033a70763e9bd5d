# paygate/conftest.py
from datetime import timezone

import pytest

from paygate.core.store import InMemoryStore
from paygate.features.paywall.service import PaywallScheduler
from paygate.features.usage.service import UsageTracker
from paygate.tests.mocks import FakeEntitlementSource, ManualClock


@pytest.fixture
def clock():
    """Deterministic clock starting at 2025-03-10 09:30 UTC."""
    return ManualClock()


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def entitlements():
    return FakeEntitlementSource()


@pytest.fixture
def tracker(store, clock):
    """Usage tracker on a UTC calendar so day boundaries are predictable."""
    return UsageTracker(store, now_fn=clock, tz=timezone.utc)


@pytest.fixture
def scheduler(store, entitlements, clock):
    return PaywallScheduler(store, entitlements, now_fn=clock)
