"""
Tests for paywall cadence: first launch, backoff ladder, periodic reset and purchase.
"""
import threading
from datetime import timedelta

import pytest

from paygate.core.store import InMemoryStore
from paygate.features.paywall.service import MAX_BACKOFF_DAYS, PaywallScheduler, backoff_days
from paygate.models.paywall import PaywallContext, PaywallDecision, PaywallKey
from paygate.models.tier import SubscriptionTier
from paygate.tests.mocks import FakeEntitlementSource, RecordingStore


def _seen_first_launch(scheduler):
    assert scheduler.should_show() is PaywallDecision.FIRST_LAUNCH_DUE
    scheduler.dismiss(PaywallContext.FIRST_LAUNCH)


@pytest.mark.parametrize(
    "count,days",
    [(0, 1), (1, 2), (2, 4), (3, 8), (4, 16), (5, 30), (6, 30), (50, 30)],
)
def test_backoff_table(count, days):
    assert backoff_days(count) == days


def test_backoff_monotonic_and_capped():
    previous = 0
    for n in range(200):
        days = backoff_days(n)
        assert previous <= days <= MAX_BACKOFF_DAYS
        previous = days
    assert backoff_days(10 ** 9) == MAX_BACKOFF_DAYS
    assert backoff_days(-3) == 1


def test_first_launch_then_backoff(scheduler, clock):
    """Free user: first launch prompt, then 2-day wait after the first dismissal."""
    assert scheduler.should_show() is PaywallDecision.FIRST_LAUNCH_DUE
    assert scheduler.active_context is PaywallContext.FIRST_LAUNCH

    dismissed_at = clock.now
    scheduler.dismiss(PaywallContext.FIRST_LAUNCH)
    state = scheduler.state
    assert state.first_launch_seen is True
    assert state.dismiss_count == 1
    assert state.last_shown_at == dismissed_at

    clock.advance(days=1)
    assert scheduler.should_show() is PaywallDecision.NOT_YET_ELIGIBLE

    clock.advance(days=1)
    assert scheduler.should_show() is PaywallDecision.PERIODIC_DUE
    assert scheduler.active_context is PaywallContext.PERIODIC_REMINDER


def test_first_launch_stays_due_until_dismissed(scheduler, clock):
    assert scheduler.should_show() is PaywallDecision.FIRST_LAUNCH_DUE
    clock.advance(days=3)
    assert scheduler.should_show() is PaywallDecision.FIRST_LAUNCH_DUE


def test_backoff_grows_with_dismissals(scheduler, clock):
    _seen_first_launch(scheduler)

    for expected_wait in (2, 4, 8):
        clock.advance(days=expected_wait - 1)
        assert scheduler.should_show() is PaywallDecision.NOT_YET_ELIGIBLE
        clock.advance(days=1)
        assert scheduler.should_show() is PaywallDecision.PERIODIC_DUE
        scheduler.dismiss()

    assert scheduler.state.dismiss_count == 4
    assert scheduler.next_show_at() == clock.now + timedelta(days=16)


def test_backoff_wait_is_capped(clock):
    now = clock.now
    store = InMemoryStore({
        PaywallKey.HAS_SEEN_FIRST_LAUNCH.value: True,
        PaywallKey.DISMISS_COUNT.value: 9,
        PaywallKey.LAST_SHOWN_DATE.value: now,
        PaywallKey.LAST_MONTHLY_RESET.value: now,
    })
    scheduler = PaywallScheduler(store, FakeEntitlementSource(), now_fn=clock)

    clock.advance(days=29)
    assert scheduler.should_show() is PaywallDecision.NOT_YET_ELIGIBLE
    clock.advance(days=1)
    assert scheduler.should_show() is PaywallDecision.PERIODIC_DUE


def test_manual_dismiss_does_not_advance_ladder(scheduler, clock):
    _seen_first_launch(scheduler)
    scheduler.show(PaywallContext.MANUAL_OPEN)
    assert scheduler.is_showing

    scheduler.dismiss(PaywallContext.MANUAL_OPEN)

    assert not scheduler.is_showing
    assert scheduler.state.dismiss_count == 1
    assert scheduler.state.last_shown_at == clock.now


def test_feature_limit_dismiss_advances_ladder(scheduler):
    _seen_first_launch(scheduler)
    scheduler.show(PaywallContext.FEATURE_LIMIT_HIT)
    scheduler.dismiss()
    assert scheduler.state.dismiss_count == 2


def test_show_does_not_touch_state(clock):
    store = RecordingStore()
    scheduler = PaywallScheduler(store, FakeEntitlementSource(), now_fn=clock)
    writes = len(store.writes)
    before = scheduler.state

    scheduler.show(PaywallContext.PERIODIC_REMINDER)

    assert scheduler.state == before
    assert len(store.writes) == writes
    assert scheduler.active_context is PaywallContext.PERIODIC_REMINDER


def test_dismiss_is_single_write(clock):
    store = RecordingStore()
    scheduler = PaywallScheduler(store, FakeEntitlementSource(), now_fn=clock)
    scheduler.should_show()
    writes = len(store.writes)

    scheduler.dismiss(PaywallContext.FIRST_LAUNCH)

    assert len(store.writes) == writes + 1
    assert store.writes[-1] == {
        PaywallKey.LAST_SHOWN_DATE.value: clock.now,
        PaywallKey.DISMISS_COUNT.value: 1,
        PaywallKey.HAS_SEEN_FIRST_LAUNCH.value: True,
        PaywallKey.PURCHASE_PENDING.value: False,
    }


def test_paid_tier_suppressed(scheduler, entitlements, clock):
    _seen_first_launch(scheduler)
    clock.advance(days=5)
    assert scheduler.should_show() is PaywallDecision.PERIODIC_DUE

    entitlements.tier = SubscriptionTier.PREMIUM
    assert scheduler.should_show() is PaywallDecision.SUPPRESSED


def test_paid_tier_suppressed_before_first_launch(store, clock):
    scheduler = PaywallScheduler(store, FakeEntitlementSource(SubscriptionTier.ENHANCED), now_fn=clock)
    assert scheduler.should_show() is PaywallDecision.SUPPRESSED
    assert scheduler.state.first_launch_seen is False


def test_record_purchase_resets_ladder(scheduler, clock):
    _seen_first_launch(scheduler)
    clock.advance(days=2)
    scheduler.dismiss()
    clock.advance(days=10)

    scheduler.record_purchase(SubscriptionTier.ENHANCED)

    state = scheduler.state
    assert state.dismiss_count == 0
    assert state.last_shown_at is None
    assert state.last_periodic_reset_at == clock.now
    assert scheduler.should_show() is not PaywallDecision.PERIODIC_DUE


def test_purchase_suppression_lifts_on_next_dismissal(scheduler, entitlements, clock):
    _seen_first_launch(scheduler)
    scheduler.record_purchase()
    assert scheduler.should_show() is PaywallDecision.SUPPRESSED

    # purchase never landed; user opens the paywall again and closes it
    scheduler.show(PaywallContext.MANUAL_OPEN)
    scheduler.dismiss(PaywallContext.MANUAL_OPEN)
    assert scheduler.should_show() is PaywallDecision.NOT_YET_ELIGIBLE

    clock.advance(days=1)
    assert scheduler.should_show() is PaywallDecision.PERIODIC_DUE


def test_periodic_reset_clears_dismiss_count(clock):
    now = clock.now
    store = InMemoryStore({
        PaywallKey.HAS_SEEN_FIRST_LAUNCH.value: True,
        PaywallKey.DISMISS_COUNT.value: 5,
        PaywallKey.LAST_SHOWN_DATE.value: now - timedelta(days=1),
        PaywallKey.LAST_MONTHLY_RESET.value: now - timedelta(days=30),
        PaywallKey.FIRST_LAUNCH_DATE.value: now - timedelta(days=60),
    })
    scheduler = PaywallScheduler(store, FakeEntitlementSource(), now_fn=clock)

    assert scheduler.should_show() is PaywallDecision.PERIODIC_DUE
    assert scheduler.state.dismiss_count == 0
    assert store.get(PaywallKey.DISMISS_COUNT.value) == 0
    assert store.get(PaywallKey.LAST_MONTHLY_RESET.value) == now


def test_periodic_reset_waits_thirty_days(clock):
    now = clock.now
    store = InMemoryStore({
        PaywallKey.HAS_SEEN_FIRST_LAUNCH.value: True,
        PaywallKey.DISMISS_COUNT.value: 5,
        PaywallKey.LAST_SHOWN_DATE.value: now - timedelta(days=1),
        PaywallKey.LAST_MONTHLY_RESET.value: now - timedelta(days=29),
    })
    scheduler = PaywallScheduler(store, FakeEntitlementSource(), now_fn=clock)

    assert scheduler.should_show() is PaywallDecision.NOT_YET_ELIGIBLE
    assert scheduler.state.dismiss_count == 5


def test_fresh_install_stamps_dates(store, clock):
    PaywallScheduler(store, FakeEntitlementSource(), now_fn=clock)
    assert store.get(PaywallKey.FIRST_LAUNCH_DATE.value) == clock.now
    assert store.get(PaywallKey.LAST_MONTHLY_RESET.value) == clock.now


def test_state_survives_restart(store, entitlements, clock):
    first = PaywallScheduler(store, entitlements, now_fn=clock)
    _seen_first_launch(first)

    second = PaywallScheduler(store, entitlements, now_fn=clock)
    assert second.state == first.state
    assert second.should_show() is PaywallDecision.NOT_YET_ELIGIBLE


def test_malformed_state_treated_as_first_run(clock):
    store = InMemoryStore({
        PaywallKey.HAS_SEEN_FIRST_LAUNCH.value: "yes",
        PaywallKey.DISMISS_COUNT.value: "many",
        PaywallKey.LAST_SHOWN_DATE.value: 12,
    })
    scheduler = PaywallScheduler(store, FakeEntitlementSource(), now_fn=clock)

    state = scheduler.state
    assert state.first_launch_seen is False
    assert state.dismiss_count == 0
    assert state.last_shown_at is None
    assert scheduler.should_show() is PaywallDecision.FIRST_LAUNCH_DUE


def test_debug_info(scheduler, clock):
    _seen_first_launch(scheduler)
    clock.advance(days=1)

    info = scheduler.debug_info()
    assert info.has_seen_first_launch is True
    assert info.dismiss_count == 1
    assert info.next_show_at == info.last_shown_at + timedelta(days=2)
    assert info.days_until_next_show == 1
    assert info.should_show_periodic is False

    clock.advance(days=1)
    assert scheduler.debug_info().should_show_periodic is True
    assert scheduler.days_until_next_show() == 0


def test_next_show_at_none_before_any_dismissal(scheduler):
    assert scheduler.next_show_at() is None
    assert scheduler.days_until_next_show() == 0


def test_reset_for_testing(scheduler, store):
    _seen_first_launch(scheduler)

    scheduler.reset_for_testing()

    assert scheduler.state.first_launch_seen is False
    assert scheduler.state.dismiss_count == 0
    assert store.get(PaywallKey.HAS_SEEN_FIRST_LAUNCH.value) is False
    assert scheduler.should_show() is PaywallDecision.FIRST_LAUNCH_DUE


def test_pending_purchase_survives_restart(store, entitlements, clock):
    """A purchase awaiting confirmation keeps prompts suppressed across a restart."""
    scheduler = PaywallScheduler(store, entitlements, now_fn=clock)
    _seen_first_launch(scheduler)
    scheduler.record_purchase()
    assert store.get(PaywallKey.PURCHASE_PENDING.value) is True

    restarted = PaywallScheduler(store, entitlements, now_fn=clock)
    assert restarted.state.purchase_pending is True
    assert restarted.should_show() is PaywallDecision.SUPPRESSED

    clock.advance(days=3)
    assert restarted.should_show() is PaywallDecision.SUPPRESSED


def test_pending_purchase_cleared_by_paid_tier(store, entitlements, clock):
    scheduler = PaywallScheduler(store, entitlements, now_fn=clock)
    _seen_first_launch(scheduler)
    scheduler.record_purchase(SubscriptionTier.PREMIUM)

    entitlements.tier = SubscriptionTier.PREMIUM
    assert scheduler.should_show() is PaywallDecision.SUPPRESSED
    assert store.get(PaywallKey.PURCHASE_PENDING.value) is False

    # subscription lapses later: the ordinary cadence applies again
    entitlements.tier = SubscriptionTier.FREE
    assert scheduler.should_show() is PaywallDecision.PERIODIC_DUE


def test_pending_purchase_cleared_by_dismissal_persists(store, entitlements, clock):
    scheduler = PaywallScheduler(store, entitlements, now_fn=clock)
    _seen_first_launch(scheduler)
    scheduler.record_purchase()
    scheduler.dismiss(PaywallContext.MANUAL_OPEN)

    restarted = PaywallScheduler(store, entitlements, now_fn=clock)
    assert restarted.state.purchase_pending is False
    assert restarted.should_show() is PaywallDecision.NOT_YET_ELIGIBLE


def test_concurrent_dismissals_are_all_counted(scheduler, store):
    _seen_first_launch(scheduler)
    barrier = threading.Barrier(8)

    def worker():
        barrier.wait()
        for _ in range(10):
            scheduler.dismiss(PaywallContext.PERIODIC_REMINDER)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert scheduler.state.dismiss_count == 81
    assert store.get(PaywallKey.DISMISS_COUNT.value) == 81
