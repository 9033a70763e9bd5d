"""
paygate/features/paywall/service.py

Paywall cadence scheduler.

Decides when to interrupt a free-tier user with an upgrade prompt:
- first launch always prompts once
- after that, re-prompt with exponential backoff on dismissals
  (1, 2, 4, 8, 16, then 30 days)
- the dismissal ladder resets every 30 days and on purchase

Paid tiers are always suppressed.
"""

from dataclasses import replace
from datetime import datetime, timedelta
from typing import Optional
import logging
import threading

from paygate.core.clock import Clock, normalize, utc_now
from paygate.core.logging import log_event
from paygate.core.store import KeyValueStore, read_bool, read_datetime, read_int
from paygate.features.entitlements.service import EntitlementSource
from paygate.models.paywall import (
    PaywallContext,
    PaywallDebugInfo,
    PaywallDecision,
    PaywallKey,
    PaywallState,
)
from paygate.models.tier import SubscriptionTier


logger = logging.getLogger("paygate")

MAX_BACKOFF_DAYS = 30
PERIODIC_RESET_DAYS = 30


def backoff_days(dismiss_count: int) -> int:
    """Days to wait after a dismissal: min(2**n, 30)."""
    n = max(0, dismiss_count)
    # 2**5 already exceeds the cap; skip the power for large counts
    if n >= 5:
        return MAX_BACKOFF_DAYS
    return min(2 ** n, MAX_BACKOFF_DAYS)


class PaywallScheduler:
    """
    Paywall display timing for one app instance.

    All reads and writes of PaywallState happen under one lock, so a
    decision and the persistence write it implies never interleave with
    another call.
    """

    def __init__(
        self,
        store: KeyValueStore,
        entitlements: EntitlementSource,
        *,
        now_fn: Clock = utc_now,
    ):
        self._store = store
        self._entitlements = entitlements
        self._now_fn = now_fn
        self._lock = threading.RLock()

        self._active_context = PaywallContext.FIRST_LAUNCH
        self._is_showing = False

        self._state = self._load()
        self._stamp_missing_dates()

    # Properties -------------------------------------------------------
    @property
    def state(self) -> PaywallState:
        with self._lock:
            return replace(self._state)

    @property
    def active_context(self) -> PaywallContext:
        return self._active_context

    @property
    def is_showing(self) -> bool:
        return self._is_showing

    # Caller-facing API -----------------------------------------------
    def should_show(self) -> PaywallDecision:
        """Decide whether to prompt now. Call on app foreground."""
        tier = self._entitlements.current_tier()

        with self._lock:
            if tier is not SubscriptionTier.FREE:
                self._clear_purchase_pending()
                return PaywallDecision.SUPPRESSED
            if self._state.purchase_pending:
                return PaywallDecision.SUPPRESSED

            now = self._now()
            self._apply_periodic_reset(now)

            if not self._state.first_launch_seen:
                self._active_context = PaywallContext.FIRST_LAUNCH
                logger.info("Showing first launch paywall", extra={"decision": PaywallDecision.FIRST_LAUNCH_DUE.value})
                return PaywallDecision.FIRST_LAUNCH_DUE

            if self._periodic_due(now):
                self._active_context = PaywallContext.PERIODIC_REMINDER
                logger.info(
                    "Showing periodic reminder paywall",
                    extra={
                        "decision": PaywallDecision.PERIODIC_DUE.value,
                        "dismiss_count": self._state.dismiss_count,
                    },
                )
                return PaywallDecision.PERIODIC_DUE

            return PaywallDecision.NOT_YET_ELIGIBLE

    def show(self, context: PaywallContext) -> None:
        """Mark the paywall as displayed for a context. Does not touch PaywallState."""
        with self._lock:
            self._active_context = PaywallContext(context)
            self._is_showing = True
            dismiss_count = self._state.dismiss_count

        log_event(
            "debug",
            "paywall.shown",
            event_type="paywall.shown",
            context=self._active_context.value,
            extra={"dismiss_count": dismiss_count},
        )

    def dismiss(self, context: Optional[PaywallContext] = None) -> None:
        """
        Record a dismissal.

        Args:
            context: Context being dismissed (defaults to the active one).
                Manual opens do not advance the backoff ladder.
        """
        with self._lock:
            ctx = PaywallContext(context) if context is not None else self._active_context
            now = self._now()

            state = replace(self._state, last_shown_at=now, purchase_pending=False)
            if not ctx.is_manual:
                state.dismiss_count += 1
            if ctx is PaywallContext.FIRST_LAUNCH:
                state.first_launch_seen = True

            self._store.set_many(
                {
                    PaywallKey.LAST_SHOWN_DATE.value: state.last_shown_at,
                    PaywallKey.DISMISS_COUNT.value: state.dismiss_count,
                    PaywallKey.HAS_SEEN_FIRST_LAUNCH.value: state.first_launch_seen,
                    PaywallKey.PURCHASE_PENDING.value: False,
                }
            )
            self._state = state
            self._active_context = ctx
            self._is_showing = False

        log_event(
            "debug",
            "paywall.dismissed",
            event_type="paywall.dismissed",
            context=ctx.value,
        )
        logger.info(
            "Paywall dismissed",
            extra={"context": ctx.value, "dismiss_count": state.dismiss_count},
        )

    def record_purchase(self, tier: Optional[SubscriptionTier] = None) -> None:
        """Reset the backoff ladder after a successful purchase."""
        with self._lock:
            self._reset_tracking(self._now(), purchase_pending=True)
            self._is_showing = False

        log_event(
            "debug",
            "paywall.purchase_completed",
            event_type="paywall.purchase_completed",
            tier=SubscriptionTier(tier).value if tier is not None else None,
        )
        logger.info("Purchase completed, paywall tracking reset")

    # Supplementary queries ---------------------------------------------
    def next_show_at(self) -> Optional[datetime]:
        """When the periodic prompt becomes due, None if never shown since reset."""
        with self._lock:
            return self._next_show_at()

    def days_until_next_show(self) -> int:
        with self._lock:
            next_show = self._next_show_at()
            if next_show is None:
                return 0
            return max(0, (next_show - self._now()).days)

    def debug_info(self) -> PaywallDebugInfo:
        with self._lock:
            now = self._now()
            return PaywallDebugInfo(
                has_seen_first_launch=self._state.first_launch_seen,
                dismiss_count=self._state.dismiss_count,
                last_shown_at=self._state.last_shown_at,
                next_show_at=self._next_show_at(),
                days_until_next_show=self.days_until_next_show(),
                should_show_periodic=self._state.first_launch_seen and self._periodic_due(now),
            )

    def reset_for_testing(self) -> None:
        """Return to first-run state (developer tooling)."""
        with self._lock:
            self._reset_tracking(self._now())
            self._state.first_launch_seen = False
            self._store.set(PaywallKey.HAS_SEEN_FIRST_LAUNCH.value, False)
            self._is_showing = False
        logger.debug("Paywall tracking reset for testing")

    # Internal helpers -------------------------------------------------
    def _now(self) -> datetime:
        return normalize(self._now_fn())

    def _load(self) -> PaywallState:
        return PaywallState(
            first_launch_seen=read_bool(self._store, PaywallKey.HAS_SEEN_FIRST_LAUNCH.value, False),
            dismiss_count=max(0, read_int(self._store, PaywallKey.DISMISS_COUNT.value, 0)),
            last_shown_at=read_datetime(self._store, PaywallKey.LAST_SHOWN_DATE.value),
            last_periodic_reset_at=read_datetime(self._store, PaywallKey.LAST_MONTHLY_RESET.value),
            first_launch_at=read_datetime(self._store, PaywallKey.FIRST_LAUNCH_DATE.value),
            purchase_pending=read_bool(self._store, PaywallKey.PURCHASE_PENDING.value, False),
        )

    def _stamp_missing_dates(self) -> None:
        now = self._now()
        updates = {}
        if self._state.first_launch_at is None:
            self._state.first_launch_at = now
            updates[PaywallKey.FIRST_LAUNCH_DATE.value] = now
        if self._state.last_periodic_reset_at is None:
            self._state.last_periodic_reset_at = now
            updates[PaywallKey.LAST_MONTHLY_RESET.value] = now
        if updates:
            self._store.set_many(updates)

    def _apply_periodic_reset(self, now: datetime) -> None:
        last_reset = self._state.last_periodic_reset_at or now
        if now - last_reset < timedelta(days=PERIODIC_RESET_DAYS):
            return
        self._state.dismiss_count = 0
        self._state.last_periodic_reset_at = now
        self._store.set_many(
            {
                PaywallKey.DISMISS_COUNT.value: 0,
                PaywallKey.LAST_MONTHLY_RESET.value: now,
            }
        )
        logger.info("Monthly paywall reset triggered (30 days elapsed)")

    def _reset_tracking(self, now: datetime, *, purchase_pending: bool = False) -> None:
        self._state.dismiss_count = 0
        self._state.last_shown_at = None
        self._state.last_periodic_reset_at = now
        self._state.purchase_pending = purchase_pending
        self._store.set_many(
            {
                PaywallKey.DISMISS_COUNT.value: 0,
                PaywallKey.LAST_SHOWN_DATE.value: None,
                PaywallKey.LAST_MONTHLY_RESET.value: now,
                PaywallKey.PURCHASE_PENDING.value: purchase_pending,
            }
        )

    def _clear_purchase_pending(self) -> None:
        if not self._state.purchase_pending:
            return
        self._state.purchase_pending = False
        self._store.set(PaywallKey.PURCHASE_PENDING.value, False)

    def _next_show_at(self) -> Optional[datetime]:
        if self._state.last_shown_at is None:
            return None
        return self._state.last_shown_at + timedelta(days=backoff_days(self._state.dismiss_count))

    def _periodic_due(self, now: datetime) -> bool:
        next_show = self._next_show_at()
        return next_show is None or now >= next_show
