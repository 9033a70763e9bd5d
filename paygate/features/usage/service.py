"""
paygate/features/usage/service.py

Usage tracker for rate-limited operations.

Handles:
- Daily and rolling-period counters per tracked resource
- Lazy window resets on every read or write (no timers)
- Remaining quota, can-consume checks and consumption
- Usage decisions and user-facing usage text

consume() does not refuse over-limit calls: callers check can_consume()
first. Over-limit consumption is logged.
"""

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Dict, Optional, Tuple
import logging
import threading

from paygate.core.clock import Clock, normalize, utc_now
from paygate.core.store import KeyValueStore, read_datetime, read_int
from paygate.features.policy.service import limits_for, quota_for, upgrade_context_for
from paygate.models.tier import UNLIMITED, UNLIMITED_REMAINING, SubscriptionTier, TierLimits
from paygate.models.usage import (
    UsageDecision,
    UsageRecord,
    UsageResource,
    UsageStatus,
    WindowKind,
)


logger = logging.getLogger("paygate")

_LABELS = {
    UsageResource.JOURNAL_IMAGES: ("AI images", "images", "today"),
    UsageResource.PERSONA_GENERATIONS: ("persona generations", "persona generations", "this period"),
}


class UsageTracker:
    """
    Per-resource usage counters backed by a key/value store.

    One instance per running app; all methods are serialized by a single
    lock so a reset check and the write that follows it stay atomic.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        now_fn: Clock = utc_now,
        tz: Optional[tzinfo] = None,
    ):
        """
        Args:
            store: Persistence store (source of truth)
            now_fn: Clock returning the current time
            tz: Calendar used for daily resets (None = host local time)
        """
        self._store = store
        self._now_fn = now_fn
        self._tz = tz
        self._lock = threading.RLock()
        self._records: Dict[UsageResource, UsageRecord] = {}
        for resource in UsageResource:
            record = self._load(resource)
            if record is not None:
                self._records[resource] = record

    # Caller-facing API -----------------------------------------------
    def remaining(self, resource: UsageResource, tier: SubscriptionTier) -> int:
        """Remaining uses in the current window (UNLIMITED_REMAINING if unlimited)."""
        limits = limits_for(tier)
        quota = quota_for(limits, resource)
        if quota == UNLIMITED:
            return UNLIMITED_REMAINING
        if quota == 0:
            return 0
        with self._lock:
            record = self._current_record(resource, limits, self._now())
            return max(0, quota - record.count)

    def can_consume(self, resource: UsageResource, tier: SubscriptionTier) -> bool:
        limits = limits_for(tier)
        quota = quota_for(limits, resource)
        if quota == 0:
            return False
        if quota == UNLIMITED:
            return True
        with self._lock:
            record = self._current_record(resource, limits, self._now())
            return record.count < quota

    def consume(self, resource: UsageResource, tier: SubscriptionTier) -> None:
        """Record one use. Call only after can_consume() returned True."""
        limits = limits_for(tier)
        quota = quota_for(limits, resource)
        if quota == UNLIMITED:
            return

        with self._lock:
            now = self._now()
            current = self._current_record(resource, limits, now)
            record = UsageRecord(count=current.count + 1, window_start=current.window_start)
            self._records[resource] = record
            self._persist(resource, record)

        if record.count > quota:
            logger.warning(
                "[usage] consumed over quota",
                extra={
                    "resource": resource.value,
                    "tier": limits.tier.value,
                    "count": record.count,
                    "quota": quota,
                },
            )
        else:
            logger.info(
                "[usage] consumed",
                extra={
                    "resource": resource.value,
                    "tier": limits.tier.value,
                    "count": record.count,
                    "quota": quota,
                },
            )

    # Supplementary queries ---------------------------------------------
    def check(self, resource: UsageResource, tier: SubscriptionTier) -> UsageDecision:
        """Full decision for UI and gating: status, counts and next reset."""
        limits = limits_for(tier)
        quota = quota_for(limits, resource)

        if quota == UNLIMITED:
            return UsageDecision(
                resource=resource,
                tier=limits.tier,
                status=UsageStatus.ALLOW,
                quota=quota,
                used=0,
                remaining=UNLIMITED_REMAINING,
                resets_at=None,
                upgrade_context=None,
            )
        if quota == 0:
            return UsageDecision(
                resource=resource,
                tier=limits.tier,
                status=UsageStatus.DISABLED,
                quota=0,
                used=0,
                remaining=0,
                resets_at=None,
                upgrade_context=upgrade_context_for(resource),
            )

        with self._lock:
            now = self._now()
            record = self._current_record(resource, limits, now)
            resets_at = self._window_end(resource, record, limits, now)

        remaining = max(0, quota - record.count)
        exhausted = record.count >= quota
        return UsageDecision(
            resource=resource,
            tier=limits.tier,
            status=UsageStatus.EXHAUSTED if exhausted else UsageStatus.ALLOW,
            quota=quota,
            used=record.count,
            remaining=remaining,
            resets_at=resets_at,
            upgrade_context=upgrade_context_for(resource) if exhausted else None,
        )

    def try_consume(self, resource: UsageResource, tier: SubscriptionTier) -> Tuple[bool, UsageDecision]:
        """
        Check and consume as one unit.

        Returns:
            (consumed, decision) where decision is the refusal when consumed
            is False and the post-consumption state otherwise.
        """
        with self._lock:
            decision = self.check(resource, tier)
            if not decision.allowed:
                return False, decision
            self.consume(resource, tier)
            return True, self.check(resource, tier)

    def usage_text(self, resource: UsageResource, tier: SubscriptionTier) -> str:
        label, unit, window = _LABELS[resource]
        decision = self.check(resource, tier)
        if decision.status is UsageStatus.DISABLED:
            return f"{label[0].upper()}{label[1:]} not available"
        if decision.quota == UNLIMITED:
            return f"Unlimited {label}"
        return f"{decision.remaining} of {decision.quota} {unit} remaining {window}"

    def resets_at(self, resource: UsageResource, tier: SubscriptionTier) -> Optional[datetime]:
        """When the current window ends, None for unlimited or disabled quotas."""
        return self.check(resource, tier).resets_at

    def reset_all(self) -> None:
        """Start fresh windows for every resource (developer tooling)."""
        with self._lock:
            now = self._now()
            for resource in UsageResource:
                record = UsageRecord(count=0, window_start=now)
                self._records[resource] = record
                self._persist(resource, record)
        logger.debug("[usage] all counters reset")

    # Internal helpers -------------------------------------------------
    def _now(self) -> datetime:
        return normalize(self._now_fn())

    def _local_day(self, moment: datetime) -> date:
        return moment.astimezone(self._tz).date()

    def _load(self, resource: UsageResource) -> Optional[UsageRecord]:
        window_start = read_datetime(self._store, resource.window_start_key)
        if window_start is None:
            return None
        count = max(0, read_int(self._store, resource.count_key, 0))
        return UsageRecord(count=count, window_start=window_start)

    def _persist(self, resource: UsageResource, record: UsageRecord) -> None:
        self._store.set_many(
            {
                resource.count_key: record.count,
                resource.window_start_key: record.window_start,
            }
        )

    def _window_expired(
        self,
        resource: UsageResource,
        record: UsageRecord,
        limits: TierLimits,
        now: datetime,
    ) -> bool:
        if resource.window is WindowKind.DAILY:
            return self._local_day(record.window_start) != self._local_day(now)
        length = limits.period_length_days
        # no rolling window without a positive length
        if length <= 0:
            return False
        return now - record.window_start >= timedelta(days=length)

    def _current_record(
        self,
        resource: UsageResource,
        limits: TierLimits,
        now: datetime,
    ) -> UsageRecord:
        record = self._records.get(resource)
        if record is None:
            record = UsageRecord(count=0, window_start=now)
            self._records[resource] = record
            self._persist(resource, record)
            return record

        if self._window_expired(resource, record, limits, now):
            previous = record.count
            record = UsageRecord(count=0, window_start=now)
            self._records[resource] = record
            self._persist(resource, record)
            logger.info(
                "[usage] window reset",
                extra={
                    "resource": resource.value,
                    "tier": limits.tier.value,
                    "previous_count": previous,
                },
            )
        return record

    def _window_end(
        self,
        resource: UsageResource,
        record: UsageRecord,
        limits: TierLimits,
        now: datetime,
    ) -> Optional[datetime]:
        if resource.window is WindowKind.DAILY:
            next_day = self._local_day(now) + timedelta(days=1)
            if self._tz is None:
                midnight = datetime.combine(next_day, time()).astimezone()
            else:
                midnight = datetime.combine(next_day, time(), tzinfo=self._tz)
            return midnight.astimezone(timezone.utc)
        if limits.period_length_days <= 0:
            return None
        return record.window_start + timedelta(days=limits.period_length_days)
