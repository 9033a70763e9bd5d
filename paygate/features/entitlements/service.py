"""
paygate/features/entitlements/service.py

Entitlement source: which tier the user holds right now.

Handles:
- The EntitlementSource contract consumed by the paywall scheduler
- Resolution of several valid entitlements (highest priority wins)
- Persisted tier with expiry validation on load
"""

from datetime import datetime
from typing import Iterable, Optional, Protocol
import logging
import threading

from paygate.core.clock import Clock, normalize, utc_now
from paygate.core.store import KeyValueStore, read_datetime, read_str
from paygate.models.entitlement import Entitlement
from paygate.models.tier import SubscriptionTier


logger = logging.getLogger("paygate")

TIER_KEY = "subscriptionTier"
EXPIRY_KEY = "subscriptionExpiresAt"
PRODUCT_KEY = "activeProductId"


class EntitlementSource(Protocol):
    """
    Supplies the caller's current tier, refreshed independently of paygate
    (app foreground, purchase completion).
    """

    def current_tier(self) -> SubscriptionTier:
        ...

    def current_tier_expiry(self) -> Optional[datetime]:
        ...


def resolve_entitlement(entitlements: Iterable[Entitlement], now: datetime) -> Optional[Entitlement]:
    """Highest-priority active entitlement, or None when nothing is active."""
    best: Optional[Entitlement] = None
    for entitlement in entitlements:
        if not entitlement.is_active(now):
            continue
        if best is None or entitlement.tier.priority > best.tier.priority:
            best = entitlement
    return best


class LocalEntitlementSource:
    """Entitlement source persisted to the key/value store."""

    def __init__(self, store: KeyValueStore, *, now_fn: Clock = utc_now):
        self._store = store
        self._now_fn = now_fn
        self._lock = threading.RLock()
        self._tier = SubscriptionTier.FREE
        self._expires_at: Optional[datetime] = None
        self._product_id: Optional[str] = None
        self._load()

    def current_tier(self) -> SubscriptionTier:
        with self._lock:
            self._expire_if_needed()
            return self._tier

    def current_tier_expiry(self) -> Optional[datetime]:
        with self._lock:
            self._expire_if_needed()
            return self._expires_at

    @property
    def product_id(self) -> Optional[str]:
        with self._lock:
            self._expire_if_needed()
            return self._product_id

    def refresh(self, entitlements: Iterable[Entitlement]) -> SubscriptionTier:
        """Replace current state with the best of the given entitlements."""
        with self._lock:
            best = resolve_entitlement(entitlements, self._now())
            if best is None:
                self._set(SubscriptionTier.FREE, None, None)
            else:
                self._set(best.tier, best.expires_at, best.product_id)
            tier = self._tier
            expires_at = self._expires_at

        logger.info(
            "Subscription status updated",
            extra={"tier": tier.value, "expires_at": expires_at},
        )
        return tier

    def reset_to_free(self) -> None:
        with self._lock:
            self._set(SubscriptionTier.FREE, None, None)
        logger.debug("Reset to free tier")

    # Internal helpers -------------------------------------------------
    def _now(self) -> datetime:
        return normalize(self._now_fn())

    def _load(self) -> None:
        raw_tier = read_str(self._store, TIER_KEY)
        try:
            tier = SubscriptionTier(raw_tier) if raw_tier else SubscriptionTier.FREE
        except ValueError:
            logger.warning("Unknown persisted tier, using free", extra={"tier": raw_tier})
            tier = SubscriptionTier.FREE

        self._tier = tier
        self._expires_at = read_datetime(self._store, EXPIRY_KEY)
        self._product_id = read_str(self._store, PRODUCT_KEY)
        self._expire_if_needed()

    def _expire_if_needed(self) -> None:
        if self._expires_at is None or self._expires_at > self._now():
            return
        logger.info(
            "Persisted subscription expired, resetting to free",
            extra={"tier": self._tier.value, "expires_at": self._expires_at},
        )
        self._set(SubscriptionTier.FREE, None, None)

    def _set(
        self,
        tier: SubscriptionTier,
        expires_at: Optional[datetime],
        product_id: Optional[str],
    ) -> None:
        self._tier = tier
        self._expires_at = expires_at
        self._product_id = product_id
        self._store.set_many(
            {
                TIER_KEY: tier.value,
                EXPIRY_KEY: expires_at,
                PRODUCT_KEY: product_id,
            }
        )
