"""
paygate/models/paywall.py

Paywall cadence state and decisions.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class PaywallDecision(str, Enum):
    """Outcome of should_show()."""
    NOT_YET_ELIGIBLE = "NOT_YET_ELIGIBLE"
    FIRST_LAUNCH_DUE = "FIRST_LAUNCH_DUE"
    PERIODIC_DUE = "PERIODIC_DUE"
    SUPPRESSED = "SUPPRESSED"

    @property
    def is_due(self) -> bool:
        return self in (PaywallDecision.FIRST_LAUNCH_DUE, PaywallDecision.PERIODIC_DUE)


class PaywallContext(str, Enum):
    FIRST_LAUNCH = "firstLaunch"  # first app launch
    PERIODIC_REMINDER = "periodicReminder"  # after backoff elapsed
    FEATURE_LIMIT_HIT = "featureLimitHit"  # user hit a usage limit
    MANUAL_OPEN = "manualOpen"  # user opened from settings

    @property
    def is_manual(self) -> bool:
        return self is PaywallContext.MANUAL_OPEN


class PaywallKey(str, Enum):
    """Persistence keys for the scheduler."""
    FIRST_LAUNCH_DATE = "firstLaunchDate"
    LAST_SHOWN_DATE = "lastShownDate"
    DISMISS_COUNT = "dismissCount"
    LAST_MONTHLY_RESET = "lastMonthlyReset"
    HAS_SEEN_FIRST_LAUNCH = "hasSeenFirstLaunch"
    PURCHASE_PENDING = "purchasePending"


@dataclass
class PaywallState:
    first_launch_seen: bool = False
    dismiss_count: int = 0
    last_shown_at: Optional[datetime] = None
    last_periodic_reset_at: Optional[datetime] = None
    first_launch_at: Optional[datetime] = None
    # Set by record_purchase until a paid tier is reported or the user dismisses again
    purchase_pending: bool = False


@dataclass(frozen=True)
class PaywallDebugInfo:
    has_seen_first_launch: bool
    dismiss_count: int
    last_shown_at: Optional[datetime]
    next_show_at: Optional[datetime]
    days_until_next_show: int
    should_show_periodic: bool
