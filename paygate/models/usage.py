"""
paygate/models/usage.py

Tracked resources and their usage records.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from paygate.models.tier import SubscriptionTier, UpgradeContext


class WindowKind(str, Enum):
    DAILY = "daily"
    PERIOD = "period"


class UsageResource(str, Enum):
    """
    Rate-limited operations tracked per window.

    The value is the persistence namespace: records live under
    "{value}.count" and "{value}.windowStart".
    """
    JOURNAL_IMAGES = "journal_images"
    PERSONA_GENERATIONS = "persona_generations"

    @property
    def window(self) -> WindowKind:
        if self is UsageResource.JOURNAL_IMAGES:
            return WindowKind.DAILY
        return WindowKind.PERIOD

    @property
    def count_key(self) -> str:
        return f"{self.value}.count"

    @property
    def window_start_key(self) -> str:
        return f"{self.value}.windowStart"


@dataclass
class UsageRecord:
    """Consumption so far in the current window."""

    count: int
    window_start: datetime


class UsageStatus(str, Enum):
    """Outcome of a usage check."""
    ALLOW = "ALLOW"
    EXHAUSTED = "EXHAUSTED"
    DISABLED = "DISABLED"


@dataclass(frozen=True)
class UsageDecision:
    resource: UsageResource
    tier: SubscriptionTier
    status: UsageStatus
    quota: int
    used: int
    remaining: int
    resets_at: Optional[datetime]
    upgrade_context: Optional[UpgradeContext]

    @property
    def allowed(self) -> bool:
        return self.status is UsageStatus.ALLOW
