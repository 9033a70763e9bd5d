"""
paygate/models/tier.py

Subscription tiers and their limits.

Tiers are a closed, ordered set. When several entitlements are valid at once
the highest priority wins.
"""

import sys
from enum import Enum
from typing import Iterable, Tuple

from pydantic import BaseModel, ConfigDict

# Quota sentinel meaning "no limit"; 0 means the feature is disabled.
UNLIMITED = -1

# What remaining() reports for unlimited quotas.
UNLIMITED_REMAINING = sys.maxsize

_PRIORITY = {"free": 0, "enhanced": 1, "premium": 2}
_DISPLAY_NAMES = {"free": "Free", "enhanced": "Enhanced", "premium": "Premium"}


class SubscriptionTier(str, Enum):
    """Subscription level, ordered FREE < ENHANCED < PREMIUM."""
    FREE = "free"
    ENHANCED = "enhanced"
    PREMIUM = "premium"

    @property
    def priority(self) -> int:
        return _PRIORITY[self.value]

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self.value]

    @property
    def is_paid(self) -> bool:
        return self is not SubscriptionTier.FREE

    def __lt__(self, other):
        if not isinstance(other, SubscriptionTier):
            return NotImplemented
        return self.priority < other.priority

    def __le__(self, other):
        if not isinstance(other, SubscriptionTier):
            return NotImplemented
        return self.priority <= other.priority

    def __gt__(self, other):
        if not isinstance(other, SubscriptionTier):
            return NotImplemented
        return self.priority > other.priority

    def __ge__(self, other):
        if not isinstance(other, SubscriptionTier):
            return NotImplemented
        return self.priority >= other.priority


class UpgradeContext(str, Enum):
    """Why an upgrade prompt or message is being shown."""
    GENERIC = "generic"
    AI_IMAGE_LIMIT_REACHED = "ai_image_limit_reached"
    PERSONA_LIMIT_REACHED = "persona_limit_reached"
    PERSONA_GENERATION_LIMIT_REACHED = "persona_generation_limit_reached"
    PERSONA_UPDATE_COOLDOWN = "persona_update_cooldown"


def highest_tier(tiers: Iterable[SubscriptionTier]) -> SubscriptionTier:
    """Highest-priority tier of the given ones, FREE when empty."""
    best = SubscriptionTier.FREE
    for tier in tiers:
        if tier.priority > best.priority:
            best = tier
    return best


class TierLimits(BaseModel):
    """
    Immutable limits and capabilities for one tier.

    Quota values:
    - UNLIMITED (-1): no limit
    - 0: feature disabled for this tier
    - n > 0: at most n per window

    period_length_days:
    - persona updates: -1 = never allowed, 0 = no cooldown, n = every n days
    - period quota window: n > 0 resets every n days; -1 and 0 never reset
    """
    model_config = ConfigDict(frozen=True)

    tier: SubscriptionTier

    # Journal image generation, per local calendar day
    daily_quota: int

    # Persona avatar generation, per rolling period
    period_quota: int
    period_length_days: int

    # Persona styles held at once
    max_concurrent_style_slots: int

    can_create: bool
    can_update: bool
    can_regenerate: bool

    has_ai_reflections: bool = False
    has_ai_summaries: bool = False
    has_weekly_monthly_summaries: bool = False
    has_advanced_ai: bool = False
    has_sentiment_insights: bool = False
    has_early_access: bool = False

    features: Tuple[str, ...] = ()

    @property
    def display_name(self) -> str:
        return self.tier.display_name

    @property
    def has_unlimited_daily(self) -> bool:
        return self.daily_quota == UNLIMITED

    @property
    def has_unlimited_style_slots(self) -> bool:
        return self.max_concurrent_style_slots == UNLIMITED
