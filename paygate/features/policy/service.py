"""
paygate/features/policy/service.py

Tier policy table.

Handles:
- Per-tier limits (single source of truth, fixed at build time)
- Quota lookup per tracked resource
- Style slot and persona update checks
- Upgrade copy per tier and context
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

from paygate.models.tier import (
    UNLIMITED,
    UNLIMITED_REMAINING,
    SubscriptionTier,
    TierLimits,
    UpgradeContext,
)
from paygate.models.usage import UsageResource, WindowKind


TIER_LIMITS: Dict[SubscriptionTier, TierLimits] = {
    SubscriptionTier.FREE: TierLimits(
        tier=SubscriptionTier.FREE,
        daily_quota=0,
        period_quota=0,
        period_length_days=-1,  # never
        max_concurrent_style_slots=0,
        can_create=False,
        can_update=False,
        can_regenerate=False,
        features=(
            "Core journaling (unlimited entries)",
            "iCloud sync across devices",
            "Upgrade for AI reflections & images",
        ),
    ),
    SubscriptionTier.ENHANCED: TierLimits(
        tier=SubscriptionTier.ENHANCED,
        daily_quota=5,
        period_quota=10,
        period_length_days=30,  # monthly
        max_concurrent_style_slots=3,
        can_create=True,
        can_update=True,
        can_regenerate=True,
        has_ai_reflections=True,
        has_ai_summaries=True,
        has_sentiment_insights=True,
        features=(
            "Everything in Free, plus:",
            "AI reflections & summaries (short-form)",
            "5 journal image generations per day",
            "Up to 3 persona styles (10 generations/month)",
            "Monthly persona updates",
            "Sentiment and tone insights",
        ),
    ),
    SubscriptionTier.PREMIUM: TierLimits(
        tier=SubscriptionTier.PREMIUM,
        daily_quota=20,
        period_quota=20,
        period_length_days=14,  # bi-weekly
        max_concurrent_style_slots=5,
        can_create=True,
        can_update=True,
        can_regenerate=True,
        has_ai_reflections=True,
        has_ai_summaries=True,
        has_weekly_monthly_summaries=True,
        has_advanced_ai=True,
        has_sentiment_insights=True,
        has_early_access=True,
        features=(
            "Everything in Enhanced, plus:",
            "Long-form & creative AI reflections",
            "20 journal image generations per day",
            "Up to 5 persona styles (20 generations/2 weeks)",
            "Bi-weekly persona updates (every 14 days)",
            "Weekly and monthly AI summaries",
            "Early access to experimental features",
        ),
    ),
}


def limits_for(tier: SubscriptionTier) -> TierLimits:
    """Limits for a tier. Total over the tier enum."""
    return TIER_LIMITS[SubscriptionTier(tier)]


def quota_for(limits: TierLimits, resource: UsageResource) -> int:
    """Quota per window for a tracked resource (UNLIMITED, 0 = disabled)."""
    if resource.window is WindowKind.DAILY:
        return limits.daily_quota
    return limits.period_quota


def upgrade_context_for(resource: UsageResource) -> UpgradeContext:
    if resource is UsageResource.JOURNAL_IMAGES:
        return UpgradeContext.AI_IMAGE_LIMIT_REACHED
    return UpgradeContext.PERSONA_GENERATION_LIMIT_REACHED


def can_add_style(limits: TierLimits, current_style_count: int) -> bool:
    slots = limits.max_concurrent_style_slots
    if slots == 0:
        return False
    if slots == UNLIMITED:
        return True
    return current_style_count < slots


def remaining_style_slots(limits: TierLimits, current_style_count: int) -> int:
    slots = limits.max_concurrent_style_slots
    if slots == 0:
        return 0
    if slots == UNLIMITED:
        return UNLIMITED_REMAINING
    return max(0, slots - current_style_count)


@dataclass(frozen=True)
class PersonaUpdateWindow:
    can_update: bool
    days_remaining: Optional[int]


def persona_update_window(
    limits: TierLimits,
    last_update: Optional[datetime],
    now: datetime,
) -> PersonaUpdateWindow:
    """Whether personas may be updated now, and if not, how many days to wait."""
    frequency = limits.period_length_days
    if not limits.can_update or frequency < 0:
        return PersonaUpdateWindow(can_update=False, days_remaining=None)
    if frequency == 0 or last_update is None:
        return PersonaUpdateWindow(can_update=True, days_remaining=None)

    days_since = (now - last_update).days
    if days_since >= frequency:
        return PersonaUpdateWindow(can_update=True, days_remaining=None)
    return PersonaUpdateWindow(can_update=False, days_remaining=frequency - days_since)


def key_feature_summary(limits: TierLimits) -> str:
    """Short one-line summary, e.g. '5 AI/day • 3 Styles • AI Reflections'."""
    parts = []
    if limits.daily_quota == UNLIMITED:
        parts.append("Unlimited AI")
    elif limits.daily_quota > 0:
        parts.append(f"{limits.daily_quota} AI/day")

    if limits.max_concurrent_style_slots == UNLIMITED:
        parts.append("Unlimited Styles")
    elif limits.max_concurrent_style_slots > 0:
        parts.append(f"{limits.max_concurrent_style_slots} Styles")

    if limits.has_ai_reflections:
        parts.append("AI Reflections")

    return " • ".join(parts)


def upgrade_message(tier: SubscriptionTier, context: UpgradeContext = UpgradeContext.GENERIC) -> str:
    """User-facing upgrade copy.

    Disabled features (quota 0) and exhausted quotas get different wording.
    """
    tier = SubscriptionTier(tier)
    enhanced = limits_for(SubscriptionTier.ENHANCED)
    premium = limits_for(SubscriptionTier.PREMIUM)
    own = limits_for(tier)

    if context is UpgradeContext.AI_IMAGE_LIMIT_REACHED:
        if own.daily_quota == 0:
            return (
                "AI image generation is available starting from the Enhanced tier. "
                f"Upgrade to generate {enhanced.daily_quota} AI images per day."
            )
        if tier is SubscriptionTier.PREMIUM:
            return f"You've reached your daily limit of {own.daily_quota} AI images. Your quota resets tomorrow."
        return (
            f"You've used all {own.daily_quota} daily AI images. "
            f"Upgrade to Premium for {premium.daily_quota} images per day, or wait until tomorrow."
        )

    if context is UpgradeContext.PERSONA_LIMIT_REACHED:
        if own.max_concurrent_style_slots == 0:
            return (
                "Persona styles are available starting from the Enhanced tier. "
                f"Upgrade to create up to {enhanced.max_concurrent_style_slots} styles."
            )
        if tier is SubscriptionTier.PREMIUM:
            return f"You've reached your limit of {own.max_concurrent_style_slots} persona styles."
        return (
            f"You've reached your limit of {own.max_concurrent_style_slots} persona styles. "
            f"Upgrade to Premium for up to {premium.max_concurrent_style_slots} styles."
        )

    if context is UpgradeContext.PERSONA_GENERATION_LIMIT_REACHED:
        if own.period_quota == 0:
            return (
                "Persona generation is available starting from the Enhanced tier. "
                f"Upgrade for {enhanced.period_quota} generations every {enhanced.period_length_days} days."
            )
        if tier is SubscriptionTier.PREMIUM:
            return (
                f"You've used all {own.period_quota} persona generations for this "
                f"{own.period_length_days}-day period. Your quota resets at the end of the period."
            )
        return (
            f"You've used all {own.period_quota} persona generations for this "
            f"{own.period_length_days}-day period. Upgrade to Premium for {premium.period_quota} "
            f"generations every {premium.period_length_days} days."
        )

    if context is UpgradeContext.PERSONA_UPDATE_COOLDOWN:
        if not own.can_update:
            return f"Persona updates are not available on the {tier.display_name} tier."
        if tier is SubscriptionTier.PREMIUM:
            return f"You can update your personas every {own.period_length_days} days on the Premium tier."
        return (
            f"You can update your personas every {own.period_length_days} days on the "
            f"{tier.display_name} tier. Upgrade to Premium for updates every "
            f"{premium.period_length_days} days."
        )

    if tier is SubscriptionTier.FREE:
        return "Upgrade to Enhanced or Premium to unlock AI reflections, image generation, and persona styles."
    if tier is SubscriptionTier.ENHANCED:
        return "Upgrade to Premium for more AI generations, persona styles, and advanced features."
    return "You have access to all premium features."
