"""
Tier policy API.

Read-only view of the policy table for the app shell (plan cards, upgrade copy).
"""

from fastapi import APIRouter, Query

from paygate.api.deps import parse_tier
from paygate.core.errors import ValidationError
from paygate.features.policy.service import key_feature_summary, limits_for, upgrade_message
from paygate.models.tier import SubscriptionTier, UpgradeContext

router = APIRouter(tags=["tiers"])


def _limits_payload(tier: SubscriptionTier) -> dict:
    limits = limits_for(tier)
    payload = limits.model_dump(mode="json")
    payload["display_name"] = limits.display_name
    payload["priority"] = tier.priority
    payload["summary"] = key_feature_summary(limits)
    return payload


@router.get("/v1/tiers")
def list_tiers():
    """All tiers in priority order."""
    tiers = sorted(SubscriptionTier)
    return {"tiers": [_limits_payload(tier) for tier in tiers]}


@router.get("/v1/tiers/{tier}/limits")
def get_tier_limits(tier: str):
    return _limits_payload(parse_tier(tier))


@router.get("/v1/tiers/{tier}/upgrade-message")
def get_upgrade_message(tier: str, context: str = Query("generic")):
    parsed = parse_tier(tier)
    try:
        upgrade_context = UpgradeContext(context)
    except ValueError:
        raise ValidationError(f"Unknown upgrade context '{context}'")
    return {"tier": parsed.value, "context": upgrade_context.value, "message": upgrade_message(parsed, upgrade_context)}
