"""
Usage API.

Quota state for the current tier, and a gated consume that refuses
disabled features and exhausted quotas.
"""

from fastapi import APIRouter, Depends

from paygate.api.deps import parse_resource
from paygate.core.errors import FeatureDisabledError, QuotaExceededError
from paygate.core.services import Services, get_services
from paygate.features.policy.service import upgrade_message
from paygate.models.tier import UNLIMITED
from paygate.models.usage import UsageDecision, UsageStatus

router = APIRouter(tags=["usage"])


def _decision_payload(decision: UsageDecision, text: str) -> dict:
    return {
        "resource": decision.resource.value,
        "tier": decision.tier.value,
        "status": decision.status.value,
        "quota": decision.quota,
        "used": decision.used,
        "remaining": decision.remaining,
        "unlimited": decision.quota == UNLIMITED,
        "resets_at": decision.resets_at.isoformat() if decision.resets_at else None,
        "upgrade_context": decision.upgrade_context.value if decision.upgrade_context else None,
        "text": text,
    }


@router.get("/v1/usage/{resource}")
def get_usage(resource: str, services: Services = Depends(get_services)):
    parsed = parse_resource(resource)
    tier = services.entitlements.current_tier()
    decision = services.usage.check(parsed, tier)
    return _decision_payload(decision, services.usage.usage_text(parsed, tier))


@router.post("/v1/usage/{resource}/consume")
def consume_usage(resource: str, services: Services = Depends(get_services)):
    parsed = parse_resource(resource)
    tier = services.entitlements.current_tier()

    consumed, decision = services.usage.try_consume(parsed, tier)
    if not consumed:
        message = upgrade_message(tier, decision.upgrade_context)
        if decision.status is UsageStatus.DISABLED:
            raise FeatureDisabledError(message)
        raise QuotaExceededError(message)

    return _decision_payload(decision, services.usage.usage_text(parsed, tier))
