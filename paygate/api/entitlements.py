from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from paygate.core.services import Services, get_services
from paygate.models.entitlement import Entitlement
from paygate.models.tier import SubscriptionTier

router = APIRouter(tags=["entitlements"])


class EntitlementIn(BaseModel):
    tier: SubscriptionTier
    expires_at: Optional[datetime] = None
    product_id: Optional[str] = None


class RefreshRequest(BaseModel):
    entitlements: List[EntitlementIn] = Field(default_factory=list)


def _current(services: Services) -> dict:
    source = services.entitlements
    tier = source.current_tier()
    expiry = source.current_tier_expiry()
    return {
        "tier": tier.value,
        "display_name": tier.display_name,
        "expires_at": expiry.isoformat() if expiry else None,
        "product_id": source.product_id,
        "is_subscribed": tier.is_paid,
    }


@router.get("/v1/entitlements/current")
def get_current_entitlement(services: Services = Depends(get_services)):
    return _current(services)


@router.post("/v1/entitlements/refresh")
def refresh_entitlements(body: RefreshRequest, services: Services = Depends(get_services)):
    """Replace the active tier with the best of the store front's current entitlements."""
    services.entitlements.refresh(
        Entitlement(tier=item.tier, expires_at=item.expires_at, product_id=item.product_id)
        for item in body.entitlements
    )
    return _current(services)
