from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from paygate.core.services import Services, get_services
from paygate.models.paywall import PaywallContext
from paygate.models.tier import SubscriptionTier

router = APIRouter(tags=["paywall"])


class ShowRequest(BaseModel):
    context: PaywallContext


class DismissRequest(BaseModel):
    context: Optional[PaywallContext] = None


class PurchaseRequest(BaseModel):
    tier: Optional[SubscriptionTier] = None


def _state_payload(services: Services) -> dict:
    state = services.paywall.state
    next_show = services.paywall.next_show_at()
    return {
        "first_launch_seen": state.first_launch_seen,
        "purchase_pending": state.purchase_pending,
        "dismiss_count": state.dismiss_count,
        "last_shown_at": state.last_shown_at.isoformat() if state.last_shown_at else None,
        "next_show_at": next_show.isoformat() if next_show else None,
        "active_context": services.paywall.active_context.value,
        "is_showing": services.paywall.is_showing,
    }


@router.get("/v1/paywall/decision")
def get_paywall_decision(services: Services = Depends(get_services)):
    """Whether to interrupt with the upgrade prompt now (call on app foreground)."""
    decision = services.paywall.should_show()
    return {
        "decision": decision.value,
        "show": decision.is_due,
        "context": services.paywall.active_context.value if decision.is_due else None,
    }


@router.post("/v1/paywall/show")
def show_paywall(body: ShowRequest, services: Services = Depends(get_services)):
    services.paywall.show(body.context)
    return _state_payload(services)


@router.post("/v1/paywall/dismiss")
def dismiss_paywall(body: DismissRequest, services: Services = Depends(get_services)):
    services.paywall.dismiss(body.context)
    return _state_payload(services)


@router.post("/v1/paywall/purchase")
def record_purchase(body: PurchaseRequest, services: Services = Depends(get_services)):
    services.paywall.record_purchase(body.tier)
    return _state_payload(services)


@router.get("/v1/paywall/debug")
def get_paywall_debug(services: Services = Depends(get_services)):
    info = services.paywall.debug_info()
    return {
        "has_seen_first_launch": info.has_seen_first_launch,
        "dismiss_count": info.dismiss_count,
        "last_shown_at": info.last_shown_at.isoformat() if info.last_shown_at else None,
        "next_show_at": info.next_show_at.isoformat() if info.next_show_at else None,
        "days_until_next_show": info.days_until_next_show,
        "should_show_periodic": info.should_show_periodic,
    }
