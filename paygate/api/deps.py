"""Path parameter parsing shared by the routers."""

from paygate.core.errors import NotFoundError
from paygate.models.tier import SubscriptionTier
from paygate.models.usage import UsageResource


def parse_tier(raw: str) -> SubscriptionTier:
    try:
        return SubscriptionTier(raw.lower())
    except ValueError:
        raise NotFoundError(f"Unknown tier '{raw}'")


def parse_resource(raw: str) -> UsageResource:
    try:
        return UsageResource(raw.lower())
    except ValueError:
        raise NotFoundError(f"Unknown resource '{raw}'")
