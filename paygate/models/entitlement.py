"""
paygate/models/entitlement.py

Entitlement model: one active purchase as reported by the store front.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, field_validator

from paygate.core.clock import normalize
from paygate.models.tier import SubscriptionTier


class Entitlement(BaseModel):
    """
    Entitlement grants a tier until it expires.

    expires_at = None means non-expiring (lifetime or unknown expiry).
    """
    model_config = ConfigDict(frozen=True)

    tier: SubscriptionTier
    expires_at: Optional[datetime] = None
    product_id: Optional[str] = None

    def is_active(self, now: datetime) -> bool:
        return self.expires_at is None or self.expires_at > now

    @field_validator("expires_at")
    @classmethod
    def _expiry_is_aware(cls, value: Optional[datetime]) -> Optional[datetime]:
        return normalize(value)
