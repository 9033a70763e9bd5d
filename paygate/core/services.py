"""
Service wiring.

One explicit instance of each component per running app, sharing the same
store and clock. The HTTP surface keeps the bundle on app.state.
"""

from dataclasses import dataclass
from typing import Optional

from starlette.requests import Request

from paygate.core.clock import Clock, utc_now
from paygate.core.config import Settings, get_local_timezone, settings
from paygate.core.database import build_engine
from paygate.core.store import InMemoryStore, KeyValueStore, SqlKeyValueStore
from paygate.features.entitlements.service import LocalEntitlementSource
from paygate.features.paywall.service import PaywallScheduler
from paygate.features.usage.service import UsageTracker


@dataclass
class Services:
    store: KeyValueStore
    entitlements: LocalEntitlementSource
    usage: UsageTracker
    paywall: PaywallScheduler


def build_store(settings_obj: Optional[Settings] = None) -> KeyValueStore:
    cfg = settings_obj or settings
    if cfg.STORE_BACKEND == "sql":
        url = cfg.TEST_DATABASE_URL or cfg.DATABASE_URL
        if not url:
            raise ValueError("DATABASE_URL is required when STORE_BACKEND=sql")
        return SqlKeyValueStore(build_engine(url))
    return InMemoryStore()


def build_services(
    settings_obj: Optional[Settings] = None,
    *,
    store: Optional[KeyValueStore] = None,
    now_fn: Clock = utc_now,
) -> Services:
    cfg = settings_obj or settings
    kv = store if store is not None else build_store(cfg)
    entitlements = LocalEntitlementSource(kv, now_fn=now_fn)
    return Services(
        store=kv,
        entitlements=entitlements,
        usage=UsageTracker(kv, now_fn=now_fn, tz=get_local_timezone(cfg)),
        paywall=PaywallScheduler(kv, entitlements, now_fn=now_fn),
    )


def get_services(request: Request) -> Services:
    """FastAPI dependency returning the app's service bundle."""
    return request.app.state.services
