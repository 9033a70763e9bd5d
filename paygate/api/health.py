"""
Health endpoint.

Lightweight liveness check that reports the store backend without exposing
connection details. The SQL backend is probed with a SELECT 1.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from paygate.core.database import check_connection
from paygate.core.services import Services, get_services
from paygate.core.store import SqlKeyValueStore

router = APIRouter(tags=["health"])


@router.get("/healthz")
def healthz(services: Services = Depends(get_services)):
    store = services.store
    if isinstance(store, SqlKeyValueStore):
        backend = "sql"
        connected = check_connection(store.engine)
    else:
        backend = "memory"
        connected = True
    return {
        "ok": connected,
        "store": backend,
        "store_connected": connected,
        "computed_at": datetime.now(timezone.utc).isoformat(),
    }
