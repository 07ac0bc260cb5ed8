# src/capledger/api/routes_public.py
from __future__ import annotations

from fastapi import APIRouter

from capledger.api.routes_public_parts.accounts import router as accounts_router
from capledger.api.routes_public_parts.events import router as events_router
from capledger.api.routes_public_parts.gov import router as gov_router
from capledger.api.routes_public_parts.health import probe_router
from capledger.api.routes_public_parts.health import router as health_router
from capledger.api.routes_public_parts.metrics import router as metrics_router
from capledger.api.routes_public_parts.state import router as state_router
from capledger.api.routes_public_parts.tx import router as tx_router

public_router = APIRouter()

# Versioned API surface
public_router.include_router(health_router, prefix="/v1", tags=["health"])
public_router.include_router(state_router, prefix="/v1", tags=["state"])
public_router.include_router(accounts_router, prefix="/v1", tags=["accounts"])
public_router.include_router(gov_router, prefix="/v1", tags=["governance"])
public_router.include_router(events_router, prefix="/v1", tags=["events"])
public_router.include_router(tx_router, prefix="/v1", tags=["tx"])

# Ops
public_router.include_router(metrics_router, prefix="/v1", tags=["metrics"])

# Probes
public_router.include_router(probe_router, tags=["health"])
