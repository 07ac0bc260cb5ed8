from __future__ import annotations

import time
from typing import Any, Dict

from fastapi import APIRouter, Request

from capledger.api.routes_public_parts.common import _view

router = APIRouter()

# Unversioned liveness/readiness probes for orchestrators.
probe_router = APIRouter()

Json = Dict[str, Any]


def _health_payload(request: Request) -> Json:
    ex = getattr(request.app.state, "executor", None)
    out: Json = {
        "ok": True,
        "service": "capledger",
        "version": "v1",
        "ts_ms": int(time.time() * 1000),
        "executor": ex is not None,
    }
    if ex is not None:
        v = _view(request)
        out["chain_id"] = v.chain_id
        out["time"] = v.time
        out["total_supply"] = v.total_supply()
    return out


@router.get("/health")
def v1_health(request: Request) -> Json:
    return _health_payload(request)


@probe_router.get("/healthz")
def healthz() -> Json:
    # Liveness only: the process is up and serving.
    return {"ok": True}


@probe_router.get("/readyz")
def readyz(request: Request) -> Json:
    ex = getattr(request.app.state, "executor", None)
    if ex is None:
        return {"ok": False, "ready": False, "reason": "executor_not_initialized"}
    v = _view(request)
    return {"ok": True, "ready": bool(v.chain_id), "chain_id": v.chain_id}
