from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from capledger.api.routes_public_parts.common import _view

router = APIRouter()

Json = Dict[str, Any]


@router.get("/state")
def v1_state(request: Request) -> Json:
    v = _view(request)
    return {"ok": True, "state": v.state}


@router.get("/token")
def v1_token(request: Request) -> Json:
    v = _view(request)
    tok = v.token()
    tok["total_supply"] = v.total_supply()
    return {"ok": True, "chain_id": v.chain_id, "time": v.time, "token": tok}
