from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Request

from capledger.api.routes_public_parts.common import _int_param, _view

router = APIRouter()

Json = Dict[str, Any]


@router.get("/accounts/{account}")
def v1_account(account: str, request: Request) -> Json:
    v = _view(request)
    return {
        "ok": True,
        "account": account,
        "balance": v.balance_of(account),
        "votes": v.get_votes(account),
        "delegate": v.delegates(account),
        "permit_nonce": v.nonces(account),
        "tx_nonce": v.tx_nonce(account),
        "is_pool": v.is_pool(account),
    }


@router.get("/accounts/{owner}/allowance/{spender}")
def v1_allowance(owner: str, spender: str, request: Request) -> Json:
    v = _view(request)
    return {"ok": True, "owner": owner, "spender": spender, "allowance": v.allowance(owner, spender)}


@router.get("/votes/{account}")
def v1_votes(account: str, request: Request, at: Optional[str] = None) -> Json:
    v = _view(request)
    if at is None or at == "":
        return {"ok": True, "account": account, "votes": v.get_votes(account), "time": v.time}
    ts = _int_param(at, name="at", default=0)
    # FutureLookup propagates and is rendered by the ApplyError handler.
    return {"ok": True, "account": account, "votes": v.get_past_votes(account, ts), "at": ts}


@router.get("/supply")
def v1_supply(request: Request, at: Optional[str] = None) -> Json:
    v = _view(request)
    if at is None or at == "":
        return {"ok": True, "total_supply": v.total_supply(), "time": v.time}
    ts = _int_param(at, name="at", default=0)
    return {"ok": True, "total_supply": v.get_past_total_supply(ts), "at": ts}
