from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from capledger.api.routes_public_parts.common import _view
from capledger.ledger.constants import MAX_SUPPLY, MINT_PERIOD_CAP, MINT_WINDOW, is_null_account

router = APIRouter()

Json = Dict[str, Any]


@router.get("/gov/tax")
def v1_gov_tax(request: Request) -> Json:
    v = _view(request)
    fee_recipient = v.fee_recipient()
    return {
        "ok": True,
        "policy": v.tax_policy().to_json(),
        "pending": v.pending_tax(),
        "fee_recipient": fee_recipient,
        "burn_mode": is_null_account(fee_recipient),
    }


@router.get("/gov/mint")
def v1_gov_mint(request: Request) -> Json:
    v = _view(request)
    out: Json = {
        "ok": True,
        "pending": v.pending_mint(),
        "total_supply": v.total_supply(),
        "max_supply": MAX_SUPPLY,
        "period_cap": MINT_PERIOD_CAP,
        "window_length": MINT_WINDOW,
    }
    out.update(v.mint_window())
    return out


@router.get("/gov/pools")
def v1_gov_pools(request: Request) -> Json:
    v = _view(request)
    return {"ok": True, "pools": v.pools(), "governance": v.governance(), "upgrade": v.upgrade() or None}
