from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from capledger.api.routes_public_parts.common import _executor
from capledger.api.schemas import SubmitTxRequest

router = APIRouter()

Json = Dict[str, Any]


@router.post("/tx/submit")
def v1_tx_submit(body: SubmitTxRequest, request: Request) -> Json:
    """
    Submit one signed operation.

    Admission and apply run synchronously under the executor lock; rejections
    are raised as ApplyError and rendered by the app's exception handler.
    """
    ex = _executor(request)
    tx = body.model_dump()
    with request.app.state.executor_lock:
        res = ex.submit_signed(tx)
    return {
        "ok": True,
        "applied": res.get("applied"),
        "op_seq": res.get("op_seq"),
        "time": res.get("time"),
        "events": res.get("events") or [],
    }


@router.get("/tx/nonce/{account}")
def v1_tx_nonce(account: str, request: Request) -> Json:
    ex = _executor(request)
    with request.app.state.executor_lock:
        last = int((ex.read_state().get("tx_nonces") or {}).get(account, 0))
    return {"ok": True, "account": account, "last_nonce": last, "next_nonce": last + 1}
