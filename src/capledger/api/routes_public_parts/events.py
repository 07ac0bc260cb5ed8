from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Request

from capledger.api.routes_public_parts.common import _executor, _int_param

router = APIRouter()

Json = Dict[str, Any]


@router.get("/events")
def v1_events(
    request: Request,
    after: Optional[str] = None,
    limit: Optional[str] = None,
    kind: Optional[str] = None,
) -> Json:
    ex = _executor(request)
    after_seq = max(0, _int_param(after, name="after", default=0))
    lim = _int_param(limit, name="limit", default=100)
    with request.app.state.executor_lock:
        records = ex.read_events(after_seq=after_seq, limit=lim, kind=kind or None)
    next_after = records[-1]["seq"] if records else after_seq
    return {"ok": True, "events": records, "next_after": next_after}
