from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from capledger.runtime.metrics import format_prometheus, metrics_enabled

router = APIRouter()


@router.get("/metrics")
def v1_metrics():
    if not metrics_enabled():
        return PlainTextResponse("metrics disabled\n", status_code=404)
    return PlainTextResponse(format_prometheus(), media_type="text/plain; version=0.0.4")
