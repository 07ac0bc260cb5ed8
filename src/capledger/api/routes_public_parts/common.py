from __future__ import annotations

from typing import Any

from fastapi import Request

from capledger.api.errors import ApiError
from capledger.ledger.state import LedgerView


def _executor(request: Request) -> Any:
    ex = getattr(request.app.state, "executor", None)
    if ex is None:
        raise ApiError.internal("not_ready", "executor not initialized")
    return ex


def _view(request: Request) -> LedgerView:
    """Deep-copied snapshot taken under the executor lock."""
    ex = _executor(request)
    with request.app.state.executor_lock:
        return LedgerView.from_ledger(ex.read_state())


def _int_param(v: Any, *, name: str, default: int) -> int:
    if v is None or v == "":
        return int(default)
    try:
        return int(v)
    except Exception:
        raise ApiError.bad_request("bad_request", f"{name} must be an integer", {name: v})
