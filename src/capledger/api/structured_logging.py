# src/capledger/api/structured_logging.py
from __future__ import annotations

import logging
import os
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from capledger.runtime import metrics
from capledger.structured_logging import log_event

# Probe traffic is high-volume and uninteresting.
_QUIET_PATHS = frozenset({"/healthz", "/readyz"})


def _status_class(status: int) -> str:
    return f"{int(status) // 100}xx"


class RequestLogMiddleware(BaseHTTPMiddleware):
    """One `http_request` JSON line per request, plus request counters.

    4xx responses log at INFO, 5xx and unhandled errors at WARNING. The
    request id is taken from x-request-id when the client sends one and is
    echoed back on the response.

    CAPLEDGER_LOG_REQUESTS=0 disables the log line (counters still move).
    """

    def __init__(self, app) -> None:
        super().__init__(app)
        raw = (os.environ.get("CAPLEDGER_LOG_REQUESTS") or "1").strip().lower()
        self._log_enabled = raw not in {"0", "false", "no", "n", "off"}
        self._logger = logging.getLogger("capledger.http")

    async def dispatch(self, request: Request, call_next):
        path = str(request.url.path or "")
        if path in _QUIET_PATHS:
            return await call_next(request)

        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.monotonic()
        status = 500
        error = None

        try:
            response = await call_next(request)
            status = int(response.status_code)
            response.headers.setdefault("x-request-id", request_id)
            return response
        except Exception as e:
            error = type(e).__name__
            raise
        finally:
            metrics.inc_counter("http_requests", labels={"status": _status_class(status)})
            if self._log_enabled:
                log_event(
                    self._logger,
                    "http_request",
                    level=logging.WARNING if status >= 500 else logging.INFO,
                    request_id=request_id,
                    method=request.method,
                    path=path,
                    status=status,
                    duration_ms=int((time.monotonic() - started) * 1000),
                    client=request.client.host if request.client else "",
                    error=error,
                )
