from __future__ import annotations

import logging
import os
import threading
from contextlib import asynccontextmanager
from typing import Any, List, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from capledger.api.errors import ApiError
from capledger.api.routes_public import public_router
from capledger.api.security import RequestSizeLimitMiddleware
from capledger.api.structured_logging import RequestLogMiddleware
from capledger.runtime.errors import ApplyError
from capledger.runtime.executor_boot import build_executor as _build_executor
from capledger.structured_logging import configure_structured_logging, log_event

_log = logging.getLogger("capledger.api")


def build_executor():
    """Build a LedgerExecutor for API runtime.

    This wrapper exists so tests can monkeypatch `capledger.api.app.build_executor`
    without reaching into runtime modules.
    """
    return _build_executor()


def _parse_cors_origins() -> List[str]:
    """Parse CORS origins.

    Unset/empty CAPLEDGER_CORS_ORIGINS disables CORS. Wildcard "*" is rejected
    in CAPLEDGER_MODE=prod and allowed elsewhere.
    """
    raw = os.environ.get("CAPLEDGER_CORS_ORIGINS", "").strip()
    mode = os.environ.get("CAPLEDGER_MODE", "prod").strip().lower()

    if not raw:
        return []

    origins = [o.strip() for o in raw.split(",") if o.strip()]

    if "*" in origins:
        if mode == "prod":
            raise RuntimeError(
                "Unsafe CORS configuration: wildcard '*' not allowed in production. "
                "Set explicit origins in CAPLEDGER_CORS_ORIGINS."
            )
        return ["*"]

    return origins


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def _api_error(request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_json())

    @app.exception_handler(ApplyError)
    async def _apply_error(request: Request, exc: ApplyError) -> JSONResponse:
        err = ApiError.from_apply_error(exc)
        return JSONResponse(status_code=err.status_code, content=err.to_json())

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        err = ApiError.bad_request("bad_request", "request validation failed", {"errors": jsonable_encoder(exc.errors())})
        return JSONResponse(status_code=err.status_code, content=err.to_json())


def create_app(*, boot_runtime: bool = True, executor: Optional[Any] = None) -> FastAPI:
    """Create the FastAPI application.

    boot_runtime:
      - True (default): load config and attach an executor via build_executor()
      - False: no executor; routes that need one answer 500 not_ready

    An explicit `executor` wins over boot_runtime (tests, embedding).
    """
    configure_structured_logging()
    mode = os.environ.get("CAPLEDGER_MODE", "prod").strip().lower()

    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        ex = getattr(app.state, "executor", None)
        log_event(_log, "api_started", mode=mode, executor=ex is not None)
        yield
        log_event(_log, "api_stopped")

    # Disable docs in production.
    if mode == "prod":
        app = FastAPI(
            title="CAP Ledger API",
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
            lifespan=_lifespan,
        )
    else:
        app = FastAPI(title="CAP Ledger API", lifespan=_lifespan)

    if executor is not None:
        app.state.executor = executor
    elif boot_runtime:
        app.state.executor = build_executor()
    else:
        app.state.executor = None

    # Route handlers run in the threadpool; the executor is single-writer.
    app.state.executor_lock = threading.Lock()

    _install_error_handlers(app)

    # --- Middleware ---
    # Added last runs first: request logging wraps the size limiter.
    app.add_middleware(RequestSizeLimitMiddleware)
    app.add_middleware(RequestLogMiddleware)

    cors_origins = _parse_cors_origins()
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Authorization", "Content-Type"],
        )

    # --- Routers ---
    app.include_router(public_router)

    return app
