from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from capledger.runtime.errors import ApplyError

# Ledger failure code -> HTTP status.
_STATUS_BY_CODE: Dict[str, int] = {
    "forbidden": 403,
    "invalid_payload": 400,
    "invalid_tx": 400,
    "bad_shape": 400,
    "bad_sig": 401,
    "unknown_tx": 400,
    "tx_unimplemented": 400,
    "invalid_state": 409,
    "bad_nonce": 409,
    "insufficient": 409,
    "reentrant": 409,
    "payload_too_large": 413,
    "tx_too_large": 413,
    "hook_failed": 500,
    "invariant_violation": 500,
}


@dataclass
class ApiError(Exception):
    status_code: int
    code: str
    message: str
    details: Dict[str, Any]

    @staticmethod
    def bad_request(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(400, code, message, details or {})

    @staticmethod
    def forbidden(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(403, code, message, details or {})

    @staticmethod
    def not_found(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(404, code, message, details or {})

    @staticmethod
    def internal(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(500, code, message, details or {})

    @staticmethod
    def from_apply_error(e: ApplyError) -> "ApiError":
        details = e.details if isinstance(e.details, dict) else ({} if e.details is None else {"details": e.details})
        return ApiError(_STATUS_BY_CODE.get(e.code, 400), e.code, e.reason, details)

    def to_json(self) -> Dict[str, Any]:
        return {"ok": False, "error": {"code": self.code, "message": self.message, "details": self.details}}
