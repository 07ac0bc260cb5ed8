from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from capledger.runtime.errors import ApplyError

Json = Dict[str, Any]


@dataclass(frozen=True)
class TxVerdict:
    """Admission outcome: ok, or the code/reason/details of the first failed check."""

    ok: bool
    code: str = "ok"
    reason: str = "admitted"
    details: Optional[Json] = None

    @staticmethod
    def admit() -> "TxVerdict":
        return TxVerdict(True)

    @staticmethod
    def reject(code: str, reason: str, details: Optional[Json] = None) -> "TxVerdict":
        return TxVerdict(False, code, reason, details)

    def as_error(self) -> ApplyError:
        return ApplyError(self.code, self.reason, self.details)


@dataclass(frozen=True)
class TxEnvelope:
    """One ledger operation: who (signer) wants to do what (tx_type, payload).

    `sig`/`pubkey` are only required for submissions that go through
    admission; in-process callers of the executor pass them empty.
    """

    tx_type: str
    signer: str
    nonce: int
    payload: Json
    sig: str = ""
    pubkey: str = ""

    @staticmethod
    def from_json(j: Any) -> "TxEnvelope":
        if isinstance(j, TxEnvelope):
            return j
        if not isinstance(j, dict):
            j = dict(j)  # type: ignore[arg-type]
        return TxEnvelope(
            tx_type=str(j.get("tx_type", "")).strip().upper(),
            signer=str(j.get("signer", "")).strip(),
            nonce=int(j.get("nonce", 0) or 0),
            payload=dict(j.get("payload", {}) or {}),
            sig=str(j.get("sig", "") or ""),
            pubkey=str(j.get("pubkey", "") or ""),
        )

    def to_json(self) -> Json:
        return {
            "tx_type": self.tx_type,
            "signer": self.signer,
            "nonce": self.nonce,
            "payload": self.payload,
            "sig": self.sig,
            "pubkey": self.pubkey,
        }


__all__ = ["TxEnvelope", "TxVerdict"]
