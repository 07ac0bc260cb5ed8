from __future__ import annotations

"""Admission checks for externally signed envelopes.

An envelope is admitted when its shape and payload are sane, its pubkey maps to
the signer's account id, its nonce is the signer's next one and its Ed25519
signature covers the canonical message. Admission never mutates state.
"""

import json
import os
from typing import Any, Dict, Optional

from capledger.crypto.sig import address_from_pubkey, canonical_tx_message, verify_ed25519_signature
from capledger.runtime.tx_admission_types import TxEnvelope, TxVerdict
from capledger.runtime.tx_schema import SUPPORTED_TX_TYPES, validate_payload

Json = Dict[str, Any]


def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None:
        return int(default)
    try:
        return int(str(v).strip())
    except Exception:
        return int(default)


def _json_size_bytes(obj: Any) -> int:
    """JSON byte size, or -1 if obj is not serializable."""
    try:
        if isinstance(obj, TxEnvelope):
            obj = obj.to_json()
        return len(json.dumps(obj, separators=(",", ":"), ensure_ascii=False, sort_keys=True).encode("utf-8"))
    except (TypeError, ValueError):
        return -1


def _validate_payload_limits(payload: Any) -> Optional[TxVerdict]:
    if not isinstance(payload, dict):
        return TxVerdict.reject("invalid_payload", "payload_must_be_object", {"type": str(type(payload))})

    max_payload_bytes = _env_int("CAPLEDGER_MAX_TX_PAYLOAD_BYTES", 8 * 1024)
    max_payload_keys = _env_int("CAPLEDGER_MAX_TX_PAYLOAD_KEYS", 32)

    if len(payload) > int(max_payload_keys):
        return TxVerdict.reject(
            "invalid_payload",
            "payload_too_many_keys",
            {"keys": len(payload), "max_keys": int(max_payload_keys)},
        )

    payload_bytes = _json_size_bytes(payload)
    if payload_bytes < 0:
        return TxVerdict.reject("invalid_payload", "payload_not_json", None)
    if payload_bytes > int(max_payload_bytes):
        return TxVerdict.reject(
            "payload_too_large",
            "payload_exceeds_size_limit",
            {"bytes": int(payload_bytes), "max_bytes": int(max_payload_bytes)},
        )
    return None


def expected_nonce(state: Json, signer: str) -> int:
    nonces = state.get("tx_nonces") if isinstance(state, dict) else None
    if not isinstance(nonces, dict):
        return 1
    try:
        return int(nonces.get(signer, 0)) + 1
    except Exception:
        return 1


def admit_tx(tx: Any, state: Json) -> TxVerdict:
    max_tx_bytes = _env_int("CAPLEDGER_MAX_TX_ENVELOPE_BYTES", 16 * 1024)
    env_size = _json_size_bytes(tx)
    if env_size > int(max_tx_bytes):
        return TxVerdict.reject(
            "tx_too_large",
            "tx_envelope_exceeds_size_limit",
            {"bytes": int(env_size), "max_bytes": int(max_tx_bytes)},
        )

    if not isinstance(tx, (dict, TxEnvelope)):
        return TxVerdict.reject("bad_shape", "envelope_must_be_object", None)
    if isinstance(tx, dict) and tx.get("payload") is not None and not isinstance(tx.get("payload"), dict):
        return TxVerdict.reject("invalid_payload", "payload_must_be_object", {"type": str(type(tx.get("payload")))})

    try:
        env = TxEnvelope.from_json(tx)
    except (TypeError, ValueError) as e:
        return TxVerdict.reject("bad_shape", "envelope_unparseable", {"error": str(e)})

    if not env.tx_type:
        return TxVerdict.reject("bad_shape", "missing_tx_type", None)
    if not env.signer:
        return TxVerdict.reject("bad_shape", "missing_signer", None)
    if env.tx_type not in SUPPORTED_TX_TYPES:
        return TxVerdict.reject("unknown_tx", "tx_type_not_supported", {"tx_type": env.tx_type})

    payload_verdict = _validate_payload_limits(env.payload)
    if payload_verdict is not None:
        return payload_verdict

    ok_schema, schema_err = validate_payload(env.tx_type, env.payload)
    if not ok_schema:
        return TxVerdict.reject("invalid_payload", "payload_schema_mismatch", schema_err)

    if not env.pubkey.strip() or not env.sig.strip():
        return TxVerdict.reject("bad_sig", "missing_signature", {"signer": env.signer})

    try:
        derived = address_from_pubkey(env.pubkey)
    except ValueError as e:
        return TxVerdict.reject("bad_sig", "bad_pubkey", {"error": str(e)})
    if derived != env.signer.lower():
        return TxVerdict.reject("bad_sig", "signer_pubkey_mismatch", {"signer": env.signer, "derived": derived})

    expected = expected_nonce(state, env.signer)
    if int(env.nonce) != expected:
        return TxVerdict.reject("bad_nonce", "nonce_must_be_next", {"expected": expected, "got": int(env.nonce)})

    msg = canonical_tx_message(
        tx_type=env.tx_type,
        signer=env.signer,
        nonce=env.nonce,
        payload=env.payload,
        chain_id=str(state.get("chain_id") or ""),
    )
    if not verify_ed25519_signature(message=msg, sig=env.sig, pubkey=env.pubkey):
        return TxVerdict.reject("bad_sig", "signature_verification_failed", {"signer": env.signer, "tx_type": env.tx_type})

    return TxVerdict.admit()


__all__ = ["TxEnvelope", "TxVerdict", "admit_tx", "expected_nonce"]
