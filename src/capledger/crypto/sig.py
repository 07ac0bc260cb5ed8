# src/capledger/crypto/sig.py
from __future__ import annotations

import base64
import hashlib
import json
from typing import Any, Dict

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey

from capledger.ledger.constants import PERMIT_VERSION

Json = Dict[str, Any]


def _decode_bytes(s: str) -> bytes:
    s = s.strip()
    if not s:
        raise ValueError("empty string")
    # hex
    try:
        return bytes.fromhex(s)
    except Exception:
        pass
    # base64 / base64url
    try:
        padding = "=" * (-len(s) % 4)
        s2 = (s + padding).replace("-", "+").replace("_", "/")
        return base64.b64decode(s2, validate=True)
    except Exception as e:
        raise ValueError("not hex or base64") from e


def _canonical_json(obj: Any) -> bytes:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def address_from_pubkey(pubkey: str) -> str:
    """Account id for an Ed25519 public key: 0x + last 20 bytes of sha256(pubkey)."""
    pk_b = _decode_bytes(pubkey)
    if len(pk_b) != 32:
        raise ValueError("ed25519 pubkey must be 32 bytes")
    return "0x" + hashlib.sha256(pk_b).digest()[-20:].hex()


def canonical_tx_message(*, tx_type: str, signer: str, nonce: int, payload: Json, chain_id: str = "") -> bytes:
    obj: Json = {
        "tx_type": str(tx_type),
        "signer": str(signer),
        "nonce": int(nonce),
        "payload": payload if isinstance(payload, dict) else {},
    }
    if chain_id:
        obj["chain_id"] = str(chain_id)
    return _canonical_json(obj)


def permit_message(
    *,
    token_name: str,
    chain_id: str,
    owner: str,
    spender: str,
    value: int,
    nonce: int,
    deadline: int,
) -> bytes:
    """Bytes an owner signs to grant `spender` an allowance of `value`.

    The domain binds the signature to one token deployment; the nonce makes it
    single-use.
    """
    obj: Json = {
        "domain": {"name": str(token_name), "version": PERMIT_VERSION, "chain_id": str(chain_id)},
        "owner": str(owner),
        "spender": str(spender),
        # values can exceed 2**53; keep them exact for non-Python signers
        "value": str(int(value)),
        "nonce": int(nonce),
        "deadline": int(deadline),
    }
    return _canonical_json(obj)


def verify_ed25519_signature(*, message: bytes, sig: str, pubkey: str) -> bool:
    try:
        sig_b = _decode_bytes(sig)
        pk_b = _decode_bytes(pubkey)
        key = Ed25519PublicKey.from_public_bytes(pk_b)
        key.verify(sig_b, message)
        return True
    except (InvalidSignature, ValueError):
        return False


def sign_ed25519(*, message: bytes, privkey: str, encoding: str = "hex") -> str:
    """Sign a message with an Ed25519 private key.

    privkey: hex or base64/base64url string representing 32-byte seed or 64-byte private key.
    encoding: "hex" (default) or "b64".
    """
    pk_b = _decode_bytes(privkey)

    # cryptography expects the 32-byte seed
    if len(pk_b) == 64:
        pk_b = pk_b[:32]

    if len(pk_b) != 32:
        raise ValueError("ed25519 privkey must be 32-byte seed (or 64-byte expanded key)")

    key = Ed25519PrivateKey.from_private_bytes(pk_b)
    sig_b = key.sign(message)
    if encoding == "hex":
        return sig_b.hex()
    if encoding in {"b64", "base64"}:
        return base64.b64encode(sig_b).decode("ascii")
    raise ValueError("unsupported encoding")


__all__ = [
    "address_from_pubkey",
    "canonical_tx_message",
    "permit_message",
    "verify_ed25519_signature",
    "sign_ed25519",
]
