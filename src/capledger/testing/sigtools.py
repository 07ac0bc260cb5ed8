from __future__ import annotations

import hashlib
from typing import Any, Dict, Optional, Tuple

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from capledger.crypto.sig import address_from_pubkey, canonical_tx_message, permit_message
from capledger.ledger.constants import TOKEN_NAME

Json = Dict[str, Any]


def _sha256(b: bytes) -> bytes:
    return hashlib.sha256(b).digest()


def deterministic_ed25519_keypair(*, label: str) -> Tuple[str, Ed25519PrivateKey]:
    """Deterministically derive an Ed25519 keypair from a stable label.

    TEST ONLY.

    Returns:
      (pubkey_hex, private_key)
    """
    seed = _sha256(("capledger-test-ed25519:" + (label or "")).encode("utf-8"))
    sk = Ed25519PrivateKey.from_private_bytes(seed)
    pk_hex = sk.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw).hex()
    return pk_hex, sk


def address_for_label(label: str) -> str:
    """Account id owned by the test key for `label`."""
    pk_hex, _ = deterministic_ed25519_keypair(label=label)
    return address_from_pubkey(pk_hex)


def sign_tx_dict(tx: Json, *, label: str, chain_id: str = "") -> Json:
    """Return tx with pubkey and a real Ed25519 signature (hex).

    The signer field is filled from the label's key when missing.
    """
    if not isinstance(tx, dict):
        raise TypeError("tx must be a dict")

    pk_hex, sk = deterministic_ed25519_keypair(label=label)
    out = dict(tx)
    out.setdefault("signer", address_from_pubkey(pk_hex))
    payload = out.get("payload")
    if not isinstance(payload, dict):
        payload = {}
        out["payload"] = payload

    msg = canonical_tx_message(
        tx_type=str(out.get("tx_type") or "").strip().upper(),
        signer=str(out.get("signer") or "").strip(),
        nonce=int(out.get("nonce") or 0),
        payload=payload,
        chain_id=chain_id,
    )
    out["pubkey"] = pk_hex
    out["sig"] = sk.sign(msg).hex()
    return out


def sign_permit(
    *,
    label: str,
    spender: str,
    value: int,
    nonce: int,
    deadline: int,
    chain_id: str,
    token_name: Optional[str] = None,
) -> Json:
    """Build a PERMIT payload signed by the label's key (owner = its address)."""
    pk_hex, sk = deterministic_ed25519_keypair(label=label)
    owner = address_from_pubkey(pk_hex)
    msg = permit_message(
        token_name=token_name or TOKEN_NAME,
        chain_id=chain_id,
        owner=owner,
        spender=spender,
        value=value,
        nonce=nonce,
        deadline=deadline,
    )
    return {
        "owner": owner,
        "spender": spender,
        "value": int(value),
        "deadline": int(deadline),
        "pubkey": pk_hex,
        "sig": sk.sign(msg).hex(),
    }


__all__ = ["address_for_label", "deterministic_ed25519_keypair", "sign_permit", "sign_tx_dict"]
