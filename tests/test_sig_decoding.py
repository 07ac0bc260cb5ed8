from __future__ import annotations

import base64

import pytest

from capledger.crypto.sig import address_from_pubkey, canonical_tx_message, verify_ed25519_signature
from capledger.testing.sigtools import deterministic_ed25519_keypair


def _b64(hex_str: str, *, urlsafe: bool = False) -> str:
    raw = bytes.fromhex(hex_str)
    enc = base64.urlsafe_b64encode(raw) if urlsafe else base64.b64encode(raw)
    return enc.decode("ascii")


def _signed_message(label: str = "alice"):
    pk_hex, sk = deterministic_ed25519_keypair(label=label)
    msg = canonical_tx_message(tx_type="TRANSFER", signer="x", nonce=1, payload={"to": "bob", "amount": 1})
    return pk_hex, sk.sign(msg).hex(), msg


def test_hex_and_base64_encodings_agree() -> None:
    pk_hex, sig_hex, msg = _signed_message()

    addr = address_from_pubkey(pk_hex)
    assert address_from_pubkey(_b64(pk_hex)) == addr
    assert address_from_pubkey(_b64(pk_hex, urlsafe=True)) == addr

    assert verify_ed25519_signature(message=msg, sig=sig_hex, pubkey=pk_hex)
    assert verify_ed25519_signature(message=msg, sig=_b64(sig_hex), pubkey=_b64(pk_hex, urlsafe=True))


def test_base64_with_stray_characters_is_rejected() -> None:
    pk_hex, sig_hex, msg = _signed_message()
    pk_b64 = _b64(pk_hex)
    sig_b64 = _b64(sig_hex)

    noisy_pk = pk_b64[:8] + "*" + pk_b64[8:16] + "!" + pk_b64[16:]
    noisy_sig = sig_b64[:10] + "#" + sig_b64[10:]

    with pytest.raises(ValueError):
        address_from_pubkey(noisy_pk)

    assert not verify_ed25519_signature(message=msg, sig=sig_b64, pubkey=noisy_pk)
    assert not verify_ed25519_signature(message=msg, sig=noisy_sig, pubkey=pk_hex)


def test_wrong_length_pubkey_is_rejected() -> None:
    with pytest.raises(ValueError):
        address_from_pubkey("ab" * 31)
    with pytest.raises(ValueError):
        address_from_pubkey("")
