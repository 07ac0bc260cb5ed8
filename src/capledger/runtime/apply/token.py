# src/capledger/runtime/apply/token.py
from __future__ import annotations

"""Holder-facing token operations.

TRANSFER and TRANSFER_FROM run through `taxed_transfer`, the only path for
ordinary value movement: classify the counterparties, take the tax (collect it
for the fee recipient or destroy it in burn mode), then move the net amount.
"""

from typing import Any, Dict, List, Optional, Set

from capledger.crypto.sig import address_from_pubkey, permit_message, verify_ed25519_signature
from capledger.ledger import balances, votes
from capledger.ledger.constants import MAX_ALLOWANCE, TOKEN_NAME, ZERO_ADDRESS, is_null_account
from capledger.runtime.classifier import classify
from capledger.runtime.errors import (
    InsufficientAllowance,
    InsufficientBalance,
    InvalidAmount,
    InvalidSignature,
    PermitExpired,
    ZeroAddress,
)
from capledger.runtime.tax import TaxPolicy, compute_tax, tax_rate_bp
from capledger.runtime.tx_admission_types import TxEnvelope

Json = Dict[str, Any]


def _as_str(v: Any) -> str:
    return str(v).strip() if isinstance(v, (str, int, float)) else ""


def _as_dict(v: Any) -> Json:
    return v if isinstance(v, dict) else {}


def _now(state: Json) -> int:
    try:
        return int(state.get("time") or 0)
    except Exception:
        return 0


def _amount(v: Any) -> int:
    if not isinstance(v, int) or isinstance(v, bool) or v < 0:
        raise InvalidAmount({"amount": v})
    return v


def is_pool(state: Json, account: str) -> bool:
    return bool(_as_dict(state.get("pools")).get(account))


# ---------------------------------------------------------------------------
# Allowances
# ---------------------------------------------------------------------------


def allowance_of(state: Json, owner: str, spender: str) -> int:
    per_owner = _as_dict(_as_dict(state.get("allowances")).get(owner))
    try:
        return int(per_owner.get(spender, 0))
    except Exception:
        return 0


def _set_allowance(state: Json, owner: str, spender: str, amount: int) -> None:
    root = state.get("allowances")
    if not isinstance(root, dict):
        root = {}
        state["allowances"] = root
    per_owner = root.get(owner)
    if not isinstance(per_owner, dict):
        per_owner = {}
        root[owner] = per_owner
    if amount:
        per_owner[spender] = int(amount)
    else:
        per_owner.pop(spender, None)
        if not per_owner:
            root.pop(owner, None)


def _approve(state: Json, owner: str, spender: str, amount: Any) -> Json:
    if is_null_account(owner) or is_null_account(spender):
        raise ZeroAddress({"owner": owner, "spender": spender})
    amt = _amount(amount)
    if amt > MAX_ALLOWANCE:
        raise InvalidAmount({"amount": amt, "max": MAX_ALLOWANCE})
    _set_allowance(state, owner, spender, amt)
    return {"kind": "Approval", "owner": owner, "spender": spender, "amount": amt}


def _spend_allowance(state: Json, owner: str, spender: str, amount: int) -> None:
    current = allowance_of(state, owner, spender)
    if current == MAX_ALLOWANCE:
        return
    if current < amount:
        raise InsufficientAllowance({"owner": owner, "spender": spender, "allowance": current, "needed": amount})
    _set_allowance(state, owner, spender, current - amount)


# ---------------------------------------------------------------------------
# Transfer entry point
# ---------------------------------------------------------------------------


def taxed_transfer(state: Json, frm: str, to: str, amount: Any) -> List[Json]:
    """Move `amount` from `frm` to `to` under the active tax policy.

    Returns the emitted events: one Transfer per balance movement followed by
    a TransferTaxed summary.
    """
    if is_null_account(frm) or is_null_account(to):
        raise ZeroAddress({"from": frm, "to": to})
    amt = _amount(amount)

    have = balances.balance_of(state, frm)
    if have < amt:
        raise InsufficientBalance({"account": frm, "balance": have, "needed": amt})

    kind = classify(is_pool(state, frm), is_pool(state, to))
    policy = TaxPolicy.from_json(_as_dict(state.get("tax")).get("policy"))
    rate = tax_rate_bp(policy, kind)
    tax, net = compute_tax(amt, rate)

    fee_recipient = _as_str(state.get("fee_recipient")) or ZERO_ADDRESS
    events: List[Json] = []
    mode = "none"
    if tax > 0:
        if is_null_account(fee_recipient):
            events.append(balances.move(state, frm, ZERO_ADDRESS, tax))
            mode = "destroyed"
        else:
            events.append(balances.move(state, frm, fee_recipient, tax))
            mode = "collected"

    events.append(balances.move(state, frm, to, net))
    events.append(
        {
            "kind": "TransferTaxed",
            "from": frm,
            "to": to,
            "gross": amt,
            "tax": tax,
            "net": net,
            "rate_bp": rate,
            "transfer_kind": kind.value,
            "tax_mode": mode,
            "fee_recipient": fee_recipient,
        }
    )
    return events


# ---------------------------------------------------------------------------
# Appliers
# ---------------------------------------------------------------------------


def _apply_transfer(state: Json, env: TxEnvelope) -> Json:
    payload = _as_dict(env.payload)
    to = _as_str(payload.get("to"))
    events = taxed_transfer(state, env.signer, to, payload.get("amount"))
    return {"applied": "TRANSFER", "events": events}


def _apply_transfer_from(state: Json, env: TxEnvelope) -> Json:
    payload = _as_dict(env.payload)
    owner = _as_str(payload.get("owner"))
    to = _as_str(payload.get("to"))
    amt = _amount(payload.get("amount"))
    if is_null_account(owner) or is_null_account(to):
        raise ZeroAddress({"from": owner, "to": to})

    # the allowance covers the gross amount, tax included
    _spend_allowance(state, owner, env.signer, amt)
    events = taxed_transfer(state, owner, to, amt)
    return {"applied": "TRANSFER_FROM", "spender": env.signer, "events": events}


def _apply_approve(state: Json, env: TxEnvelope) -> Json:
    payload = _as_dict(env.payload)
    ev = _approve(state, env.signer, _as_str(payload.get("spender")), payload.get("amount"))
    return {"applied": "APPROVE", "events": [ev]}


def _apply_permit(state: Json, env: TxEnvelope) -> Json:
    payload = _as_dict(env.payload)
    owner = _as_str(payload.get("owner"))
    spender = _as_str(payload.get("spender"))
    value = _amount(payload.get("value"))
    deadline = int(payload.get("deadline") or 0)
    pubkey = _as_str(payload.get("pubkey"))
    sig = _as_str(payload.get("sig"))

    now = _now(state)
    if now > deadline:
        raise PermitExpired({"now": now, "deadline": deadline})

    try:
        derived = address_from_pubkey(pubkey)
    except ValueError as e:
        raise InvalidSignature({"owner": owner, "error": str(e)}) from e
    if derived != owner.lower():
        raise InvalidSignature({"owner": owner, "derived": derived})

    nonces = state.get("permit_nonces")
    if not isinstance(nonces, dict):
        nonces = {}
        state["permit_nonces"] = nonces
    nonce = int(nonces.get(owner, 0))

    token = _as_dict(state.get("token"))
    msg = permit_message(
        token_name=_as_str(token.get("name")) or TOKEN_NAME,
        chain_id=_as_str(state.get("chain_id")),
        owner=owner,
        spender=spender,
        value=value,
        nonce=nonce,
        deadline=deadline,
    )
    if not verify_ed25519_signature(message=msg, sig=sig, pubkey=pubkey):
        raise InvalidSignature({"owner": owner, "nonce": nonce})

    nonces[owner] = nonce + 1
    ev = _approve(state, owner, spender, value)
    ev["via"] = "permit"
    return {"applied": "PERMIT", "nonce": nonce, "events": [ev]}


def _apply_burn(state: Json, env: TxEnvelope) -> Json:
    payload = _as_dict(env.payload)
    amt = _amount(payload.get("amount"))
    if is_null_account(env.signer):
        raise ZeroAddress({"holder": env.signer})
    ev = balances.move(state, env.signer, ZERO_ADDRESS, amt)
    return {"applied": "BURN", "events": [ev]}


def _apply_burn_from(state: Json, env: TxEnvelope) -> Json:
    payload = _as_dict(env.payload)
    owner = _as_str(payload.get("owner"))
    amt = _amount(payload.get("amount"))
    if is_null_account(owner):
        raise ZeroAddress({"owner": owner})

    _spend_allowance(state, owner, env.signer, amt)
    ev = balances.move(state, owner, ZERO_ADDRESS, amt)
    return {"applied": "BURN_FROM", "spender": env.signer, "events": [ev]}


def _apply_delegate(state: Json, env: TxEnvelope) -> Json:
    payload = _as_dict(env.payload)
    ev = votes.set_delegate(state, env.signer, _as_str(payload.get("delegatee")))
    return {"applied": "DELEGATE", "events": [ev]}


TOKEN_TX_TYPES: Set[str] = {
    "TRANSFER",
    "TRANSFER_FROM",
    "APPROVE",
    "PERMIT",
    "BURN",
    "BURN_FROM",
    "DELEGATE",
}


def apply_token(state: Json, env: TxEnvelope) -> Optional[Json]:
    """
    Returns:
      - dict: applied result including emitted events
      - None: tx_type not in token domain
    """
    t = _as_str(env.tx_type).upper()
    if t not in TOKEN_TX_TYPES:
        return None

    if t == "TRANSFER":
        return _apply_transfer(state, env)
    if t == "TRANSFER_FROM":
        return _apply_transfer_from(state, env)
    if t == "APPROVE":
        return _apply_approve(state, env)
    if t == "PERMIT":
        return _apply_permit(state, env)
    if t == "BURN":
        return _apply_burn(state, env)
    if t == "BURN_FROM":
        return _apply_burn_from(state, env)
    if t == "DELEGATE":
        return _apply_delegate(state, env)

    return None


__all__ = ["TOKEN_TX_TYPES", "allowance_of", "apply_token", "is_pool", "taxed_transfer"]
