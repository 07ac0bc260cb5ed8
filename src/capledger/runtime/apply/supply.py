# src/capledger/runtime/apply/supply.py
from __future__ import annotations

"""Supply expansion: timelocked, capped and rate limited.

Window accounting counts executed mints only. A pending proposal does not
reserve window capacity; MINT_EXECUTE checks the max supply and the window
again because up to MINT_DELAY has passed since the proposal.
"""

from typing import Any, Dict, Optional, Set

from capledger.ledger import balances
from capledger.ledger.constants import MAX_SUPPLY, MINT_DELAY, MINT_PERIOD_CAP, MINT_WINDOW, ZERO_ADDRESS, is_null_account
from capledger.runtime import timelock
from capledger.runtime.errors import ExceedsMaxSupply, ExceedsPeriodCap, InvalidAmount, NoPendingMint, ZeroRecipient
from capledger.runtime.guard import GovernanceConfig, require_governance
from capledger.runtime.tx_admission_types import TxEnvelope

Json = Dict[str, Any]


def _as_str(v: Any) -> str:
    return str(v).strip() if isinstance(v, (str, int, float)) else ""


def _as_int(v: Any, default: int = 0) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def _as_dict(v: Any) -> Json:
    return v if isinstance(v, dict) else {}


def _now(state: Json) -> int:
    return _as_int(state.get("time"), 0)


def _ensure_supply_root(state: Json) -> Json:
    sup = state.get("supply")
    if not isinstance(sup, dict):
        sup = {}
        state["supply"] = sup
    sup.setdefault("pending", None)
    sup.setdefault("window_start", _now(state))
    sup.setdefault("minted_in_window", 0)
    return sup


def _roll_window(sup: Json, now: int) -> bool:
    if now >= _as_int(sup.get("window_start"), 0) + MINT_WINDOW:
        sup["window_start"] = int(now)
        sup["minted_in_window"] = 0
        return True
    return False


def _check_caps(state: Json, sup: Json, amount: int) -> None:
    supply = _as_int(state.get("total_supply"), 0)
    if supply + amount > MAX_SUPPLY:
        raise ExceedsMaxSupply({"total_supply": supply, "amount": amount, "max_supply": MAX_SUPPLY})

    _roll_window(sup, _now(state))
    minted = _as_int(sup.get("minted_in_window"), 0)
    if minted + amount > MINT_PERIOD_CAP:
        raise ExceedsPeriodCap(
            {
                "minted_in_window": minted,
                "amount": amount,
                "period_cap": MINT_PERIOD_CAP,
                "window_start": _as_int(sup.get("window_start"), 0),
            }
        )


def _apply_mint_propose(state: Json, env: TxEnvelope) -> Json:
    require_governance(GovernanceConfig.from_state(state), env.signer, tx_type=env.tx_type)
    payload = _as_dict(env.payload)

    recipient = _as_str(payload.get("recipient"))
    if is_null_account(recipient):
        raise ZeroRecipient({"recipient": recipient})

    amount = payload.get("amount")
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise InvalidAmount({"amount": amount})

    sup = _ensure_supply_root(state)
    _check_caps(state, sup, amount)

    current = timelock.slot_from_json(sup.get("pending"))
    replaced = timelock.slot_to_json(current)
    slot = timelock.propose(
        current,
        {"recipient": recipient, "amount": amount},
        now=_now(state),
        delay=MINT_DELAY,
    )
    sup["pending"] = timelock.slot_to_json(slot)

    ev = {
        "kind": "MintProposed",
        "by": env.signer,
        "recipient": recipient,
        "amount": amount,
        "effective_time": slot.effective_time,
    }
    if replaced is not None:
        ev["replaced"] = replaced
    return {"applied": "MINT_PROPOSE", "effective_time": slot.effective_time, "events": [ev]}


def _apply_mint_execute(state: Json, env: TxEnvelope) -> Json:
    require_governance(GovernanceConfig.from_state(state), env.signer, tx_type=env.tx_type)

    sup = _ensure_supply_root(state)
    slot = timelock.slot_from_json(sup.get("pending"))
    pending = timelock.mature(slot, now=_now(state), missing_error=NoPendingMint)

    recipient = _as_str(pending.get("recipient"))
    amount = _as_int(pending.get("amount"), 0)
    _check_caps(state, sup, amount)

    transfer_ev = balances.move(state, ZERO_ADDRESS, recipient, amount)
    sup["minted_in_window"] = _as_int(sup.get("minted_in_window"), 0) + amount
    sup["pending"] = None

    ev = {
        "kind": "MintExecuted",
        "by": env.signer,
        "recipient": recipient,
        "amount": amount,
        "total_supply": _as_int(state.get("total_supply"), 0),
        "minted_in_window": sup["minted_in_window"],
    }
    return {"applied": "MINT_EXECUTE", "events": [transfer_ev, ev]}


def _apply_mint_cancel(state: Json, env: TxEnvelope) -> Json:
    require_governance(GovernanceConfig.from_state(state), env.signer, tx_type=env.tx_type)

    sup = _ensure_supply_root(state)
    slot = timelock.slot_from_json(sup.get("pending"))
    discarded = timelock.slot_to_json(slot)
    sup["pending"] = timelock.slot_to_json(timelock.cancel(slot, missing_error=NoPendingMint))

    ev = {"kind": "MintCancelled", "by": env.signer, "discarded": discarded}
    return {"applied": "MINT_CANCEL", "events": [ev]}


SUPPLY_TX_TYPES: Set[str] = {"MINT_PROPOSE", "MINT_EXECUTE", "MINT_CANCEL"}


def apply_supply(state: Json, env: TxEnvelope) -> Optional[Json]:
    t = _as_str(env.tx_type).upper()
    if t not in SUPPLY_TX_TYPES:
        return None

    if t == "MINT_PROPOSE":
        return _apply_mint_propose(state, env)
    if t == "MINT_EXECUTE":
        return _apply_mint_execute(state, env)
    if t == "MINT_CANCEL":
        return _apply_mint_cancel(state, env)

    return None


__all__ = ["SUPPLY_TX_TYPES", "apply_supply"]
