# src/capledger/runtime/apply/tax_policy.py
from __future__ import annotations

"""Timelocked tax-rate changes.

TAX_PROPOSE validates every cap and parks the rates for TAX_CHANGE_DELAY.
TAX_APPLY copies the parked rates into the active policy without validating
them again; TAX_CANCEL discards them. Transfers never look at the pending slot.
"""

from typing import Any, Dict, Optional, Set

from capledger.ledger.constants import TAX_CHANGE_DELAY
from capledger.runtime import timelock
from capledger.runtime.errors import NoPendingProposal
from capledger.runtime.guard import GovernanceConfig, require_governance
from capledger.runtime.tax import TaxPolicy, validate_tax_rates
from capledger.runtime.tx_admission_types import TxEnvelope

Json = Dict[str, Any]


def _as_dict(v: Any) -> Json:
    return v if isinstance(v, dict) else {}


def _now(state: Json) -> int:
    try:
        return int(state.get("time") or 0)
    except Exception:
        return 0


def _ensure_tax_root(state: Json) -> Json:
    tax = state.get("tax")
    if not isinstance(tax, dict):
        tax = {}
        state["tax"] = tax
    if not isinstance(tax.get("policy"), dict):
        tax["policy"] = TaxPolicy().to_json()
    tax.setdefault("pending", None)
    return tax


def _apply_tax_propose(state: Json, env: TxEnvelope) -> Json:
    require_governance(GovernanceConfig.from_state(state), env.signer, tx_type=env.tx_type)
    payload = _as_dict(env.payload)

    proposed = validate_tax_rates(payload.get("transfer_bp"), payload.get("sell_bp"), payload.get("buy_bp"))

    tax = _ensure_tax_root(state)
    current = timelock.slot_from_json(tax.get("pending"))
    replaced = timelock.slot_to_json(current)
    slot = timelock.propose(current, proposed.to_json(), now=_now(state), delay=TAX_CHANGE_DELAY)
    tax["pending"] = timelock.slot_to_json(slot)

    ev = {"kind": "TaxChangeProposed", "by": env.signer, **proposed.to_json(), "effective_time": slot.effective_time}
    if replaced is not None:
        ev["replaced"] = replaced
    return {"applied": "TAX_PROPOSE", "effective_time": slot.effective_time, "events": [ev]}


def _apply_tax_apply(state: Json, env: TxEnvelope) -> Json:
    require_governance(GovernanceConfig.from_state(state), env.signer, tx_type=env.tx_type)

    tax = _ensure_tax_root(state)
    slot = timelock.slot_from_json(tax.get("pending"))
    rates = timelock.mature(slot, now=_now(state), missing_error=NoPendingProposal)

    previous = TaxPolicy.from_json(tax.get("policy"))
    policy = TaxPolicy.from_json(rates)
    tax["policy"] = policy.to_json()
    tax["pending"] = None

    ev = {"kind": "TaxChangeApplied", "by": env.signer, "previous": previous.to_json(), **policy.to_json()}
    return {"applied": "TAX_APPLY", "policy": policy.to_json(), "events": [ev]}


def _apply_tax_cancel(state: Json, env: TxEnvelope) -> Json:
    require_governance(GovernanceConfig.from_state(state), env.signer, tx_type=env.tx_type)

    tax = _ensure_tax_root(state)
    slot = timelock.slot_from_json(tax.get("pending"))
    discarded = timelock.slot_to_json(slot)
    tax["pending"] = timelock.slot_to_json(timelock.cancel(slot, missing_error=NoPendingProposal))

    ev = {"kind": "TaxChangeCancelled", "by": env.signer, "discarded": discarded}
    return {"applied": "TAX_CANCEL", "events": [ev]}


TAX_TX_TYPES: Set[str] = {"TAX_PROPOSE", "TAX_APPLY", "TAX_CANCEL"}


def apply_tax_policy(state: Json, env: TxEnvelope) -> Optional[Json]:
    t = str(env.tx_type or "").strip().upper()
    if t not in TAX_TX_TYPES:
        return None

    if t == "TAX_PROPOSE":
        return _apply_tax_propose(state, env)
    if t == "TAX_APPLY":
        return _apply_tax_apply(state, env)
    if t == "TAX_CANCEL":
        return _apply_tax_cancel(state, env)

    return None


__all__ = ["TAX_TX_TYPES", "apply_tax_policy"]
