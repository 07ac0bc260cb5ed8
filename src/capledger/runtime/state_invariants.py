# src/capledger/runtime/state_invariants.py
from __future__ import annotations

"""State invariants / normalization helpers.

Ledger state is a nested JSON-like dict that is mutated deterministically by apply_* modules.
This module is the single place that:

  - validates the state is dict-like
  - ensures core top-level containers exist (so domain modules can rely on them)
  - checks the post-apply invariants before the executor commits a working copy

Domain-specific sub-keys remain the responsibility of the corresponding apply_* module.
"""

from collections.abc import MutableMapping
from typing import Any, Dict

from capledger.ledger.constants import MAX_SUPPLY, MINT_PERIOD_CAP
from capledger.runtime.errors import InvariantViolation

Json = Dict[str, Any]

_DICT_KEYS = ("balances", "allowances", "permit_nonces", "tx_nonces", "pools", "governance", "tax", "supply", "votes")


def ensure_state(st: Any) -> Json:
    """Ensure `st` is a dict and contains core keys.

    Returns the (possibly mutated) dict.

    Raises:
        TypeError: if st is not a MutableMapping
    """
    if not isinstance(st, MutableMapping):
        raise TypeError(f"state must be MutableMapping, got {type(st)}")

    for key in _DICT_KEYS:
        v = st.get(key)
        if v is None:
            st[key] = {}
        elif not isinstance(v, dict):
            # Fail closed: do not attempt to coerce arbitrary types.
            raise TypeError(f"state[{key!r}] must be dict, got {type(v)}")

    if "total_supply" not in st:
        st["total_supply"] = 0

    return st  # type: ignore[return-value]


def check_invariants(st: Json) -> None:
    """Raise InvariantViolation if the ledger is not internally consistent.

    Checked after every apply, before commit:
      - every balance is a non-negative int
      - sum(balances) == total_supply
      - 0 <= total_supply <= MAX_SUPPLY
      - every allowance is a non-negative int
      - 0 <= supply.minted_in_window <= MINT_PERIOD_CAP
      - governance identity is set
    """
    balances = st.get("balances") or {}
    total = 0
    for acct, bal in balances.items():
        if not isinstance(bal, int) or isinstance(bal, bool) or bal < 0:
            raise InvariantViolation({"check": "balance_non_negative_int", "account": acct, "balance": bal})
        total += bal

    supply = st.get("total_supply")
    if not isinstance(supply, int) or isinstance(supply, bool):
        raise InvariantViolation({"check": "supply_is_int", "total_supply": supply})

    if total != supply:
        raise InvariantViolation({"check": "conservation", "sum_balances": total, "total_supply": supply})

    if supply < 0 or supply > MAX_SUPPLY:
        raise InvariantViolation({"check": "supply_bounds", "total_supply": supply, "max_supply": MAX_SUPPLY})

    for owner, per_owner in (st.get("allowances") or {}).items():
        for spender, allowed in (per_owner or {}).items():
            if not isinstance(allowed, int) or isinstance(allowed, bool) or allowed < 0:
                raise InvariantViolation(
                    {"check": "allowance_non_negative_int", "owner": owner, "spender": spender, "allowance": allowed}
                )

    minted = (st.get("supply") or {}).get("minted_in_window", 0)
    if not isinstance(minted, int) or isinstance(minted, bool) or minted < 0 or minted > MINT_PERIOD_CAP:
        raise InvariantViolation({"check": "mint_window_bounds", "minted_in_window": minted, "period_cap": MINT_PERIOD_CAP})

    gov = (st.get("governance") or {}).get("account")
    if not str(gov or "").strip():
        raise InvariantViolation({"check": "governance_set"})


__all__ = ["ensure_state", "check_invariants"]
