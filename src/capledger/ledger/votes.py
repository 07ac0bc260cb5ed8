from __future__ import annotations

"""Voting power bookkeeping.

Voting power follows balances, but only once a holder has chosen a delegate
(self-delegation included). Every balance movement moves voting power from the
sender's delegate to the recipient's delegate; mints and burns also checkpoint
the total supply.

State layout:
  state["votes"] = {
    "delegates": {holder: delegatee},
    "checkpoints": {delegatee: [[ts, votes], ...]},
    "supply_checkpoints": [[ts, total_supply], ...],
  }
"""

from typing import Any, Dict

from capledger.ledger import checkpoints
from capledger.ledger.constants import is_null_account
from capledger.runtime.errors import FutureLookup

Json = Dict[str, Any]


def _now(state: Json) -> int:
    try:
        return int(state.get("time") or 0)
    except Exception:
        return 0


def _votes_root(state: Json) -> Json:
    root = state.get("votes")
    if not isinstance(root, dict):
        root = {}
        state["votes"] = root
    if not isinstance(root.get("delegates"), dict):
        root["delegates"] = {}
    if not isinstance(root.get("checkpoints"), dict):
        root["checkpoints"] = {}
    if not isinstance(root.get("supply_checkpoints"), list):
        root["supply_checkpoints"] = []
    return root


def delegate_of(state: Json, holder: str) -> str:
    root = state.get("votes") or {}
    d = (root.get("delegates") or {}).get(holder)
    return str(d) if d else ""


def get_votes(state: Json, account: str) -> int:
    root = state.get("votes") or {}
    return checkpoints.latest((root.get("checkpoints") or {}).get(account))


def get_past_votes(state: Json, account: str, ts: int) -> int:
    now = _now(state)
    if int(ts) >= now:
        raise FutureLookup({"timepoint": int(ts), "now": now})
    root = state.get("votes") or {}
    return checkpoints.upper_lookup((root.get("checkpoints") or {}).get(account), int(ts))


def get_past_total_supply(state: Json, ts: int) -> int:
    now = _now(state)
    if int(ts) >= now:
        raise FutureLookup({"timepoint": int(ts), "now": now})
    root = state.get("votes") or {}
    return checkpoints.upper_lookup(root.get("supply_checkpoints"), int(ts))


def _adjust(state: Json, account: str, delta: int) -> None:
    if not account or delta == 0:
        return
    root = _votes_root(state)
    ck = root["checkpoints"].get(account)
    if not isinstance(ck, list):
        ck = []
        root["checkpoints"][account] = ck
    checkpoints.push(ck, _now(state), checkpoints.latest(ck) + int(delta))


def move_voting_power(state: Json, src: str, dst: str, amount: int) -> None:
    if src == dst or int(amount) <= 0:
        return
    _adjust(state, src, -int(amount))
    _adjust(state, dst, int(amount))


def on_balance_move(state: Json, frm: str, to: str, amount: int) -> None:
    """Mirror a balance movement into voting power and supply checkpoints."""
    if int(amount) <= 0:
        return

    if is_null_account(frm) or is_null_account(to):
        root = _votes_root(state)
        checkpoints.push(root["supply_checkpoints"], _now(state), int(state.get("total_supply") or 0))

    src = "" if is_null_account(frm) else delegate_of(state, frm)
    dst = "" if is_null_account(to) else delegate_of(state, to)
    move_voting_power(state, src, dst, int(amount))


def set_delegate(state: Json, holder: str, delegatee: str) -> Json:
    """Point holder's voting power at delegatee. Returns the DelegateChanged event."""
    root = _votes_root(state)
    previous = delegate_of(state, holder)
    new = "" if is_null_account(delegatee) else str(delegatee)

    if new:
        root["delegates"][holder] = new
    else:
        root["delegates"].pop(holder, None)

    balance = int((state.get("balances") or {}).get(holder, 0))
    move_voting_power(state, previous, new, balance)

    return {
        "kind": "DelegateChanged",
        "delegator": holder,
        "from_delegate": previous,
        "to_delegate": new,
        "votes_moved": balance,
    }


__all__ = [
    "delegate_of",
    "get_votes",
    "get_past_votes",
    "get_past_total_supply",
    "move_voting_power",
    "on_balance_move",
    "set_delegate",
]
