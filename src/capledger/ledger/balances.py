# src/capledger/ledger/balances.py
from __future__ import annotations

"""Raw balance movement.

`move` is the single place that mutates `state["balances"]` and
`state["total_supply"]`. A null source mints, a null destination burns. No tax,
no classification and no authorization happen here: callers in runtime.apply
are responsible for those.
"""

from typing import Any, Dict

from capledger.ledger import votes
from capledger.ledger.constants import ZERO_ADDRESS, is_null_account
from capledger.runtime.errors import InsufficientBalance, InvalidAmount

Json = Dict[str, Any]


def balance_of(state: Json, account: str) -> int:
    try:
        return int((state.get("balances") or {}).get(account, 0))
    except Exception:
        return 0


def _balances(state: Json) -> Json:
    b = state.get("balances")
    if not isinstance(b, dict):
        b = {}
        state["balances"] = b
    return b


def move(state: Json, frm: str, to: str, amount: int) -> Json:
    """Move `amount` units and return the Transfer event.

    Raises:
        InvalidAmount: amount is negative or not an int
        InsufficientBalance: `frm` is not null and holds less than `amount`
    """
    if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
        raise InvalidAmount({"amount": amount})

    mint = is_null_account(frm)
    burn = is_null_account(to)
    balances = _balances(state)

    if not mint:
        have = balance_of(state, frm)
        if have < amount:
            raise InsufficientBalance({"account": frm, "balance": have, "needed": amount})
        left = have - amount
        if left:
            balances[frm] = left
        else:
            balances.pop(frm, None)
    else:
        state["total_supply"] = int(state.get("total_supply") or 0) + amount

    if not burn:
        balances[to] = balance_of(state, to) + amount
    else:
        state["total_supply"] = int(state.get("total_supply") or 0) - amount

    votes.on_balance_move(state, frm, to, amount)

    return {
        "kind": "Transfer",
        "from": ZERO_ADDRESS if mint else frm,
        "to": ZERO_ADDRESS if burn else to,
        "amount": amount,
    }


__all__ = ["balance_of", "move"]
