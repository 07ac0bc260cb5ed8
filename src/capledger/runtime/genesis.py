# src/capledger/runtime/genesis.py
from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from capledger.ledger import balances
from capledger.ledger.constants import (
    COIN_DECIMALS,
    DEFAULT_BUY_TAX_BP,
    DEFAULT_SELL_TAX_BP,
    DEFAULT_TRANSFER_TAX_BP,
    INITIAL_SUPPLY,
    TOKEN_NAME,
    TOKEN_SYMBOL,
    ZERO_ADDRESS,
    is_null_account,
)
from capledger.runtime.state_invariants import check_invariants, ensure_state
from capledger.runtime.tax import validate_tax_rates

Json = Dict[str, Any]


def build_genesis_state(
    *,
    chain_id: str,
    governance: str,
    initial_holder: str,
    genesis_time: int,
    fee_recipient: Optional[str] = None,
    token_name: str = TOKEN_NAME,
    token_symbol: str = TOKEN_SYMBOL,
    transfer_bp: int = DEFAULT_TRANSFER_TAX_BP,
    sell_bp: int = DEFAULT_SELL_TAX_BP,
    buy_bp: int = DEFAULT_BUY_TAX_BP,
    pools: Iterable[str] = (),
    initial_supply: int = INITIAL_SUPPLY,
) -> Json:
    """Fresh ledger: the whole initial supply minted to `initial_holder`.

    Raises ValueError on a null governance/holder, and the domain errors of
    validate_tax_rates for out-of-cap rates.
    """
    if not str(chain_id or "").strip():
        raise ValueError("chain_id must be a non-empty string")
    if is_null_account(governance):
        raise ValueError("governance must be a non-null account id")
    if is_null_account(initial_holder):
        raise ValueError("initial_holder must be a non-null account id")

    policy = validate_tax_rates(transfer_bp, sell_bp, buy_bp)
    fee = str(fee_recipient).strip() if fee_recipient is not None else str(initial_holder)
    if is_null_account(fee):
        fee = ZERO_ADDRESS

    st: Json = {
        "chain_id": str(chain_id),
        "time": int(genesis_time),
        "genesis_time": int(genesis_time),
        "token": {"name": str(token_name), "symbol": str(token_symbol), "decimals": COIN_DECIMALS},
        "governance": {"account": str(governance), "upgrade": {}},
        "tax": {"policy": policy.to_json(), "pending": None},
        "fee_recipient": fee,
        "pools": {str(p).strip(): True for p in pools if not is_null_account(p)},
        "supply": {"pending": None, "window_start": int(genesis_time), "minted_in_window": 0},
        "total_supply": 0,
    }
    ensure_state(st)

    if initial_supply:
        balances.move(st, ZERO_ADDRESS, str(initial_holder), int(initial_supply))

    check_invariants(st)
    return st


__all__ = ["build_genesis_state"]
