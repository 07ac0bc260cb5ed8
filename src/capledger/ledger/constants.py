# src/capledger/ledger/constants.py
from __future__ import annotations

"""Monetary and governance constants.

- 18 fractional digits
- Initial issuance: 1,000,000,000 CAP minted to the initial holder at genesis
- Hard cap: 10x initial issuance
- Tax rates are basis points out of 10,000
"""

TOKEN_NAME: str = "Cyberia"
TOKEN_SYMBOL: str = "CAP"

COIN_DECIMALS: int = 18
COIN: int = 10**COIN_DECIMALS

INITIAL_SUPPLY_CAP: int = 1_000_000_000
INITIAL_SUPPLY: int = INITIAL_SUPPLY_CAP * COIN
MAX_SUPPLY: int = 10 * INITIAL_SUPPLY

# Null identifier: mint source, burn sink and the fee-recipient burn sentinel.
ZERO_ADDRESS: str = "0x0000000000000000000000000000000000000000"
BURN_SENTINEL: str = ZERO_ADDRESS

# Allowance value treated as unlimited (never decremented).
MAX_ALLOWANCE: int = 2**256 - 1

# Tax policy
BPS_DENOMINATOR: int = 10_000
MAX_TAX_BP: int = 500  # 5% per individual rate
MAX_COMBINED_SELL_BP: int = 800  # transfer + sell
MAX_COMBINED_BUY_BP: int = 1_000  # transfer + buy
MAX_COMBINED_SELL_BUY_BP: int = 1_000  # sell + buy

DEFAULT_TRANSFER_TAX_BP: int = 100
DEFAULT_SELL_TAX_BP: int = 100
DEFAULT_BUY_TAX_BP: int = 0

# Timelocks (seconds)
TAX_CHANGE_DELAY: int = 24 * 60 * 60
MINT_DELAY: int = 7 * 24 * 60 * 60

# Supply expansion rate limit
MINT_WINDOW: int = 30 * 24 * 60 * 60
MINT_PERIOD_CAP: int = 100_000_000 * COIN

# Permit domain version
PERMIT_VERSION: str = "1"


def is_null_account(account: object) -> bool:
    s = str(account or "").strip().lower()
    return s == "" or s == ZERO_ADDRESS
