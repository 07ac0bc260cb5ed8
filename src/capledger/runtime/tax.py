# src/capledger/runtime/tax.py
from __future__ import annotations

"""Tax engine.

Pure integer arithmetic over basis points. Flooring is part of the economic
behavior: amounts below 10_000 / rate pay no tax at all.
"""

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from capledger.ledger.constants import (
    BPS_DENOMINATOR,
    DEFAULT_BUY_TAX_BP,
    DEFAULT_SELL_TAX_BP,
    DEFAULT_TRANSFER_TAX_BP,
    MAX_COMBINED_BUY_BP,
    MAX_COMBINED_SELL_BP,
    MAX_COMBINED_SELL_BUY_BP,
    MAX_TAX_BP,
)
from capledger.runtime.classifier import TransferKind
from capledger.runtime.errors import CombinedCapExceeded, RateTooHigh

Json = Dict[str, Any]


@dataclass(frozen=True)
class TaxPolicy:
    transfer_bp: int = DEFAULT_TRANSFER_TAX_BP
    sell_bp: int = DEFAULT_SELL_TAX_BP
    buy_bp: int = DEFAULT_BUY_TAX_BP

    @staticmethod
    def from_json(j: Any) -> "TaxPolicy":
        if not isinstance(j, dict):
            return TaxPolicy()
        return TaxPolicy(
            transfer_bp=int(j.get("transfer_bp", DEFAULT_TRANSFER_TAX_BP)),
            sell_bp=int(j.get("sell_bp", DEFAULT_SELL_TAX_BP)),
            buy_bp=int(j.get("buy_bp", DEFAULT_BUY_TAX_BP)),
        )

    def to_json(self) -> Json:
        return {"transfer_bp": self.transfer_bp, "sell_bp": self.sell_bp, "buy_bp": self.buy_bp}


def validate_tax_rates(transfer_bp: int, sell_bp: int, buy_bp: int) -> TaxPolicy:
    """Check every individual and compound cap.

    Raises:
        RateTooHigh: any single rate outside [0, MAX_TAX_BP]
        CombinedCapExceeded: any pairwise sum above its cap
    """
    rates = {"transfer_bp": transfer_bp, "sell_bp": sell_bp, "buy_bp": buy_bp}
    for name, bp in rates.items():
        if not isinstance(bp, int) or isinstance(bp, bool) or bp < 0 or bp > MAX_TAX_BP:
            raise RateTooHigh({"rate": name, "bp": bp, "max_bp": MAX_TAX_BP})

    pairs = (
        ("transfer+sell", transfer_bp + sell_bp, MAX_COMBINED_SELL_BP),
        ("transfer+buy", transfer_bp + buy_bp, MAX_COMBINED_BUY_BP),
        ("sell+buy", sell_bp + buy_bp, MAX_COMBINED_SELL_BUY_BP),
    )
    for name, total, cap in pairs:
        if total > cap:
            raise CombinedCapExceeded({"combination": name, "bp": total, "max_bp": cap})

    return TaxPolicy(transfer_bp=transfer_bp, sell_bp=sell_bp, buy_bp=buy_bp)


def tax_rate_bp(policy: TaxPolicy, kind: TransferKind) -> int:
    if kind == TransferKind.POOL_TO_POOL:
        return 0
    if kind == TransferKind.BUY:
        return int(policy.buy_bp)
    if kind == TransferKind.SELL:
        # a sell always also pays the base transfer rate
        return int(policy.transfer_bp) + int(policy.sell_bp)
    return int(policy.transfer_bp)


def compute_tax(amount: int, rate_bp: int) -> Tuple[int, int]:
    """Return (tax, net) for a gross amount."""
    amount = int(amount)
    tax = amount * int(rate_bp) // BPS_DENOMINATOR
    return tax, amount - tax


__all__ = ["TaxPolicy", "validate_tax_rates", "tax_rate_bp", "compute_tax"]
