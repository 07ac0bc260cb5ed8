from __future__ import annotations

from enum import Enum


class TransferKind(str, Enum):
    """Counterparty classification of a transfer.

    The value is what appears in TransferTaxed events.
    """

    REGULAR = "regular"
    BUY = "buy"
    SELL = "sell"
    POOL_TO_POOL = "pool_to_pool"


def classify(from_is_pool: bool, to_is_pool: bool) -> TransferKind:
    if from_is_pool and to_is_pool:
        return TransferKind.POOL_TO_POOL
    if from_is_pool:
        return TransferKind.BUY
    if to_is_pool:
        return TransferKind.SELL
    return TransferKind.REGULAR


__all__ = ["TransferKind", "classify"]
