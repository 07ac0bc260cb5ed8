from __future__ import annotations

import pytest

from capledger.runtime.classifier import TransferKind, classify
from capledger.runtime.errors import CombinedCapExceeded, RateTooHigh
from capledger.runtime.tax import TaxPolicy, compute_tax, tax_rate_bp, validate_tax_rates


def test_classify_truth_table() -> None:
    assert classify(False, False) is TransferKind.REGULAR
    assert classify(True, False) is TransferKind.BUY
    assert classify(False, True) is TransferKind.SELL
    assert classify(True, True) is TransferKind.POOL_TO_POOL


def test_compute_tax_floors_instead_of_rounding() -> None:
    assert compute_tax(99, 100) == (0, 99)
    assert compute_tax(999, 100) == (9, 990)
    assert compute_tax(1000, 100) == (10, 990)
    # 0.5% of 199 is 0.995: floor keeps it at 0
    assert compute_tax(199, 50) == (0, 199)
    assert compute_tax(0, 500) == (0, 0)


def test_rates_by_kind_with_default_policy() -> None:
    p = TaxPolicy()
    assert tax_rate_bp(p, TransferKind.REGULAR) == 100
    assert tax_rate_bp(p, TransferKind.SELL) == 200
    assert tax_rate_bp(p, TransferKind.BUY) == 0
    assert tax_rate_bp(TaxPolicy(500, 300, 500), TransferKind.POOL_TO_POOL) == 0

    tax, net = compute_tax(1000, tax_rate_bp(p, TransferKind.SELL))
    assert (tax, net) == (20, 980)


def test_validate_tax_rates_caps() -> None:
    with pytest.raises(RateTooHigh):
        validate_tax_rates(600, 0, 0)
    with pytest.raises(RateTooHigh):
        validate_tax_rates(0, -1, 0)
    with pytest.raises(RateTooHigh):
        validate_tax_rates(True, 0, 0)

    with pytest.raises(CombinedCapExceeded) as ei:
        validate_tax_rates(500, 400, 0)
    assert ei.value.details["combination"] == "transfer+sell"

    # every pairwise cap is inclusive
    assert validate_tax_rates(400, 400, 0) == TaxPolicy(400, 400, 0)
    assert validate_tax_rates(500, 0, 500) == TaxPolicy(500, 0, 500)
    assert validate_tax_rates(0, 500, 500) == TaxPolicy(0, 500, 500)


def test_tax_policy_json_round_trip_defaults() -> None:
    assert TaxPolicy.from_json(None) == TaxPolicy()
    assert TaxPolicy.from_json({"transfer_bp": 250}) == TaxPolicy(250, 100, 0)
    assert TaxPolicy(1, 2, 3).to_json() == {"transfer_bp": 1, "sell_bp": 2, "buy_bp": 3}
