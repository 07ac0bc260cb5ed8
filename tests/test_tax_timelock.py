from __future__ import annotations

import pytest

from capledger.ledger.constants import TAX_CHANGE_DELAY
from capledger.runtime.errors import (
    CombinedCapExceeded,
    NoPendingProposal,
    RateTooHigh,
    TimelockNotExpired,
    Unauthorized,
)
from capledger.runtime.executor import LedgerExecutor
from capledger.runtime.tax import TaxPolicy
from capledger.testing.clock import FakeClock

GOV = "gov"


def _ex(clock: FakeClock) -> LedgerExecutor:
    return LedgerExecutor.genesis(chain_id="cap-test", governance=GOV, initial_holder="alice", clock=clock)


def test_apply_without_proposal_fails() -> None:
    ex = _ex(FakeClock())
    with pytest.raises(NoPendingProposal):
        ex.apply_tax(GOV)
    with pytest.raises(NoPendingProposal):
        ex.cancel_tax(GOV)


def test_apply_waits_for_the_full_delay() -> None:
    clock = FakeClock()
    ex = _ex(clock)
    t0 = clock.now

    res = ex.propose_tax(GOV, 200, 300, 50)
    assert res["effective_time"] == t0 + TAX_CHANGE_DELAY
    assert ex.view.pending_tax() == {"transfer_bp": 200, "sell_bp": 300, "buy_bp": 50, "effective_time": t0 + TAX_CHANGE_DELAY}

    clock.advance(TAX_CHANGE_DELAY - 1)
    with pytest.raises(TimelockNotExpired):
        ex.apply_tax(GOV)
    assert ex.view.tax_policy() == TaxPolicy()

    clock.advance(1)
    res = ex.apply_tax(GOV)
    ev = res["events"][0]
    assert ev["kind"] == "TaxChangeApplied"
    assert ev["previous"] == TaxPolicy().to_json()
    assert ex.view.tax_policy() == TaxPolicy(200, 300, 50)
    assert ex.view.pending_tax() is None

    with pytest.raises(NoPendingProposal):
        ex.apply_tax(GOV)


def test_reproposal_replaces_and_restarts_the_clock() -> None:
    clock = FakeClock()
    ex = _ex(clock)
    ex.propose_tax(GOV, 200, 200, 0)
    clock.advance(TAX_CHANGE_DELAY - 10)

    res = ex.propose_tax(GOV, 300, 300, 0)
    ev = res["events"][0]
    assert ev["replaced"]["transfer_bp"] == 200

    clock.advance(10)
    with pytest.raises(TimelockNotExpired):
        ex.apply_tax(GOV)

    clock.advance(TAX_CHANGE_DELAY)
    ex.apply_tax(GOV)
    assert ex.view.tax_policy() == TaxPolicy(300, 300, 0)


def test_cancel_discards_pending_rates() -> None:
    clock = FakeClock()
    ex = _ex(clock)
    ex.propose_tax(GOV, 400, 400, 0)

    res = ex.cancel_tax(GOV)
    assert res["events"][0]["discarded"]["sell_bp"] == 400
    assert ex.view.pending_tax() is None

    clock.advance(TAX_CHANGE_DELAY)
    with pytest.raises(NoPendingProposal):
        ex.apply_tax(GOV)


def test_out_of_cap_proposals_always_fail() -> None:
    ex = _ex(FakeClock())
    with pytest.raises(RateTooHigh):
        ex.propose_tax(GOV, 600, 0, 0)
    with pytest.raises(CombinedCapExceeded):
        ex.propose_tax(GOV, 500, 400, 0)
    assert ex.view.pending_tax() is None

    # a non-governance caller fails too, on authorization first
    with pytest.raises(Unauthorized):
        ex.propose_tax("mallory", 600, 0, 0)


def test_tax_controls_are_governance_only() -> None:
    ex = _ex(FakeClock())
    ex.propose_tax(GOV, 100, 100, 0)
    for call in (ex.apply_tax, ex.cancel_tax):
        with pytest.raises(Unauthorized):
            call("alice")
    assert ex.view.pending_tax() is not None
