from __future__ import annotations

import pytest

from capledger.ledger.constants import TAX_CHANGE_DELAY, ZERO_ADDRESS
from capledger.runtime.errors import AlreadyRegistered, NotRegistered, Unauthorized, ZeroAddress, ZeroGovernance
from capledger.runtime.executor import LedgerExecutor
from capledger.runtime.tax import TaxPolicy
from capledger.testing.clock import FakeClock

GOV = "gov"


def _ex(clock: FakeClock | None = None) -> LedgerExecutor:
    return LedgerExecutor.genesis(
        chain_id="cap-test",
        governance=GOV,
        initial_holder="alice",
        clock=clock or FakeClock(),
        fee_recipient="fees",
    )


def test_pool_registry_edits_are_not_idempotent() -> None:
    ex = _ex()
    res = ex.add_pool(GOV, "amm")
    assert res["events"] == [{"kind": "PoolAdded", "by": GOV, "pool": "amm"}]
    assert ex.view.is_pool("amm")

    with pytest.raises(AlreadyRegistered):
        ex.add_pool(GOV, "amm")
    with pytest.raises(NotRegistered):
        ex.remove_pool(GOV, "not-a-pool")
    with pytest.raises(ZeroAddress):
        ex.add_pool(GOV, ZERO_ADDRESS)

    ex.remove_pool(GOV, "amm")
    assert ex.view.pools() == []
    with pytest.raises(NotRegistered):
        ex.remove_pool(GOV, "amm")


def test_pool_edits_take_effect_immediately() -> None:
    ex = _ex()
    ex.add_pool(GOV, "amm")
    ev = [e for e in ex.transfer("alice", "amm", 1000)["events"] if e["kind"] == "TransferTaxed"][0]
    assert ev["transfer_kind"] == "sell"

    ex.remove_pool(GOV, "amm")
    ev = [e for e in ex.transfer("alice", "amm", 1000)["events"] if e["kind"] == "TransferTaxed"][0]
    assert ev["transfer_kind"] == "regular"


def test_fee_recipient_update_and_burn_mode() -> None:
    ex = _ex()
    res = ex.set_fee_recipient(GOV, "treasury2")
    assert res["events"][0] == {
        "kind": "FeeRecipientUpdated",
        "by": GOV,
        "old": "fees",
        "new": "treasury2",
        "burn_mode": False,
    }

    res = ex.set_fee_recipient(GOV, "")
    assert res["events"][0]["new"] == ZERO_ADDRESS
    assert res["events"][0]["burn_mode"] is True
    assert ex.view.fee_recipient() == ZERO_ADDRESS


def test_every_privileged_operation_rejects_non_governance() -> None:
    ex = _ex()
    before = ex.read_state()
    calls = [
        lambda: ex.add_pool("alice", "amm"),
        lambda: ex.remove_pool("alice", "amm"),
        lambda: ex.set_fee_recipient("alice", "alice"),
        lambda: ex.set_governance("alice", "alice"),
        lambda: ex.authorize_upgrade("alice", "v2"),
        lambda: ex.propose_tax("alice", 0, 0, 0),
        lambda: ex.propose_mint("alice", "alice", 1),
        lambda: ex.execute_mint("alice"),
        lambda: ex.cancel_mint("alice"),
    ]
    for call in calls:
        with pytest.raises(Unauthorized):
            call()
    assert ex.read_state() is before


def test_governance_handover_moves_all_rights() -> None:
    clock = FakeClock()
    ex = _ex(clock)
    ex.propose_tax(GOV, 300, 300, 0)

    with pytest.raises(ZeroGovernance):
        ex.set_governance(GOV, ZERO_ADDRESS)

    res = ex.set_governance(GOV, "dao")
    assert res["events"][0] == {"kind": "GovernanceTransferred", "previous": GOV, "new": "dao"}
    assert ex.view.governance() == "dao"

    clock.advance(TAX_CHANGE_DELAY)
    with pytest.raises(Unauthorized):
        ex.apply_tax(GOV)

    # the pending proposal survives the hand-over
    ex.apply_tax("dao")
    assert ex.view.tax_policy() == TaxPolicy(300, 300, 0)


def test_upgrade_authorization_is_recorded() -> None:
    clock = FakeClock()
    ex = _ex(clock)
    ex.authorize_upgrade(GOV, "v2")
    assert ex.view.upgrade() == {"authorized_version": "v2", "authorized_at": clock.now}

    res = ex.authorize_upgrade(GOV, "v3")
    assert res["events"][0]["previous"] == "v2"
