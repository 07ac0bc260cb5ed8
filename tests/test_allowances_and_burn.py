from __future__ import annotations

import pytest

from capledger.ledger.constants import INITIAL_SUPPLY, MAX_ALLOWANCE, ZERO_ADDRESS
from capledger.runtime.errors import InsufficientAllowance, InsufficientBalance, InvalidAmount, ZeroAddress
from capledger.runtime.executor import LedgerExecutor
from capledger.testing.clock import FakeClock


def _ex() -> LedgerExecutor:
    return LedgerExecutor.genesis(
        chain_id="cap-test",
        governance="gov",
        initial_holder="alice",
        clock=FakeClock(),
        fee_recipient="fees",
    )


def test_transfer_from_spends_gross_amount() -> None:
    ex = _ex()
    res = ex.approve("alice", "spender", 1500)
    assert res["events"] == [{"kind": "Approval", "owner": "alice", "spender": "spender", "amount": 1500}]

    res = ex.transfer_from("spender", "alice", "bob", 1000)
    assert res["spender"] == "spender"
    v = ex.view
    assert v.allowance("alice", "spender") == 500
    assert v.balance_of("bob") == 990
    assert v.balance_of("fees") == 10

    with pytest.raises(InsufficientAllowance):
        ex.transfer_from("spender", "alice", "bob", 501)
    assert ex.view.allowance("alice", "spender") == 500


def test_unlimited_allowance_is_never_decremented() -> None:
    ex = _ex()
    ex.approve("alice", "router", MAX_ALLOWANCE)
    ex.transfer_from("router", "alice", "bob", 10_000)
    ex.burn_from("router", "alice", 5)
    assert ex.view.allowance("alice", "router") == MAX_ALLOWANCE


def test_approve_overwrites_and_zero_clears() -> None:
    ex = _ex()
    ex.approve("alice", "spender", 10)
    ex.approve("alice", "spender", 3)
    assert ex.view.allowance("alice", "spender") == 3
    ex.approve("alice", "spender", 0)
    assert ex.view.allowance("alice", "spender") == 0
    assert "alice" not in (ex.read_state().get("allowances") or {})


def test_approve_rejects_null_and_out_of_range() -> None:
    ex = _ex()
    with pytest.raises(ZeroAddress):
        ex.approve("alice", ZERO_ADDRESS, 1)
    with pytest.raises(InvalidAmount):
        ex.approve("alice", "spender", -1)
    with pytest.raises(InvalidAmount):
        ex.approve("alice", "spender", MAX_ALLOWANCE + 1)


def test_burn_reduces_supply_without_tax() -> None:
    ex = _ex()
    res = ex.burn("alice", 1000)
    assert res["events"] == [{"kind": "Transfer", "from": "alice", "to": ZERO_ADDRESS, "amount": 1000}]
    assert ex.view.total_supply() == INITIAL_SUPPLY - 1000
    assert ex.view.balance_of("fees") == 0

    with pytest.raises(InsufficientBalance):
        ex.burn("bob", 1)


def test_burn_from_requires_allowance() -> None:
    ex = _ex()
    with pytest.raises(InsufficientAllowance):
        ex.burn_from("spender", "alice", 1)

    ex.approve("alice", "spender", 100)
    ex.burn_from("spender", "alice", 60)
    assert ex.view.allowance("alice", "spender") == 40
    assert ex.view.total_supply() == INITIAL_SUPPLY - 60
