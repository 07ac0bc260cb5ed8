from __future__ import annotations

import pytest

from capledger.ledger import checkpoints
from capledger.ledger.constants import INITIAL_SUPPLY
from capledger.runtime.errors import FutureLookup
from capledger.runtime.executor import LedgerExecutor
from capledger.testing.clock import FakeClock


def test_checkpoint_list_basics() -> None:
    ck: list = []
    checkpoints.push(ck, 10, 100)
    checkpoints.push(ck, 10, 150)
    checkpoints.push(ck, 20, 50)
    assert ck == [[10, 150], [20, 50]]
    assert checkpoints.latest(ck) == 50
    assert checkpoints.latest(None) == 0

    assert checkpoints.upper_lookup(ck, 9) == 0
    assert checkpoints.upper_lookup(ck, 10) == 150
    assert checkpoints.upper_lookup(ck, 19) == 150
    assert checkpoints.upper_lookup(ck, 99) == 50

    with pytest.raises(ValueError):
        checkpoints.push(ck, 5, 1)


def _ex(clock: FakeClock) -> LedgerExecutor:
    return LedgerExecutor.genesis(
        chain_id="cap-test",
        governance="gov",
        initial_holder="alice",
        clock=clock,
        fee_recipient="fees",
    )


def test_votes_need_delegation_and_follow_balances() -> None:
    clock = FakeClock()
    ex = _ex(clock)
    t0 = clock.now
    assert ex.view.get_votes("alice") == 0

    res = ex.delegate("alice", "alice")
    assert res["events"][0]["votes_moved"] == INITIAL_SUPPLY
    assert ex.view.get_votes("alice") == INITIAL_SUPPLY

    clock.advance(100)
    ex.transfer("alice", "bob", 1000)
    assert ex.view.get_votes("alice") == INITIAL_SUPPLY - 1000
    # bob holds tokens but has not delegated
    assert ex.view.get_votes("bob") == 0

    clock.advance(100)
    ex.delegate("bob", "carol")
    assert ex.view.get_votes("carol") == 990
    assert ex.view.delegates("bob") == "carol"

    v = ex.view
    assert v.get_past_votes("alice", t0 + 99) == INITIAL_SUPPLY
    assert v.get_past_votes("alice", t0 + 100) == INITIAL_SUPPLY - 1000
    assert v.get_past_votes("carol", t0 + 150) == 0
    with pytest.raises(FutureLookup):
        v.get_past_votes("alice", v.time)


def test_redelegation_moves_existing_power() -> None:
    clock = FakeClock()
    ex = _ex(clock)
    ex.delegate("alice", "dave")
    ex.delegate("alice", "erin")
    assert ex.view.get_votes("dave") == 0
    assert ex.view.get_votes("erin") == INITIAL_SUPPLY

    res = ex.delegate("alice", "")
    assert res["events"][0]["to_delegate"] == ""
    assert ex.view.get_votes("erin") == 0


def test_past_total_supply_tracks_mint_and_burn() -> None:
    clock = FakeClock()
    ex = _ex(clock)
    t0 = clock.now

    clock.advance(10)
    ex.burn("alice", 5)
    clock.advance(10)
    ex.approve("alice", "bob", 1)

    v = ex.view
    assert v.get_past_total_supply(t0) == INITIAL_SUPPLY
    assert v.get_past_total_supply(t0 + 9) == INITIAL_SUPPLY
    assert v.get_past_total_supply(t0 + 10) == INITIAL_SUPPLY - 5
    with pytest.raises(FutureLookup):
        v.get_past_total_supply(t0 + 20)
