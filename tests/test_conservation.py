from __future__ import annotations

import random

import pytest

from capledger.ledger.constants import INITIAL_SUPPLY, MINT_PERIOD_CAP, ZERO_ADDRESS
from capledger.runtime.errors import ApplyError, InvariantViolation
from capledger.runtime.executor import LedgerExecutor
from capledger.runtime.state_invariants import check_invariants
from capledger.testing.clock import FakeClock

ACCOUNTS = ["alice", "bob", "carol", "pool", "fees"]


def _sum_balances(ex: LedgerExecutor) -> int:
    return sum(int(v) for v in (ex.read_state().get("balances") or {}).values())


def test_random_sequence_conserves_supply() -> None:
    rng = random.Random(20240519)
    clock = FakeClock()
    ex = LedgerExecutor.genesis(
        chain_id="cap-test",
        governance="gov",
        initial_holder="alice",
        clock=clock,
        fee_recipient="fees",
        pools=("pool",),
    )
    burned = 0
    rejected = 0

    for i in range(400):
        clock.advance(rng.randint(0, 3))
        frm = rng.choice(ACCOUNTS)
        to = rng.choice(ACCOUNTS)
        bal = ex.view.balance_of(frm)
        amount = rng.randint(0, bal + 10) if bal < 10**6 else rng.randint(0, bal // 3)
        op = rng.random()
        try:
            if op < 0.6:
                ex.transfer(frm, to, amount)
            elif op < 0.7:
                ex.burn(frm, amount)
                burned += amount
            elif op < 0.8:
                ex.approve(frm, to, amount)
            elif op < 0.9:
                ex.transfer_from(to, frm, rng.choice(ACCOUNTS), amount)
            elif op < 0.95:
                ex.delegate(frm, rng.choice(ACCOUNTS))
            else:
                ex.set_fee_recipient("gov", rng.choice(["fees", ZERO_ADDRESS]))
        except ApplyError:
            rejected += 1

        check_invariants(ex.read_state())
        assert _sum_balances(ex) == ex.view.total_supply()

    assert ex.view.total_supply() <= INITIAL_SUPPLY - burned
    assert rejected < 400


def _genesis_state() -> dict:
    ex = LedgerExecutor.genesis(chain_id="cap-test", governance="gov", initial_holder="alice", clock=FakeClock())
    ex.approve("alice", "bob", 5)
    return ex.read_state()


def test_invariants_reject_negative_allowance() -> None:
    st = _genesis_state()
    check_invariants(st)

    st["allowances"]["alice"]["bob"] = -1
    with pytest.raises(InvariantViolation) as ei:
        check_invariants(st)
    assert ei.value.details["check"] == "allowance_non_negative_int"


def test_invariants_reject_mint_window_out_of_bounds() -> None:
    st = _genesis_state()

    st["supply"]["minted_in_window"] = MINT_PERIOD_CAP
    check_invariants(st)

    st["supply"]["minted_in_window"] = MINT_PERIOD_CAP + 1
    with pytest.raises(InvariantViolation) as ei:
        check_invariants(st)
    assert ei.value.details["check"] == "mint_window_bounds"

    st["supply"]["minted_in_window"] = -1
    with pytest.raises(InvariantViolation):
        check_invariants(st)
