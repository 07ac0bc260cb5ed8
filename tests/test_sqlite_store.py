from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import pytest

from capledger.ledger.constants import INITIAL_SUPPLY
from capledger.runtime.errors import InsufficientBalance
from capledger.runtime.executor import ExecutorError, LedgerExecutor
from capledger.runtime.ledger_config import default_ledger_config
from capledger.testing.clock import FakeClock


def _cfg(tmp_path: Path, **kw):
    return replace(
        default_ledger_config(),
        chain_id="cap-sqlite",
        mode="dev",
        db_path=str(tmp_path / "capledger.db"),
        initial_holder="alice",
        fee_recipient="fees",
        **kw,
    )


def test_genesis_is_persisted_and_reloaded(tmp_path: Path) -> None:
    cfg = _cfg(tmp_path)
    clock = FakeClock()

    ex = LedgerExecutor.from_config(cfg, clock=clock)
    assert ex.view.balance_of("alice") == INITIAL_SUPPLY

    clock.advance(5)
    r1 = ex.transfer("alice", "bob", 1000)
    r2 = ex.approve("alice", "bob", 7)
    assert (r1["op_seq"], r2["op_seq"]) == (1, 2)

    with pytest.raises(InsufficientBalance):
        ex.transfer("bob", "carol", 10_000)

    ex2 = LedgerExecutor.from_config(cfg, clock=clock)
    assert ex2.read_state() == ex.read_state()
    assert ex2.view.balance_of("bob") == 990
    assert ex2.view.allowance("alice", "bob") == 7

    # op_seq continues from the persisted value
    assert ex2.transfer("bob", "carol", 100)["op_seq"] == 3


def test_event_log_is_paged_and_filterable(tmp_path: Path) -> None:
    ex = LedgerExecutor.from_config(_cfg(tmp_path), clock=FakeClock())
    ex.transfer("alice", "bob", 1000)
    ex.transfer("alice", "carol", 1000)

    records = ex.read_events()
    kinds = [r["event"]["kind"] for r in records]
    assert kinds == ["Transfer", "Transfer", "TransferTaxed"] * 2
    assert [r["seq"] for r in records] == list(range(1, 7))
    assert records[0]["tx_type"] == "TRANSFER"
    assert records[0]["signer"] == "alice"

    taxed = ex.read_events(kind="TransferTaxed")
    assert [r["op_seq"] for r in taxed] == [1, 2]

    page = ex.read_events(after_seq=3, limit=2)
    assert [r["seq"] for r in page] == [4, 5]


def test_in_memory_event_log_matches() -> None:
    ex = LedgerExecutor.genesis(chain_id="mem", governance="gov", initial_holder="alice", clock=FakeClock())
    ex.burn("alice", 1)
    records = ex.read_events()
    assert len(records) == 1
    assert records[0]["event"]["kind"] == "Transfer"
    assert records[0]["op_seq"] == 1


def test_chain_id_mismatch_refuses_to_start(tmp_path: Path) -> None:
    cfg = _cfg(tmp_path)
    LedgerExecutor.from_config(cfg, clock=FakeClock())

    with pytest.raises(ExecutorError):
        LedgerExecutor.from_config(replace(cfg, chain_id="other-chain"), clock=FakeClock())
