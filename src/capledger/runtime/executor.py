from __future__ import annotations

import copy
import logging
import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional

from capledger.ledger.state import LedgerView
from capledger.runtime import metrics
from capledger.runtime.domain_dispatch import apply_tx
from capledger.runtime.errors import ApplyError, ReentrantCall
from capledger.runtime.genesis import build_genesis_state
from capledger.runtime.ledger_config import LedgerConfig
from capledger.runtime.sqlite_db import SqliteDB, SqliteLedgerStore
from capledger.runtime.state_invariants import check_invariants
from capledger.runtime.tx_admission import admit_tx
from capledger.runtime.tx_admission_types import TxEnvelope
from capledger.runtime.tx_schema import validate_payload
from capledger.structured_logging import log_event

Json = Dict[str, Any]
Clock = Callable[[], int]
ReceiveHook = Callable[["LedgerExecutor", Json], None]

_log = logging.getLogger("capledger.executor")


def _wall_clock() -> int:
    return int(time.time())


class ExecutorError(RuntimeError):
    pass


class LedgerExecutor:
    """Single owner of the ledger state.

    Every mutation runs under one non-reentrant latch, against a deep copy of
    the committed state. The copy replaces the committed state (and is
    persisted, when a store is attached) only after the applier, the receive
    hooks and the invariant checks all succeed.
    """

    def __init__(
        self,
        *,
        state: Json,
        store: Optional[SqliteLedgerStore] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        check_invariants(state)
        self.state: Json = state
        self._store = store
        self._clock: Clock = clock or _wall_clock
        self._entered = False
        self._hooks: Dict[str, ReceiveHook] = {}
        self._events: List[Json] = []
        self._op_seq = store.op_seq() if store is not None else 0
        metrics.set_gauge("total_supply", int(self.state.get("total_supply") or 0))

    # ----------------------------
    # Construction
    # ----------------------------

    @classmethod
    def genesis(
        cls,
        *,
        chain_id: str,
        governance: str,
        initial_holder: str,
        clock: Optional[Clock] = None,
        store: Optional[SqliteLedgerStore] = None,
        **params: Any,
    ) -> "LedgerExecutor":
        """Build a fresh ledger; extra keyword params go to build_genesis_state."""
        clk = clock or _wall_clock
        st = build_genesis_state(
            chain_id=chain_id,
            governance=governance,
            initial_holder=initial_holder,
            genesis_time=int(clk()),
            **params,
        )
        if store is not None:
            store.write(st)
        return cls(state=st, store=store, clock=clk)

    @classmethod
    def from_config(cls, cfg: LedgerConfig, *, clock: Optional[Clock] = None) -> "LedgerExecutor":
        """Open (or create) the SQLite-backed ledger described by cfg."""
        store = SqliteLedgerStore(db=SqliteDB(path=cfg.db_path))
        if not store.exists():
            return cls.genesis(
                chain_id=cfg.chain_id,
                governance=cfg.governance,
                initial_holder=cfg.initial_holder,
                clock=clock,
                store=store,
                fee_recipient=cfg.fee_recipient,
                token_name=cfg.token_name,
                token_symbol=cfg.token_symbol,
                transfer_bp=cfg.transfer_bp,
                sell_bp=cfg.sell_bp,
                buy_bp=cfg.buy_bp,
                pools=cfg.pools,
            )

        st = store.read()
        st_chain_id = str(st.get("chain_id") or "").strip()
        if st_chain_id != cfg.chain_id:
            raise ExecutorError(f"chain_id mismatch: db={st_chain_id!r} config={cfg.chain_id!r}. Refuse to start.")
        return cls(state=st, store=store, clock=clock)

    # ----------------------------
    # Public accessors
    # ----------------------------

    @property
    def view(self) -> LedgerView:
        return LedgerView(state=self.state)

    @property
    def in_progress(self) -> bool:
        return self._entered

    def read_state(self) -> Json:
        return self.state

    def read_events(self, *, after_seq: int = 0, limit: int = 100, kind: Optional[str] = None) -> List[Json]:
        if self._store is not None:
            return self._store.read_events(after_seq=after_seq, limit=limit, kind=kind)
        limit = max(1, min(int(limit), 1000))
        out = [r for r in self._events if r["seq"] > int(after_seq) and (not kind or r["event"].get("kind") == kind)]
        return out[:limit]

    def register_receive_hook(self, account: str, hook: ReceiveHook) -> None:
        """Call hook(executor, transfer_event) whenever `account` is credited.

        Hooks run before commit, with the latch held: raising rolls back the
        whole operation, and calling back into the executor raises ReentrantCall.
        """
        self._hooks[str(account)] = hook

    def unregister_receive_hook(self, account: str) -> None:
        self._hooks.pop(str(account), None)

    # ----------------------------
    # Execution
    # ----------------------------

    @contextmanager
    def _nonreentrant(self, tx_type: str) -> Iterator[None]:
        if self._entered:
            raise ReentrantCall({"tx_type": tx_type})
        self._entered = True
        try:
            yield
        finally:
            self._entered = False

    def _now(self) -> int:
        # Checkpoints are append-only; never let ledger time run backwards.
        return max(int(self._clock()), int(self.state.get("time") or 0))

    def _run_receive_hooks(self, events: List[Json]) -> None:
        for ev in events:
            if ev.get("kind") != "Transfer":
                continue
            hook = self._hooks.get(str(ev.get("to") or ""))
            if hook is None:
                continue
            try:
                hook(self, ev)
            except ApplyError:
                raise
            except Exception as e:
                raise ApplyError("hook_failed", type(e).__name__, {"account": ev.get("to"), "error": str(e)}) from e

    def _apply_and_commit(self, env: TxEnvelope, *, consume_nonce: bool) -> Json:
        if not env.signer:
            raise ApplyError("invalid_tx", "missing_signer", {"tx_type": env.tx_type})

        ok, err = validate_payload(env.tx_type, env.payload)
        if not ok:
            raise ApplyError("invalid_payload", "payload_schema_mismatch", err)

        working: Json = copy.deepcopy(self.state)
        working["time"] = self._now()

        meta = apply_tx(working, env)
        events: List[Json] = list(meta.get("events") or [])

        self._run_receive_hooks(events)

        if consume_nonce:
            working.setdefault("tx_nonces", {})[env.signer] = int(env.nonce)

        check_invariants(working)

        if self._store is not None:
            op_seq = self._store.commit(working, events, tx_type=env.tx_type, signer=env.signer)
        else:
            op_seq = self._op_seq + 1
        self._op_seq = op_seq
        self.state = working

        for ev in events:
            self._events.append(
                {
                    "seq": len(self._events) + 1,
                    "op_seq": op_seq,
                    "tx_type": env.tx_type,
                    "signer": env.signer,
                    "time": int(working["time"]),
                    "event": ev,
                }
            )

        self._record_applied(env, events, op_seq)

        out = dict(meta)
        out["ok"] = True
        out["op_seq"] = op_seq
        out["time"] = int(working["time"])
        return out

    def _record_applied(self, env: TxEnvelope, events: List[Json], op_seq: int) -> None:
        metrics.inc_counter("tx_applied", labels={"tx_type": env.tx_type})
        for ev in events:
            if ev.get("kind") != "TransferTaxed":
                continue
            if ev.get("tax_mode") == "collected":
                metrics.inc_counter("tax_collected", int(ev.get("tax") or 0))
            elif ev.get("tax_mode") == "destroyed":
                metrics.inc_counter("tax_burned", int(ev.get("tax") or 0))
        metrics.set_gauge("total_supply", int(self.state.get("total_supply") or 0))

        log_event(
            _log,
            "tx_applied",
            tx_type=env.tx_type,
            signer=env.signer,
            op_seq=op_seq,
            events=[ev.get("kind") for ev in events],
        )

    def _record_rejected(self, env: TxEnvelope, e: ApplyError) -> None:
        metrics.inc_counter("tx_rejected", labels={"code": e.code})
        log_event(
            _log,
            "tx_rejected",
            level=logging.WARNING,
            tx_type=env.tx_type,
            signer=env.signer,
            code=e.code,
            reason=e.reason,
            details=e.details,
        )

    def execute(self, env: Any) -> Json:
        """Apply one operation on behalf of env.signer (trusted, in-process caller)."""
        env_n = TxEnvelope.from_json(env)
        try:
            with self._nonreentrant(env_n.tx_type):
                return self._apply_and_commit(env_n, consume_nonce=False)
        except ApplyError as e:
            self._record_rejected(env_n, e)
            raise

    def _consume_nonce(self, env: TxEnvelope) -> None:
        st = copy.deepcopy(self.state)
        st.setdefault("tx_nonces", {})[env.signer] = int(env.nonce)
        if self._store is not None:
            self._store.write(st)
        self.state = st

    def submit_signed(self, tx: Any) -> Json:
        """Admit and apply an externally signed envelope.

        Once admitted, the nonce is consumed whether or not the operation applies.
        """
        verdict = admit_tx(tx, self.state)
        if not verdict.ok:
            e = verdict.as_error()
            env_j = tx if isinstance(tx, dict) else {}
            self._record_rejected(
                TxEnvelope(
                    tx_type=str(env_j.get("tx_type", "")),
                    signer=str(env_j.get("signer", "")),
                    nonce=0,
                    payload={},
                ),
                e,
            )
            raise e

        env = TxEnvelope.from_json(tx)
        try:
            with self._nonreentrant(env.tx_type):
                try:
                    return self._apply_and_commit(env, consume_nonce=True)
                except ApplyError:
                    self._consume_nonce(env)
                    raise
        except ApplyError as e:
            self._record_rejected(env, e)
            raise

    # ----------------------------
    # Operation helpers
    # ----------------------------

    def _call(self, tx_type: str, signer: str, **payload: Any) -> Json:
        return self.execute({"tx_type": tx_type, "signer": signer, "nonce": 0, "payload": payload})

    def transfer(self, sender: str, to: str, amount: int) -> Json:
        return self._call("TRANSFER", sender, to=to, amount=amount)

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> Json:
        return self._call("TRANSFER_FROM", spender, owner=owner, to=to, amount=amount)

    def approve(self, owner: str, spender: str, amount: int) -> Json:
        return self._call("APPROVE", owner, spender=spender, amount=amount)

    def permit(
        self,
        caller: str,
        *,
        owner: str,
        spender: str,
        value: int,
        deadline: int,
        pubkey: str,
        sig: str,
    ) -> Json:
        return self._call(
            "PERMIT",
            caller,
            owner=owner,
            spender=spender,
            value=value,
            deadline=deadline,
            pubkey=pubkey,
            sig=sig,
        )

    def burn(self, holder: str, amount: int) -> Json:
        return self._call("BURN", holder, amount=amount)

    def burn_from(self, spender: str, owner: str, amount: int) -> Json:
        return self._call("BURN_FROM", spender, owner=owner, amount=amount)

    def delegate(self, holder: str, delegatee: str) -> Json:
        return self._call("DELEGATE", holder, delegatee=delegatee)

    def propose_tax(self, caller: str, transfer_bp: int, sell_bp: int, buy_bp: int) -> Json:
        return self._call("TAX_PROPOSE", caller, transfer_bp=transfer_bp, sell_bp=sell_bp, buy_bp=buy_bp)

    def apply_tax(self, caller: str) -> Json:
        return self._call("TAX_APPLY", caller)

    def cancel_tax(self, caller: str) -> Json:
        return self._call("TAX_CANCEL", caller)

    def set_fee_recipient(self, caller: str, fee_recipient: str) -> Json:
        return self._call("FEE_RECIPIENT_SET", caller, fee_recipient=fee_recipient)

    def add_pool(self, caller: str, pool: str) -> Json:
        return self._call("POOL_ADD", caller, pool=pool)

    def remove_pool(self, caller: str, pool: str) -> Json:
        return self._call("POOL_REMOVE", caller, pool=pool)

    def propose_mint(self, caller: str, recipient: str, amount: int) -> Json:
        return self._call("MINT_PROPOSE", caller, recipient=recipient, amount=amount)

    def execute_mint(self, caller: str) -> Json:
        return self._call("MINT_EXECUTE", caller)

    def cancel_mint(self, caller: str) -> Json:
        return self._call("MINT_CANCEL", caller)

    def set_governance(self, caller: str, governance: str) -> Json:
        return self._call("GOVERNANCE_SET", caller, governance=governance)

    def authorize_upgrade(self, caller: str, version: str) -> Json:
        return self._call("UPGRADE_AUTHORIZE", caller, version=version)


__all__ = ["ExecutorError", "LedgerExecutor"]
