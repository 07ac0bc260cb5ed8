# src/capledger/runtime/executor_boot.py

from __future__ import annotations

from typing import Optional

from capledger.env import load_dotenv_if_present
from capledger.runtime.executor import Clock, LedgerExecutor
from capledger.runtime.ledger_config import LedgerConfig, load_ledger_config


def build_executor(cfg: Optional[LedgerConfig] = None, *, clock: Optional[Clock] = None) -> LedgerExecutor:
    """
    Build a LedgerExecutor from an explicit config or, if omitted, from
    CAPLEDGER_CONFIG_PATH / environment (after loading .env when present).

    `capledger.api.app` calls this with no args in production.
    """
    if cfg is None:
        load_dotenv_if_present()
        cfg = load_ledger_config()
    return LedgerExecutor.from_config(cfg, clock=clock)


__all__ = ["build_executor"]
