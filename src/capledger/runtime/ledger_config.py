# src/capledger/runtime/ledger_config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from capledger.ledger.constants import (
    DEFAULT_BUY_TAX_BP,
    DEFAULT_SELL_TAX_BP,
    DEFAULT_TRANSFER_TAX_BP,
    TOKEN_NAME,
    TOKEN_SYMBOL,
    is_null_account,
)
from capledger.runtime.errors import ApplyError
from capledger.runtime.tax import validate_tax_rates

Json = Dict[str, Any]


def _as_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


def _as_str_tuple(v: Any, default: Tuple[str, ...]) -> Tuple[str, ...]:
    if v is None:
        return default
    if not isinstance(v, list):
        raise ValueError("pools must be a JSON array of account ids")
    return tuple(str(x).strip() for x in v if str(x).strip())


@dataclass(frozen=True)
class LedgerConfig:
    chain_id: str
    mode: str  # "dev" | "testnet" | "prod"

    # Single SQLite DB file for snapshot + events.
    db_path: str

    api_host: str
    api_port: int

    log_level: str

    # Genesis parameters; ignored once the DB holds a snapshot.
    token_name: str = TOKEN_NAME
    token_symbol: str = TOKEN_SYMBOL
    governance: str = "governance"
    initial_holder: str = "treasury"
    fee_recipient: str = "treasury"
    transfer_bp: int = DEFAULT_TRANSFER_TAX_BP
    sell_bp: int = DEFAULT_SELL_TAX_BP
    buy_bp: int = DEFAULT_BUY_TAX_BP
    pools: Tuple[str, ...] = field(default_factory=tuple)


_ALLOWED_MODES = {"dev", "testnet", "prod"}


def validate_ledger_config(cfg: LedgerConfig) -> None:
    """Fail-fast validation for operator config."""

    if not isinstance(cfg.chain_id, str) or not cfg.chain_id.strip():
        raise ValueError("chain_id must be a non-empty string")

    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise ValueError(f"mode must be one of {_ALLOWED_MODES}; got: {cfg.mode!r}")

    if int(cfg.api_port) <= 0 or int(cfg.api_port) > 65535:
        raise ValueError(f"api_port must be 1..65535; got: {cfg.api_port}")

    if not isinstance(cfg.db_path, str) or not cfg.db_path.strip():
        raise ValueError("db_path must be a non-empty string")

    if is_null_account(cfg.governance):
        raise ValueError("governance must be a non-null account id")

    if is_null_account(cfg.initial_holder):
        raise ValueError("initial_holder must be a non-null account id")

    try:
        validate_tax_rates(cfg.transfer_bp, cfg.sell_bp, cfg.buy_bp)
    except ApplyError as e:
        raise ValueError(f"initial tax rates rejected: {e.reason} {e.details}") from e

    for p in cfg.pools:
        if is_null_account(p):
            raise ValueError("pools must not contain the null account")


def default_ledger_config() -> LedgerConfig:
    return LedgerConfig(
        chain_id="capledger-dev",
        # Without an explicit config file we must not drop into a dev posture.
        mode="prod",
        db_path="./data/capledger.db",
        api_host="127.0.0.1",
        api_port=8000,
        log_level="INFO",
    )


def read_ledger_config_file(path: str) -> LedgerConfig:
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("ledger config must be a JSON object")

    d = default_ledger_config()
    return LedgerConfig(
        chain_id=_as_str(raw.get("chain_id"), d.chain_id),
        mode=_as_str(raw.get("mode"), d.mode).strip().lower(),
        db_path=_as_str(raw.get("db_path"), d.db_path),
        api_host=_as_str(raw.get("api_host"), d.api_host),
        api_port=_as_int(raw.get("api_port"), d.api_port),
        log_level=_as_str(raw.get("log_level"), d.log_level),
        token_name=_as_str(raw.get("token_name"), d.token_name),
        token_symbol=_as_str(raw.get("token_symbol"), d.token_symbol),
        governance=_as_str(raw.get("governance"), d.governance),
        initial_holder=_as_str(raw.get("initial_holder"), d.initial_holder),
        fee_recipient=_as_str(raw.get("fee_recipient"), d.fee_recipient),
        transfer_bp=_as_int(raw.get("transfer_bp"), d.transfer_bp),
        sell_bp=_as_int(raw.get("sell_bp"), d.sell_bp),
        buy_bp=_as_int(raw.get("buy_bp"), d.buy_bp),
        pools=_as_str_tuple(raw.get("pools"), d.pools),
    )


def _apply_env_overrides(cfg: LedgerConfig) -> LedgerConfig:
    env = os.environ
    return replace(
        cfg,
        chain_id=_as_str(env.get("CAPLEDGER_CHAIN_ID"), cfg.chain_id),
        mode=_as_str(env.get("CAPLEDGER_MODE"), cfg.mode).strip().lower(),
        db_path=_as_str(env.get("CAPLEDGER_DB_PATH"), cfg.db_path),
        api_host=_as_str(env.get("CAPLEDGER_API_HOST"), cfg.api_host),
        api_port=_as_int(env.get("CAPLEDGER_API_PORT"), cfg.api_port),
        log_level=_as_str(env.get("CAPLEDGER_LOG_LEVEL"), cfg.log_level),
    )


def load_ledger_config(*, config_path: Optional[str] = None) -> LedgerConfig:
    """Config file (argument or CAPLEDGER_CONFIG_PATH) or defaults, then env overrides."""
    p = config_path or os.environ.get("CAPLEDGER_CONFIG_PATH")
    cfg = read_ledger_config_file(p) if p else default_ledger_config()
    cfg = _apply_env_overrides(cfg)
    validate_ledger_config(cfg)
    return cfg


__all__ = [
    "LedgerConfig",
    "default_ledger_config",
    "load_ledger_config",
    "read_ledger_config_file",
    "validate_ledger_config",
]
