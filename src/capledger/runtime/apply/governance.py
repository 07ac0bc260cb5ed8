# src/capledger/runtime/apply/governance.py
from __future__ import annotations

"""Immediate governance edits: pools, fee recipient, governance hand-over and
upgrade authorization.

None of these are timelocked. Pending tax and mint proposals are untouched by
a governance hand-over and become actionable by the new identity.
"""

from typing import Any, Dict, Optional, Set

from capledger.ledger.constants import ZERO_ADDRESS, is_null_account
from capledger.runtime.errors import AlreadyRegistered, NotRegistered, ZeroAddress, ZeroGovernance
from capledger.runtime.guard import GovernanceConfig, require_governance
from capledger.runtime.tx_admission_types import TxEnvelope

Json = Dict[str, Any]


def _as_str(v: Any) -> str:
    return str(v).strip() if isinstance(v, (str, int, float)) else ""


def _as_dict(v: Any) -> Json:
    return v if isinstance(v, dict) else {}


def _ensure_pools(state: Json) -> Json:
    pools = state.get("pools")
    if not isinstance(pools, dict):
        pools = {}
        state["pools"] = pools
    return pools


def _ensure_gov_root(state: Json) -> Json:
    gov = state.get("governance")
    if not isinstance(gov, dict):
        gov = {}
        state["governance"] = gov
    return gov


def _apply_pool_add(state: Json, env: TxEnvelope) -> Json:
    require_governance(GovernanceConfig.from_state(state), env.signer, tx_type=env.tx_type)
    pool = _as_str(_as_dict(env.payload).get("pool"))
    if is_null_account(pool):
        raise ZeroAddress({"pool": pool})

    pools = _ensure_pools(state)
    if pools.get(pool):
        raise AlreadyRegistered({"pool": pool})
    pools[pool] = True

    return {"applied": "POOL_ADD", "events": [{"kind": "PoolAdded", "by": env.signer, "pool": pool}]}


def _apply_pool_remove(state: Json, env: TxEnvelope) -> Json:
    require_governance(GovernanceConfig.from_state(state), env.signer, tx_type=env.tx_type)
    pool = _as_str(_as_dict(env.payload).get("pool"))
    if is_null_account(pool):
        raise ZeroAddress({"pool": pool})

    pools = _ensure_pools(state)
    if not pools.get(pool):
        raise NotRegistered({"pool": pool})
    pools.pop(pool, None)

    return {"applied": "POOL_REMOVE", "events": [{"kind": "PoolRemoved", "by": env.signer, "pool": pool}]}


def _apply_fee_recipient_set(state: Json, env: TxEnvelope) -> Json:
    require_governance(GovernanceConfig.from_state(state), env.signer, tx_type=env.tx_type)
    new = _as_str(_as_dict(env.payload).get("fee_recipient"))
    if is_null_account(new):
        new = ZERO_ADDRESS

    old = _as_str(state.get("fee_recipient")) or ZERO_ADDRESS
    state["fee_recipient"] = new

    ev = {"kind": "FeeRecipientUpdated", "by": env.signer, "old": old, "new": new, "burn_mode": new == ZERO_ADDRESS}
    return {"applied": "FEE_RECIPIENT_SET", "events": [ev]}


def _apply_governance_set(state: Json, env: TxEnvelope) -> Json:
    current = GovernanceConfig.from_state(state)
    require_governance(current, env.signer, tx_type=env.tx_type)
    new = _as_str(_as_dict(env.payload).get("governance"))
    if is_null_account(new):
        raise ZeroGovernance({"governance": new})

    _ensure_gov_root(state)["account"] = new

    ev = {"kind": "GovernanceTransferred", "previous": current.account, "new": new}
    return {"applied": "GOVERNANCE_SET", "events": [ev]}


def _apply_upgrade_authorize(state: Json, env: TxEnvelope) -> Json:
    require_governance(GovernanceConfig.from_state(state), env.signer, tx_type=env.tx_type)
    version = _as_str(_as_dict(env.payload).get("version"))

    gov = _ensure_gov_root(state)
    previous = _as_dict(gov.get("upgrade")).get("authorized_version")
    at = int(state.get("time") or 0)
    gov["upgrade"] = {"authorized_version": version, "authorized_at": at}

    ev = {"kind": "UpgradeAuthorized", "by": env.signer, "version": version, "previous": previous, "at": at}
    return {"applied": "UPGRADE_AUTHORIZE", "events": [ev]}


GOVERNANCE_TX_TYPES: Set[str] = {
    "POOL_ADD",
    "POOL_REMOVE",
    "FEE_RECIPIENT_SET",
    "GOVERNANCE_SET",
    "UPGRADE_AUTHORIZE",
}


def apply_governance(state: Json, env: TxEnvelope) -> Optional[Json]:
    t = _as_str(env.tx_type).upper()
    if t not in GOVERNANCE_TX_TYPES:
        return None

    if t == "POOL_ADD":
        return _apply_pool_add(state, env)
    if t == "POOL_REMOVE":
        return _apply_pool_remove(state, env)
    if t == "FEE_RECIPIENT_SET":
        return _apply_fee_recipient_set(state, env)
    if t == "GOVERNANCE_SET":
        return _apply_governance_set(state, env)
    if t == "UPGRADE_AUTHORIZE":
        return _apply_upgrade_authorize(state, env)

    return None


__all__ = ["GOVERNANCE_TX_TYPES", "apply_governance"]
