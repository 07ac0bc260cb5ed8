# src/capledger/runtime/domain_dispatch.py
from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, Optional

from capledger.runtime.apply.governance import GOVERNANCE_TX_TYPES, apply_governance
from capledger.runtime.apply.supply import SUPPLY_TX_TYPES, apply_supply
from capledger.runtime.apply.tax_policy import TAX_TX_TYPES, apply_tax_policy
from capledger.runtime.apply.token import TOKEN_TX_TYPES, apply_token
from capledger.runtime.errors import ApplyError
from capledger.runtime.state_invariants import ensure_state
from capledger.runtime.tx_admission_types import TxEnvelope

Json = Dict[str, Any]
ApplyFn = Callable[[Json, TxEnvelope], Optional[Json]]


def _route(*domains: tuple[Iterable[str], ApplyFn]) -> Dict[str, ApplyFn]:
    table: Dict[str, ApplyFn] = {}
    for tx_types, fn in domains:
        for t in tx_types:
            if t in table:
                raise RuntimeError(f"tx_type {t} claimed by {table[t].__name__} and {fn.__name__}")
            table[t] = fn
    return table


_ROUTES: Dict[str, ApplyFn] = _route(
    (TOKEN_TX_TYPES, apply_token),
    (TAX_TX_TYPES, apply_tax_policy),
    (SUPPLY_TX_TYPES, apply_supply),
    (GOVERNANCE_TX_TYPES, apply_governance),
)


def apply_tx(state: Json, env: Any) -> Json:
    """Route one envelope to the domain that owns its tx_type.

    Unknown types fail closed. Anything other than an ApplyError escaping an
    applier is a bug and surfaces as domain_error.
    """
    ensure_state(state)
    env = TxEnvelope.from_json(env)

    if not env.tx_type:
        raise ApplyError("invalid_tx", "missing_tx_type", {"tx_type": env.tx_type})

    fn = _ROUTES.get(env.tx_type)
    if fn is None:
        raise ApplyError("tx_unimplemented", "tx_type_not_implemented", {"tx_type": env.tx_type})

    try:
        out = fn(state, env)
    except ApplyError:
        raise
    except Exception as e:
        raise ApplyError(
            "domain_error",
            type(e).__name__,
            {"tx_type": env.tx_type, "domain": fn.__name__, "error": str(e)},
        ) from e

    if out is None:
        raise ApplyError("tx_unimplemented", "tx_type_not_implemented", {"tx_type": env.tx_type})
    return out


__all__ = ["apply_tx"]
