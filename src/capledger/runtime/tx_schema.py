from __future__ import annotations

"""Transaction payload schemas.

Shape checks only (required keys, JSON types, no unknown keys). Value ranges
such as non-negative amounts and tax caps are enforced by the apply layer so
that they surface as the domain's own error kinds.
"""

from typing import Any, Dict, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, ValidationError

Json = Dict[str, Any]


class _StrictModel(BaseModel):
    """Strict model: reject unknown keys."""

    model_config = ConfigDict(extra="forbid")


class _EmptyPayload(_StrictModel):
    pass


# ---------------------------------------------------------------------------
# Holder operations
# ---------------------------------------------------------------------------


class TransferPayload(_StrictModel):
    to: StrictStr
    amount: StrictInt


class TransferFromPayload(_StrictModel):
    owner: StrictStr
    to: StrictStr
    amount: StrictInt


class ApprovePayload(_StrictModel):
    spender: StrictStr
    amount: StrictInt


class PermitPayload(_StrictModel):
    owner: StrictStr
    spender: StrictStr
    value: StrictInt
    deadline: StrictInt
    pubkey: StrictStr = Field(..., min_length=1)
    sig: StrictStr = Field(..., min_length=1)


class BurnPayload(_StrictModel):
    amount: StrictInt


class BurnFromPayload(_StrictModel):
    owner: StrictStr
    amount: StrictInt


class DelegatePayload(_StrictModel):
    delegatee: StrictStr


# ---------------------------------------------------------------------------
# Governance operations
# ---------------------------------------------------------------------------


class TaxProposePayload(_StrictModel):
    transfer_bp: StrictInt
    sell_bp: StrictInt
    buy_bp: StrictInt


class FeeRecipientSetPayload(_StrictModel):
    fee_recipient: StrictStr


class PoolPayload(_StrictModel):
    pool: StrictStr


class MintProposePayload(_StrictModel):
    recipient: StrictStr
    amount: StrictInt


class GovernanceSetPayload(_StrictModel):
    governance: StrictStr


class UpgradeAuthorizePayload(_StrictModel):
    version: StrictStr = Field(..., min_length=1)


Schema = Type[BaseModel]

_SCHEMA_BY_TX_TYPE: Dict[str, Schema] = {
    "TRANSFER": TransferPayload,
    "TRANSFER_FROM": TransferFromPayload,
    "APPROVE": ApprovePayload,
    "PERMIT": PermitPayload,
    "BURN": BurnPayload,
    "BURN_FROM": BurnFromPayload,
    "DELEGATE": DelegatePayload,
    "TAX_PROPOSE": TaxProposePayload,
    "TAX_APPLY": _EmptyPayload,
    "TAX_CANCEL": _EmptyPayload,
    "FEE_RECIPIENT_SET": FeeRecipientSetPayload,
    "POOL_ADD": PoolPayload,
    "POOL_REMOVE": PoolPayload,
    "MINT_PROPOSE": MintProposePayload,
    "MINT_EXECUTE": _EmptyPayload,
    "MINT_CANCEL": _EmptyPayload,
    "GOVERNANCE_SET": GovernanceSetPayload,
    "UPGRADE_AUTHORIZE": UpgradeAuthorizePayload,
}

SUPPORTED_TX_TYPES = frozenset(_SCHEMA_BY_TX_TYPE)


def _schema_for(tx_type: str) -> Optional[Schema]:
    t = str(tx_type or "").strip().upper()
    if not t:
        return None
    return _SCHEMA_BY_TX_TYPE.get(t)


def validate_payload(tx_type: str, payload: Any) -> Tuple[bool, Optional[Json]]:
    """Validate payload against its schema.

    Returns: (ok, details). Unknown tx types pass here; dispatch rejects them.
    """
    sch = _schema_for(tx_type)
    if sch is None:
        return True, None

    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        return False, {"tx_type": tx_type, "error": "payload_must_be_object"}

    try:
        sch(**payload)
        return True, None
    except ValidationError as ve:
        errors = [{"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")} for e in ve.errors()]
        return False, {"tx_type": tx_type, "errors": errors}


__all__ = ["SUPPORTED_TX_TYPES", "validate_payload"]
