from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from capledger.ledger.constants import is_null_account
from capledger.runtime.errors import Unauthorized

Json = Dict[str, Any]


@dataclass(frozen=True)
class GovernanceConfig:
    """The privileged identity, read from state once per operation."""

    account: str

    @staticmethod
    def from_state(state: Json) -> "GovernanceConfig":
        gov = state.get("governance")
        acct = gov.get("account") if isinstance(gov, dict) else ""
        return GovernanceConfig(account=str(acct or "").strip())

    def is_governance(self, caller: str) -> bool:
        if is_null_account(self.account):
            return False
        return str(caller or "").strip() == self.account


def require_governance(gov: GovernanceConfig, caller: str, *, tx_type: str = "") -> None:
    if not gov.is_governance(caller):
        raise Unauthorized({"tx_type": tx_type, "signer": caller})


__all__ = ["GovernanceConfig", "require_governance"]
