from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from capledger.ledger import votes
from capledger.runtime.tax import TaxPolicy

Json = Dict[str, Any]


def _as_dict(v: Any) -> Json:
    return v if isinstance(v, dict) else {}


@dataclass(frozen=True, slots=True)
class LedgerView:
    """
    Immutable read-only view over a ledger snapshot.

    Built with a deep copy so API handlers can read it without holding the
    executor lock.
    """

    state: Json = field(default_factory=dict)

    @classmethod
    def from_ledger(cls, state: Json) -> "LedgerView":
        return cls(state=copy.deepcopy(state) if isinstance(state, dict) else {})

    @property
    def time(self) -> int:
        return int(self.state.get("time") or 0)

    @property
    def chain_id(self) -> str:
        return str(self.state.get("chain_id") or "")

    def token(self) -> Json:
        return dict(_as_dict(self.state.get("token")))

    def balance_of(self, account: str) -> int:
        try:
            return int(_as_dict(self.state.get("balances")).get(account, 0))
        except Exception:
            return 0

    def total_supply(self) -> int:
        return int(self.state.get("total_supply") or 0)

    def allowance(self, owner: str, spender: str) -> int:
        per_owner = _as_dict(_as_dict(self.state.get("allowances")).get(owner))
        try:
            return int(per_owner.get(spender, 0))
        except Exception:
            return 0

    def nonces(self, account: str) -> int:
        """Permit nonce: the value the next permit for `account` must sign."""
        return int(_as_dict(self.state.get("permit_nonces")).get(account, 0))

    def tx_nonce(self, account: str) -> int:
        """Last consumed submission nonce."""
        return int(_as_dict(self.state.get("tx_nonces")).get(account, 0))

    def is_pool(self, account: str) -> bool:
        return bool(_as_dict(self.state.get("pools")).get(account))

    def pools(self) -> List[str]:
        return sorted(k for k, v in _as_dict(self.state.get("pools")).items() if v)

    def governance(self) -> str:
        return str(_as_dict(self.state.get("governance")).get("account") or "")

    def upgrade(self) -> Json:
        return dict(_as_dict(_as_dict(self.state.get("governance")).get("upgrade")))

    def fee_recipient(self) -> str:
        return str(self.state.get("fee_recipient") or "")

    def tax_policy(self) -> TaxPolicy:
        return TaxPolicy.from_json(_as_dict(self.state.get("tax")).get("policy"))

    def pending_tax(self) -> Optional[Json]:
        p = _as_dict(self.state.get("tax")).get("pending")
        return dict(p) if isinstance(p, dict) else None

    def pending_mint(self) -> Optional[Json]:
        p = _as_dict(self.state.get("supply")).get("pending")
        return dict(p) if isinstance(p, dict) else None

    def mint_window(self) -> Json:
        sup = _as_dict(self.state.get("supply"))
        return {
            "window_start": int(sup.get("window_start") or 0),
            "minted_in_window": int(sup.get("minted_in_window") or 0),
        }

    def delegates(self, account: str) -> str:
        return votes.delegate_of(self.state, account)

    def get_votes(self, account: str) -> int:
        return votes.get_votes(self.state, account)

    def get_past_votes(self, account: str, ts: int) -> int:
        return votes.get_past_votes(self.state, account, ts)

    def get_past_total_supply(self, ts: int) -> int:
        return votes.get_past_total_supply(self.state, ts)


__all__ = ["LedgerView"]
