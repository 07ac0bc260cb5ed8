from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

Json = Dict[str, Any]


@dataclass
class ApplyError(Exception):
    """Canonical error type for domain apply and dispatch failures."""

    code: str
    reason: str
    details: Any | None = None

    def __str__(self) -> str:  # pragma: no cover
        if self.details is None:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"


class LedgerError(ApplyError):
    """Named failure kind with a fixed (code, reason) pair.

    Codes follow the failure taxonomy:
      forbidden            caller is not allowed to perform the operation
      invalid_payload      malformed or out-of-range parameters
      invalid_state        operation invalid for the current lifecycle state
      insufficient         balance, allowance, supply cap or rate window exhausted
      reentrant            nested entry while a mutation is in progress
    """

    CODE = "domain_error"
    REASON = "error"

    def __init__(self, details: Optional[Json] = None) -> None:
        super().__init__(self.CODE, self.REASON, details)


# --- authorization ---


class Unauthorized(LedgerError):
    CODE = "forbidden"
    REASON = "only_governance"


# --- validation ---


class InvalidAmount(LedgerError):
    CODE = "invalid_payload"
    REASON = "bad_amount"


class ZeroAddress(LedgerError):
    CODE = "invalid_payload"
    REASON = "zero_address"


class ZeroRecipient(LedgerError):
    CODE = "invalid_payload"
    REASON = "mint_to_zero"


class ZeroGovernance(LedgerError):
    CODE = "invalid_payload"
    REASON = "zero_governance"


class RateTooHigh(LedgerError):
    CODE = "invalid_payload"
    REASON = "rate_too_high"


class CombinedCapExceeded(LedgerError):
    CODE = "invalid_payload"
    REASON = "combined_cap_exceeded"


class InvalidSignature(LedgerError):
    CODE = "invalid_payload"
    REASON = "invalid_signature"


class PermitExpired(LedgerError):
    CODE = "invalid_payload"
    REASON = "permit_expired"


class FutureLookup(LedgerError):
    CODE = "invalid_payload"
    REASON = "future_lookup"


# --- lifecycle state ---


class NoPendingProposal(LedgerError):
    CODE = "invalid_state"
    REASON = "no_pending_change"


class NoPendingMint(LedgerError):
    CODE = "invalid_state"
    REASON = "no_pending_mint"


class TimelockNotExpired(LedgerError):
    CODE = "invalid_state"
    REASON = "timelock_not_expired"


class AlreadyRegistered(LedgerError):
    CODE = "invalid_state"
    REASON = "already_registered"


class NotRegistered(LedgerError):
    CODE = "invalid_state"
    REASON = "not_registered"


class BadNonce(LedgerError):
    CODE = "invalid_state"
    REASON = "bad_nonce"


# --- resources ---


class InsufficientBalance(LedgerError):
    CODE = "insufficient"
    REASON = "insufficient_balance"


class InsufficientAllowance(LedgerError):
    CODE = "insufficient"
    REASON = "insufficient_allowance"


class ExceedsMaxSupply(LedgerError):
    CODE = "insufficient"
    REASON = "exceeds_max_supply"


class ExceedsPeriodCap(LedgerError):
    CODE = "insufficient"
    REASON = "exceeds_period_cap"


# --- reentrancy ---


class ReentrantCall(LedgerError):
    CODE = "reentrant"
    REASON = "reentrant_call"


class InvariantViolation(LedgerError):
    CODE = "invariant_violation"
    REASON = "state_invariant_broken"
