# src/capledger/runtime/timelock.py
from __future__ import annotations

"""Single-slot timelocked proposals.

A slot is either Idle or Pending(payload, effective_time). Proposing while
Pending replaces the old proposal. Transitions are pure: they return a new slot
and never touch ledger state. The JSON form of Idle is None.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Type, Union

from capledger.runtime.errors import LedgerError, TimelockNotExpired

Json = Dict[str, Any]


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Pending:
    payload: Json = field(default_factory=dict)
    effective_time: int = 0


Slot = Union[Idle, Pending]


def slot_from_json(j: Any) -> Slot:
    if not isinstance(j, dict):
        return Idle()
    payload = {k: v for k, v in j.items() if k != "effective_time"}
    return Pending(payload=payload, effective_time=int(j.get("effective_time", 0)))


def slot_to_json(slot: Slot) -> Optional[Json]:
    if isinstance(slot, Pending):
        out = dict(slot.payload)
        out["effective_time"] = int(slot.effective_time)
        return out
    return None


def propose(slot: Slot, payload: Json, *, now: int, delay: int) -> Pending:
    return Pending(payload=dict(payload), effective_time=int(now) + int(delay))


def mature(slot: Slot, *, now: int, missing_error: Type[LedgerError]) -> Json:
    """Return the payload of a Pending slot whose delay has elapsed.

    Raises:
        missing_error: slot is Idle
        TimelockNotExpired: now < effective_time
    """
    if not isinstance(slot, Pending):
        raise missing_error()
    if int(now) < int(slot.effective_time):
        raise TimelockNotExpired({"now": int(now), "effective_time": int(slot.effective_time)})
    return dict(slot.payload)


def cancel(slot: Slot, *, missing_error: Type[LedgerError]) -> Idle:
    if not isinstance(slot, Pending):
        raise missing_error()
    return Idle()


__all__ = [
    "Idle",
    "Pending",
    "Slot",
    "slot_from_json",
    "slot_to_json",
    "propose",
    "mature",
    "cancel",
]
