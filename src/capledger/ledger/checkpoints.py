from __future__ import annotations

"""Timestamp-keyed checkpoint lists.

A checkpoint list is a JSON-friendly list of [ts, value] pairs with strictly
increasing ts. Writing twice at the same ts overwrites the last entry.
"""

from bisect import bisect_right
from typing import Any, List

Checkpoints = List[List[int]]


def _as_list(v: Any) -> Checkpoints:
    return v if isinstance(v, list) else []


def latest(ckpts: Any) -> int:
    ck = _as_list(ckpts)
    if not ck:
        return 0
    return int(ck[-1][1])


def push(ckpts: Checkpoints, ts: int, value: int) -> Checkpoints:
    ts = int(ts)
    value = int(value)
    if ckpts:
        last_ts = int(ckpts[-1][0])
        if ts < last_ts:
            raise ValueError(f"checkpoint out of order: ts={ts} last={last_ts}")
        if ts == last_ts:
            ckpts[-1][1] = value
            return ckpts
    ckpts.append([ts, value])
    return ckpts


def upper_lookup(ckpts: Any, ts: int) -> int:
    """Value of the last checkpoint with key <= ts, or 0 if none."""
    ck = _as_list(ckpts)
    if not ck:
        return 0
    keys = [int(c[0]) for c in ck]
    i = bisect_right(keys, int(ts))
    if i == 0:
        return 0
    return int(ck[i - 1][1])


__all__ = ["Checkpoints", "latest", "push", "upper_lookup"]
