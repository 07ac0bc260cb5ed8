# src/capledger/runtime/apply/__init__.py
"""Domain-specific apply modules.

Each module exposes `apply_<domain>(state, env) -> Optional[Json]` for its
subset of tx types and returns None for tx types it does not claim. Appliers
mutate the state they are given; the executor hands them a working copy.
"""

from __future__ import annotations

__all__ = [
    "token",
    "tax_policy",
    "supply",
    "governance",
]
