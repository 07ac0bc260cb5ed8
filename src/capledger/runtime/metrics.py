from __future__ import annotations

"""In-process counters and gauges with optional labels.

A series is identified by its name plus a sorted label tuple, so
inc_counter("tx_rejected", labels={"code": "bad_nonce"}) and
inc_counter("tx_rejected", labels={"code": "forbidden"}) are two series of
one counter family. Values are integers; amounts are base units.
"""

import os
import threading
import time
from typing import Dict, Mapping, Optional, Tuple

Labels = Tuple[Tuple[str, str], ...]
SeriesKey = Tuple[str, Labels]

_lock = threading.Lock()
_counters: Dict[SeriesKey, int] = {}
_gauges: Dict[SeriesKey, int] = {}
_started_ms = int(time.time() * 1000)


def metrics_enabled() -> bool:
    v = (os.environ.get("CAPLEDGER_METRICS_ENABLED") or "").strip().lower()
    return v in {"1", "true", "yes", "y", "on"}


def _key(name: str, labels: Optional[Mapping[str, str]]) -> Optional[SeriesKey]:
    n = str(name or "").strip()
    if not n:
        return None
    lab = tuple(sorted((str(k), str(v)) for k, v in (labels or {}).items()))
    return n, lab


def _render(key: SeriesKey) -> str:
    name, labels = key
    if not labels:
        return name
    inner = ",".join(f'{k}="{v}"' for k, v in labels)
    return f"{name}{{{inner}}}"


def inc_counter(name: str, value: int = 1, *, labels: Optional[Mapping[str, str]] = None) -> None:
    k = _key(name, labels)
    if k is None:
        return
    with _lock:
        _counters[k] = _counters.get(k, 0) + int(value)


def set_gauge(name: str, value: int, *, labels: Optional[Mapping[str, str]] = None) -> None:
    k = _key(name, labels)
    if k is None:
        return
    with _lock:
        _gauges[k] = int(value)


def reset() -> None:
    with _lock:
        _counters.clear()
        _gauges.clear()


def snapshot() -> dict:
    """Rendered series name -> value, e.g. 'tx_rejected{code="forbidden"}'."""
    now = int(time.time() * 1000)
    with _lock:
        return {
            "ts_ms": now,
            "uptime_ms": now - _started_ms,
            "counters": {_render(k): v for k, v in _counters.items()},
            "gauges": {_render(k): v for k, v in _gauges.items()},
        }


def format_prometheus(prefix: str = "capledger_") -> str:
    """Prometheus text exposition, one TYPE line per family."""
    pre = str(prefix or "").strip() or "capledger_"
    with _lock:
        families = [("counter", dict(_counters)), ("gauge", dict(_gauges))]
    lines = [f"{pre}uptime_ms {int(time.time() * 1000) - _started_ms}"]

    for kind, series in families:
        seen = set()
        for key in sorted(series):
            if key[0] not in seen:
                seen.add(key[0])
                lines.append(f"# TYPE {pre}{key[0]} {kind}")
            lines.append(f"{pre}{_render(key)} {series[key]}")

    return "\n".join(lines) + "\n"


__all__ = ["format_prometheus", "inc_counter", "metrics_enabled", "reset", "set_gauge", "snapshot"]
