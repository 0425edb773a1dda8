from __future__ import annotations

"""In-process ledger metrics.

Two families:
  - ledger_ops_total{op, outcome}: one count per ledger call, outcome in
    {ok, rejected, failed}
  - pool_<field>{pool_id}: last committed pool totals

Pool totals are 256-bit; snapshot() keeps them exact and the Prometheus
exposition renders anything past float64's exact range in float notation.
"""

import os
import threading
import time
from typing import Dict, Tuple

OUTCOMES = ("ok", "rejected", "failed")
POOL_FIELDS = ("total_staked", "available_rewards", "reward_rate")

_FLOAT_EXACT = 2**53

_lock = threading.Lock()
_ops: Dict[Tuple[str, str], int] = {}
_pools: Dict[str, Dict[str, int]] = {}
_started_ms = int(time.time() * 1000)


def metrics_enabled() -> bool:
    v = (os.environ.get("ACCRUAL_METRICS_ENABLED") or "").strip().lower()
    return v in {"1", "true", "yes", "y", "on"}


def record_op(op: str, outcome: str) -> None:
    if outcome not in OUTCOMES:
        raise ValueError(f"unknown outcome {outcome!r}")
    key = (str(op), outcome)
    with _lock:
        _ops[key] = _ops.get(key, 0) + 1


def observe_pool(pool_id: str, **fields: int) -> None:
    """Record committed pool totals. Unknown field names are ignored."""
    vals = {k: int(v) for k, v in fields.items() if k in POOL_FIELDS}
    with _lock:
        _pools.setdefault(str(pool_id), {}).update(vals)


def snapshot() -> dict:
    with _lock:
        ops: Dict[str, Dict[str, int]] = {}
        for (op, outcome), n in _ops.items():
            ops.setdefault(op, {})[outcome] = n
        return {
            "uptime_ms": int(time.time() * 1000) - _started_ms,
            "ops": ops,
            "pools": {pid: dict(vals) for pid, vals in _pools.items()},
        }


def reset() -> None:
    """Clear everything recorded so far (tests)."""
    with _lock:
        _ops.clear()
        _pools.clear()


def _sample(v: int) -> str:
    if -_FLOAT_EXACT <= v <= _FLOAT_EXACT:
        return str(v)
    return repr(float(v))


def format_prometheus(prefix: str = "accrual_") -> str:
    pre = str(prefix or "").strip() or "accrual_"
    snap = snapshot()
    lines = [
        f"# TYPE {pre}uptime_ms gauge",
        f"{pre}uptime_ms {snap['uptime_ms']}",
        f"# HELP {pre}ledger_ops_total Ledger calls by operation and outcome.",
        f"# TYPE {pre}ledger_ops_total counter",
    ]
    for op in sorted(snap["ops"]):
        for outcome, n in sorted(snap["ops"][op].items()):
            lines.append(f'{pre}ledger_ops_total{{op="{op}",outcome="{outcome}"}} {n}')

    for field in POOL_FIELDS:
        lines.append(f"# TYPE {pre}pool_{field} gauge")
        for pid in sorted(snap["pools"]):
            if field in snap["pools"][pid]:
                lines.append(f'{pre}pool_{field}{{pool_id="{pid}"}} {_sample(snap["pools"][pid][field])}')

    return "\n".join(lines) + "\n"
