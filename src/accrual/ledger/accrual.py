# src/accrual/ledger/accrual.py
from __future__ import annotations

"""Reward-per-share accrual.

The pool keeps one global accumulator: reward earned per unit of stake since
inception, scaled by SCALE. Each participant keeps the accumulator value they
were last settled at. A participant's pending reward is therefore

    staked * (accumulator - checkpoint) // SCALE + settled_reward

which needs no enumeration of other participants.

State layout (plain JSON-able dict, persisted by the stores):

    {
      "pool": {
        "initialized": bool,
        "owner": str,
        "token": str,
        "reward_rate": int,          # reward units per second
        "total_staked": int,
        "reward_per_share": int,     # accumulator, SCALE fixed-point
        "last_update_time": int,     # unix seconds
        "available_rewards": int,
        "paused": bool,
      },
      "participants": {
        "<id>": {"staked": int, "reward_per_share_paid": int, "settled_reward": int},
      },
    }

A participant that is absent is equivalent to one with all fields zero.
"""

from typing import Any, Dict, Optional

from accrual.ledger.constants import SCALE
from accrual.ledger.fixed_point import checked_add, checked_mul, checked_sub, mul_div

Json = Dict[str, Any]

_POOL_DEFAULTS: Json = {
    "initialized": False,
    "owner": "",
    "token": "",
    "reward_rate": 0,
    "total_staked": 0,
    "reward_per_share": 0,
    "last_update_time": 0,
    "available_rewards": 0,
    "paused": False,
}

_PARTICIPANT_FIELDS = ("staked", "reward_per_share_paid", "settled_reward")


def _as_int(x: Any, default: int = 0) -> int:
    try:
        return int(x)
    except Exception:
        return int(default)


def ensure_pool(state: Json) -> Json:
    pool = state.get("pool")
    if not isinstance(pool, dict):
        pool = {}
        state["pool"] = pool
    for k, v in _POOL_DEFAULTS.items():
        pool.setdefault(k, v)
    return pool


def _ensure_participants(state: Json) -> Json:
    parts = state.get("participants")
    if not isinstance(parts, dict):
        parts = {}
        state["participants"] = parts
    return parts


def empty_participant() -> Json:
    return {k: 0 for k in _PARTICIPANT_FIELDS}


def get_participant(state: Json, participant_id: str) -> Json:
    """Read-only lookup. Never inserts; absent ids read as zeros."""
    parts = state.get("participants")
    rec = parts.get(participant_id) if isinstance(parts, dict) else None
    out = empty_participant()
    if isinstance(rec, dict):
        for k in _PARTICIPANT_FIELDS:
            out[k] = _as_int(rec.get(k), 0)
    return out


def ensure_participant(state: Json, participant_id: str) -> Json:
    parts = _ensure_participants(state)
    rec = parts.get(participant_id)
    if not isinstance(rec, dict):
        rec = empty_participant()
        parts[participant_id] = rec
    for k in _PARTICIPANT_FIELDS:
        rec.setdefault(k, 0)
    return rec


def _elapsed(pool: Json, now: int) -> int:
    # A clock that steps backwards counts as no elapsed time.
    return max(int(now) - _as_int(pool.get("last_update_time"), 0), 0)


def reward_per_share_at(pool: Json, now: int) -> int:
    """Project the accumulator to `now` without mutating the pool."""
    acc = _as_int(pool.get("reward_per_share"), 0)
    total = _as_int(pool.get("total_staked"), 0)
    if total == 0:
        return acc
    dt = _elapsed(pool, now)
    if dt == 0:
        return acc
    emitted = checked_mul(dt, _as_int(pool.get("reward_rate"), 0))
    return checked_add(acc, mul_div(emitted, SCALE, total))


def refresh_global(state: Json, now: int) -> Json:
    """Bring the accumulator up to `now`.

    With nothing staked the accumulator is left alone and only the timestamp
    moves, so a zero-stake period neither accrues nor divides by zero.
    """
    pool = ensure_pool(state)
    pool["reward_per_share"] = reward_per_share_at(pool, now)
    pool["last_update_time"] = max(_as_int(pool.get("last_update_time"), 0), int(now))
    return pool


def earned(reward_per_share: int, participant: Json) -> int:
    staked = _as_int(participant.get("staked"), 0)
    paid = _as_int(participant.get("reward_per_share_paid"), 0)
    settled = _as_int(participant.get("settled_reward"), 0)
    delta = checked_sub(reward_per_share, paid)
    return checked_add(mul_div(staked, delta, SCALE), settled)


def settle(state: Json, participant_id: Optional[str], now: int) -> Optional[Json]:
    """Refresh the accumulator, then checkpoint one participant against it.

    With participant_id=None only the global refresh happens. Returns the
    participant record (inserted if absent) or None.
    """
    pool = refresh_global(state, now)
    if participant_id is None:
        return None
    acc = _as_int(pool.get("reward_per_share"), 0)
    rec = ensure_participant(state, participant_id)
    rec["settled_reward"] = earned(acc, rec)
    rec["reward_per_share_paid"] = acc
    return rec


def earned_view(state: Json, participant_id: str, now: int) -> int:
    """What settle() would store as settled_reward at `now`, computed read-only."""
    pool = state.get("pool") if isinstance(state.get("pool"), dict) else {}
    acc = reward_per_share_at(pool, now)
    return earned(acc, get_participant(state, participant_id))
