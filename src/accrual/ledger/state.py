from __future__ import annotations

from dataclasses import dataclass, field
import copy
from typing import Any, Dict

from accrual.ledger.accrual import earned, get_participant, reward_per_share_at


Json = Dict[str, Any]


@dataclass(frozen=True, slots=True)
class PoolView:
    """
    Immutable read-only view of a pool snapshot, projected to a fixed instant.

    Built from whatever a store returned for one read, so every number it
    reports comes from the same committed state.
    """

    pool: Dict[str, Any] = field(default_factory=dict)
    participants: Dict[str, Any] = field(default_factory=dict)
    now: int = 0

    @classmethod
    def from_state(cls, state: Dict[str, Any], *, now: int) -> "PoolView":
        pool = state.get("pool")
        parts = state.get("participants")
        return cls(
            pool=copy.deepcopy(pool) if isinstance(pool, dict) else {},
            participants=copy.deepcopy(parts) if isinstance(parts, dict) else {},
            now=int(now),
        )

    def _int(self, key: str) -> int:
        try:
            return int(self.pool.get(key, 0) or 0)
        except Exception:
            return 0

    @property
    def initialized(self) -> bool:
        return bool(self.pool.get("initialized", False))

    @property
    def paused(self) -> bool:
        return bool(self.pool.get("paused", False))

    @property
    def owner(self) -> str:
        return str(self.pool.get("owner") or "")

    @property
    def token(self) -> str:
        return str(self.pool.get("token") or "")

    @property
    def reward_rate(self) -> int:
        return self._int("reward_rate")

    @property
    def total_staked(self) -> int:
        return self._int("total_staked")

    @property
    def available_rewards(self) -> int:
        return self._int("available_rewards")

    @property
    def reward_per_share(self) -> int:
        """Accumulator projected to `now`."""
        return reward_per_share_at(self.pool, self.now)

    def staked_of(self, participant_id: str) -> int:
        return int(get_participant({"participants": self.participants}, participant_id)["staked"])

    def earned_of(self, participant_id: str) -> int:
        rec = get_participant({"participants": self.participants}, participant_id)
        return earned(self.reward_per_share, rec)

    def pool_summary(self) -> Json:
        return {
            "initialized": self.initialized,
            "paused": self.paused,
            "owner": self.owner,
            "token": self.token,
            "reward_rate": self.reward_rate,
            "total_staked": self.total_staked,
            "available_rewards": self.available_rewards,
            "reward_per_share": self.reward_per_share,
            "last_update_time": self._int("last_update_time"),
            "as_of": self.now,
        }

    def participant_summary(self, participant_id: str) -> Json:
        rec = get_participant({"participants": self.participants}, participant_id)
        return {
            "participant": participant_id,
            "staked": int(rec["staked"]),
            "reward_per_share_paid": int(rec["reward_per_share_paid"]),
            "settled_reward": int(rec["settled_reward"]),
            "earned": earned(self.reward_per_share, rec),
            "as_of": self.now,
        }
