# src/accrual/ledger/constants.py
from __future__ import annotations

"""Fixed-point and field-width constants for the accrual ledger.

- Accumulator precision: reward per unit of stake is scaled by 1e18
- Balance and accumulator fields are unsigned 256-bit quantities
"""

# Fixed-point scale applied to the reward-per-share accumulator.
SCALE_DECIMALS: int = 18
SCALE: int = 10**SCALE_DECIMALS

# Upper bound for every stored integer field.
MAX_UINT256: int = 2**256 - 1

# Default pool id when a process hosts a single pool.
DEFAULT_POOL_ID: str = "default"

# Participant id limits (ids are opaque strings: addresses, account ids, ...).
MAX_PARTICIPANT_ID_LEN: int = 256

# Receipt / event names emitted by committed operations.
EVENT_POOL_INITIALIZED = "POOL_INITIALIZED"
EVENT_STAKED = "STAKED"
EVENT_WITHDRAWN = "WITHDRAWN"
EVENT_REWARD_PAID = "REWARD_PAID"
EVENT_REWARDS_FUNDED = "REWARDS_FUNDED"
EVENT_REWARD_RATE_UPDATED = "REWARD_RATE_UPDATED"
EVENT_PAUSED = "PAUSED"
EVENT_UNPAUSED = "UNPAUSED"
EVENT_OWNERSHIP_TRANSFERRED = "OWNERSHIP_TRANSFERRED"
