from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from accrual.ledger import accrual
from accrual.ledger.constants import (
    EVENT_OWNERSHIP_TRANSFERRED,
    EVENT_PAUSED,
    EVENT_POOL_INITIALIZED,
    EVENT_REWARD_PAID,
    EVENT_REWARD_RATE_UPDATED,
    EVENT_REWARDS_FUNDED,
    EVENT_STAKED,
    EVENT_UNPAUSED,
    EVENT_WITHDRAWN,
    MAX_PARTICIPANT_ID_LEN,
)
from accrual.ledger.fixed_point import as_positive, as_uint, checked_add, checked_sub
from accrual.ledger.state import PoolView
from accrual.runtime.custody import AssetCustody
from accrual.runtime.errors import AuthorizationError, LedgerError, ValidationError
from accrual.runtime.ledger_logging import log_event
from accrual.runtime.metrics import observe_pool, record_op

Json = Dict[str, Any]

log = logging.getLogger("accrual.ledger")


def _now_s() -> int:
    return int(time.time())


def _identity(v: Any, name: str) -> str:
    if not isinstance(v, str) or not v.strip():
        raise ValidationError("invalid_input", f"{name}_required", {name: repr(v)})
    s = v.strip()
    if len(s) > MAX_PARTICIPANT_ID_LEN:
        raise ValidationError("invalid_input", f"{name}_too_long", {"len": len(s)})
    return s


@dataclass(frozen=True, slots=True)
class AdminCapability:
    """
    Explicit admin credential passed into owner-only calls.

    Holding one proves nothing by itself: the ledger compares `holder`
    against the pool owner on every call. Outer layers (HTTP, CLI) decide
    who gets to construct one.
    """

    holder: str


@dataclass(frozen=True, slots=True)
class _CustodyMove:
    direction: str  # "in" | "out"
    party: str
    amount: int


@dataclass
class _OpContext:
    now: int
    moves: List[_CustodyMove] = field(default_factory=list)
    pool_after: Json = field(default_factory=dict)


class AccrualLedger:
    """Stake-weighted, per-second reward accrual for one pool.

    Every mutating call is: settle -> validate -> mutate -> custody transfer,
    executed as one store transaction under the pool lock. Any exception
    before commit discards the whole working copy.
    """

    def __init__(
        self,
        *,
        store: Any,
        custody: AssetCustody,
        clock: Optional[Callable[[], int]] = None,
        pool_id: str = "",
    ) -> None:
        self._store = store
        self._custody = custody
        self._clock = clock or _now_s
        self.pool_id = str(pool_id or getattr(store, "pool_id", "") or "default")
        # Separate pools never share this lock.
        self._lock = threading.RLock()

    @property
    def custody(self) -> AssetCustody:
        return self._custody

    def _now(self) -> int:
        return int(self._clock())

    # ----------------------------
    # Transaction plumbing
    # ----------------------------

    def _execute(
        self,
        op: str,
        mut: Callable[[Json, _OpContext], Json],
        *,
        participant_ids: Iterable[str] = (),
    ) -> Json:
        with self._lock:
            ctx = _OpContext(now=self._now())
            try:
                receipt = self._store.update(lambda st: mut(st, ctx), participant_ids=tuple(participant_ids))
            except LedgerError as e:
                if ctx.moves:
                    self._compensate(op, ctx.moves, e)
                record_op(op, "rejected")
                log_event(
                    log,
                    "ledger_rejected",
                    level=logging.WARNING,
                    pool_id=self.pool_id,
                    op=op,
                    code=e.code,
                    reason=e.reason,
                    details=e.details,
                )
                raise
            except Exception as e:
                if ctx.moves:
                    self._compensate(op, ctx.moves, e)
                record_op(op, "failed")
                log_event(
                    log,
                    "ledger_failed",
                    level=logging.ERROR,
                    pool_id=self.pool_id,
                    op=op,
                    error=f"{type(e).__name__}:{e}",
                )
                raise

        record_op(op, "ok")
        if ctx.pool_after:
            observe_pool(
                self.pool_id,
                total_staked=int(ctx.pool_after.get("total_staked", 0)),
                available_rewards=int(ctx.pool_after.get("available_rewards", 0)),
                reward_rate=int(ctx.pool_after.get("reward_rate", 0)),
            )
        log_event(log, str(receipt.get("applied", op)).lower(), pool_id=self.pool_id, **receipt)
        return receipt

    def _compensate(self, op: str, moves: List[_CustodyMove], cause: BaseException) -> None:
        """Undo custody moves whose ledger transaction did not commit."""
        for m in reversed(moves):
            try:
                if m.direction == "in":
                    self._custody.transfer_out(m.party, m.amount)
                else:
                    self._custody.transfer_in(m.party, m.amount)
                log_event(
                    log,
                    "custody_compensated",
                    level=logging.WARNING,
                    pool_id=self.pool_id,
                    op=op,
                    direction=m.direction,
                    party=m.party,
                    amount=m.amount,
                    cause=f"{type(cause).__name__}",
                )
            except Exception as e:
                # Custody and ledger now disagree; operators must reconcile.
                log_event(
                    log,
                    "custody_compensation_failed",
                    level=logging.CRITICAL,
                    pool_id=self.pool_id,
                    op=op,
                    direction=m.direction,
                    party=m.party,
                    amount=m.amount,
                    error=f"{type(e).__name__}:{e}",
                )

    def _pull(self, ctx: _OpContext, frm: str, amount: int) -> None:
        self._custody.transfer_in(frm, amount)
        ctx.moves.append(_CustodyMove("in", frm, amount))

    def _push(self, ctx: _OpContext, to: str, amount: int) -> None:
        self._custody.transfer_out(to, amount)
        ctx.moves.append(_CustodyMove("out", to, amount))

    @staticmethod
    def _require_initialized(state: Json) -> Json:
        pool = accrual.ensure_pool(state)
        if not bool(pool.get("initialized")):
            raise ValidationError("invalid_state", "pool_not_initialized", None)
        return pool

    @staticmethod
    def _require_owner(pool: Json, cap: Any) -> str:
        holder = cap.holder if isinstance(cap, AdminCapability) else None
        owner = str(pool.get("owner") or "")
        if not holder or holder != owner:
            raise AuthorizationError("forbidden", "not_owner", {"holder": holder})
        return owner

    # ----------------------------
    # Lifecycle / admin
    # ----------------------------

    def initialize(self, *, owner: str, token: str, reward_rate: int) -> Json:
        """One-shot pool setup. The accrual clock starts now."""
        own = _identity(owner, "owner")
        tok = _identity(token, "token")
        rate = as_uint(reward_rate, "reward_rate")

        def _mut(state: Json, ctx: _OpContext) -> Json:
            pool = accrual.ensure_pool(state)
            if bool(pool.get("initialized")):
                raise ValidationError("invalid_state", "already_initialized", {"owner": pool.get("owner")})
            pool.update(
                {
                    "initialized": True,
                    "owner": own,
                    "token": tok,
                    "reward_rate": rate,
                    "last_update_time": ctx.now,
                }
            )
            ctx.pool_after = dict(pool)
            return {"applied": EVENT_POOL_INITIALIZED, "owner": own, "token": tok, "reward_rate": rate}

        return self._execute("initialize", _mut)

    def set_reward_rate(self, cap: AdminCapability, reward_rate: int) -> Json:
        rate = as_uint(reward_rate, "reward_rate")

        def _mut(state: Json, ctx: _OpContext) -> Json:
            pool = self._require_initialized(state)
            self._require_owner(pool, cap)
            # Everything up to now accrues at the old rate.
            accrual.settle(state, None, ctx.now)
            old = int(pool.get("reward_rate", 0))
            pool["reward_rate"] = rate
            ctx.pool_after = dict(pool)
            return {"applied": EVENT_REWARD_RATE_UPDATED, "old_rate": old, "reward_rate": rate}

        return self._execute("set_reward_rate", _mut)

    def _set_paused(self, cap: AdminCapability, paused: bool) -> Json:
        def _mut(state: Json, ctx: _OpContext) -> Json:
            pool = self._require_initialized(state)
            owner = self._require_owner(pool, cap)
            if bool(pool.get("paused")) == paused:
                raise ValidationError(
                    "invalid_state",
                    "already_paused" if paused else "not_paused",
                    {"paused": bool(pool.get("paused"))},
                )
            pool["paused"] = paused
            ctx.pool_after = dict(pool)
            return {"applied": EVENT_PAUSED if paused else EVENT_UNPAUSED, "by": owner}

        return self._execute("pause" if paused else "unpause", _mut)

    def pause(self, cap: AdminCapability) -> Json:
        """Block new deposits. Withdrawals and claims stay open."""
        return self._set_paused(cap, True)

    def unpause(self, cap: AdminCapability) -> Json:
        return self._set_paused(cap, False)

    def transfer_ownership(self, cap: AdminCapability, new_owner: str) -> Json:
        new = _identity(new_owner, "new_owner")

        def _mut(state: Json, ctx: _OpContext) -> Json:
            pool = self._require_initialized(state)
            prev = self._require_owner(pool, cap)
            pool["owner"] = new
            ctx.pool_after = dict(pool)
            return {"applied": EVENT_OWNERSHIP_TRANSFERRED, "previous_owner": prev, "new_owner": new}

        return self._execute("transfer_ownership", _mut)

    def fund(self, cap: AdminCapability, amount: int) -> Json:
        """Pull reward asset from the owner into the claimable reserve."""
        amt = as_positive(amount, "amount")

        def _mut(state: Json, ctx: _OpContext) -> Json:
            pool = self._require_initialized(state)
            owner = self._require_owner(pool, cap)
            pool["available_rewards"] = checked_add(int(pool.get("available_rewards", 0)), amt)
            ctx.pool_after = dict(pool)
            self._pull(ctx, owner, amt)
            return {
                "applied": EVENT_REWARDS_FUNDED,
                "funder": owner,
                "amount": amt,
                "available_rewards": int(pool["available_rewards"]),
            }

        return self._execute("fund", _mut)

    # ----------------------------
    # Participant operations
    # ----------------------------

    def deposit(self, participant_id: str, amount: int) -> Json:
        pid = _identity(participant_id, "participant_id")
        amt = as_positive(amount, "amount")

        def _mut(state: Json, ctx: _OpContext) -> Json:
            pool = self._require_initialized(state)
            if bool(pool.get("paused")):
                raise AuthorizationError("forbidden", "pool_paused", {"op": "deposit"})
            # Lock in earnings at the pre-deposit share before the stake grows.
            rec = accrual.settle(state, pid, ctx.now)
            assert rec is not None
            pool["total_staked"] = checked_add(int(pool.get("total_staked", 0)), amt)
            rec["staked"] = checked_add(int(rec.get("staked", 0)), amt)
            ctx.pool_after = dict(pool)
            self._pull(ctx, pid, amt)
            return {
                "applied": EVENT_STAKED,
                "participant": pid,
                "amount": amt,
                "staked": int(rec["staked"]),
                "total_staked": int(pool["total_staked"]),
            }

        return self._execute("deposit", _mut, participant_ids=(pid,))

    def withdraw(self, participant_id: str, amount: int) -> Json:
        """Not gated by pause: exit stays open while entry is blocked."""
        pid = _identity(participant_id, "participant_id")
        amt = as_positive(amount, "amount")

        def _mut(state: Json, ctx: _OpContext) -> Json:
            pool = self._require_initialized(state)
            rec = accrual.settle(state, pid, ctx.now)
            assert rec is not None
            staked = int(rec.get("staked", 0))
            if amt > staked:
                raise ValidationError(
                    "invalid_input",
                    "insufficient_stake",
                    {"participant": pid, "staked": staked, "amount": amt},
                )
            pool["total_staked"] = checked_sub(int(pool.get("total_staked", 0)), amt)
            rec["staked"] = checked_sub(staked, amt)
            ctx.pool_after = dict(pool)
            self._push(ctx, pid, amt)
            return {
                "applied": EVENT_WITHDRAWN,
                "participant": pid,
                "amount": amt,
                "staked": int(rec["staked"]),
                "total_staked": int(pool["total_staked"]),
            }

        return self._execute("withdraw", _mut, participant_ids=(pid,))

    def claim(self, participant_id: str) -> Json:
        pid = _identity(participant_id, "participant_id")

        def _mut(state: Json, ctx: _OpContext) -> Json:
            pool = self._require_initialized(state)
            rec = accrual.settle(state, pid, ctx.now)
            assert rec is not None
            reward = int(rec.get("settled_reward", 0))
            if reward <= 0:
                raise ValidationError("invalid_state", "nothing_to_claim", {"participant": pid})
            available = int(pool.get("available_rewards", 0))
            # Accrual is unconditional; payability is only enforced here.
            if reward > available:
                raise ValidationError(
                    "invalid_state",
                    "insufficient_reserve",
                    {"participant": pid, "reward": reward, "available_rewards": available},
                )
            rec["settled_reward"] = 0
            pool["available_rewards"] = checked_sub(available, reward)
            ctx.pool_after = dict(pool)
            self._push(ctx, pid, reward)
            return {
                "applied": EVENT_REWARD_PAID,
                "participant": pid,
                "amount": reward,
                "available_rewards": int(pool["available_rewards"]),
            }

        return self._execute("claim", _mut, participant_ids=(pid,))

    # ----------------------------
    # Read-only views
    # ----------------------------

    def view(self, participant_ids: Iterable[str] = ()) -> PoolView:
        """Consistent snapshot of the last committed state, projected to now."""
        ids = tuple(_identity(p, "participant_id") for p in participant_ids)
        st = self._store.read(participant_ids=ids)
        return PoolView.from_state(st, now=self._now())

    def earned_view(self, participant_id: str) -> int:
        pid = _identity(participant_id, "participant_id")
        return self.view((pid,)).earned_of(pid)

    def staked_of(self, participant_id: str) -> int:
        pid = _identity(participant_id, "participant_id")
        return self.view((pid,)).staked_of(pid)

    @property
    def total_staked(self) -> int:
        return self.view().total_staked

    @property
    def available_rewards(self) -> int:
        return self.view().available_rewards

    @property
    def reward_rate(self) -> int:
        return self.view().reward_rate

    def pool_summary(self) -> Json:
        out = self.view().pool_summary()
        out["pool_id"] = self.pool_id
        return out

    def participant_summary(self, participant_id: str) -> Json:
        pid = _identity(participant_id, "participant_id")
        return self.view((pid,)).participant_summary(pid)

    def iter_participants(self):
        """Full scan of participant records. Audit/reconciliation only."""
        return self._store.iter_participants()
