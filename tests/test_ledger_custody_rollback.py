from __future__ import annotations

from typing import Any, Callable, Iterable

import pytest

from accrual.ledger.constants import MAX_UINT256
from accrual.runtime.custody import AssetCustody, InMemoryCustody
from accrual.runtime.engine import AccrualLedger, AdminCapability
from accrual.runtime.errors import CustodyError, LedgerArithmeticError
from accrual.runtime.memory_store import MemoryPoolStore


class _Clock:
    def __init__(self) -> None:
        self.t = 0

    def __call__(self) -> int:
        return self.t


class _RefusingPayouts(InMemoryCustody):
    def __init__(self, *a: Any, **kw: Any) -> None:
        super().__init__(*a, **kw)
        self.refuse = False

    def transfer_out(self, to: str, amount: int) -> None:
        if self.refuse:
            raise CustodyError("custody_failed", "transfer_rejected", {"to": to})
        super().transfer_out(to, amount)


class _CommitFailsStore(MemoryPoolStore):
    """Runs the mutation, then fails before publishing."""

    def __init__(self) -> None:
        super().__init__()
        self.fail = False

    def update(self, mut: Callable[[Any], Any], *, participant_ids: Iterable[str] = ()) -> Any:
        if not self.fail:
            return super().update(mut, participant_ids=participant_ids)

        def _boom(st: Any) -> Any:
            mut(st)
            raise OSError("disk I/O error")

        return super().update(_boom, participant_ids=participant_ids)


def test_custody_is_a_protocol() -> None:
    assert isinstance(InMemoryCustody(), AssetCustody)


def test_deposit_without_funds_leaves_ledger_untouched() -> None:
    custody = InMemoryCustody({"owner": 0, "alice": 5})
    ledger = AccrualLedger(store=MemoryPoolStore(), custody=custody, clock=_Clock())
    ledger.initialize(owner="owner", token="RWD", reward_rate=1)
    before = ledger.pool_summary()

    with pytest.raises(CustodyError) as e:
        ledger.deposit("alice", 6)
    assert e.value.reason == "insufficient_balance"

    assert ledger.pool_summary() == before
    assert ledger.staked_of("alice") == 0
    assert [pid for pid, _ in ledger.iter_participants()] == []
    assert custody.balance_of("alice") == 5


def test_failed_payout_rolls_back_withdraw_and_claim() -> None:
    clock = _Clock()
    custody = _RefusingPayouts({"owner": 100, "alice": 100})
    ledger = AccrualLedger(store=MemoryPoolStore(), custody=custody, clock=clock)
    ledger.initialize(owner="owner", token="RWD", reward_rate=1)
    ledger.fund(AdminCapability("owner"), 100)
    ledger.deposit("alice", 100)
    clock.t = 10
    custody.refuse = True

    with pytest.raises(CustodyError):
        ledger.withdraw("alice", 40)
    with pytest.raises(CustodyError):
        ledger.claim("alice")

    s = ledger.participant_summary("alice")
    assert s["staked"] == 100
    assert s["settled_reward"] == 0
    assert s["earned"] == 10
    assert ledger.total_staked == 100
    assert ledger.available_rewards == 100

    custody.refuse = False
    assert ledger.claim("alice")["amount"] == 10


def test_commit_failure_after_custody_is_compensated() -> None:
    store = _CommitFailsStore()
    custody = InMemoryCustody({"owner": 0, "alice": 50})
    ledger = AccrualLedger(store=store, custody=custody, clock=_Clock())
    ledger.initialize(owner="owner", token="RWD", reward_rate=1)

    store.fail = True
    with pytest.raises(OSError):
        ledger.deposit("alice", 20)

    # Pulled funds were returned and nothing was recorded.
    assert custody.balance_of("alice") == 50
    assert custody.held == 0
    store.fail = False
    assert ledger.total_staked == 0


def test_total_stake_overflow_is_hard_failure() -> None:
    custody = InMemoryCustody({"owner": 0, "alice": MAX_UINT256, "bob": 1})
    ledger = AccrualLedger(store=MemoryPoolStore(), custody=custody, clock=_Clock())
    ledger.initialize(owner="owner", token="RWD", reward_rate=0)
    ledger.deposit("alice", MAX_UINT256)

    with pytest.raises(LedgerArithmeticError):
        ledger.deposit("bob", 1)
    assert ledger.total_staked == MAX_UINT256
    assert ledger.staked_of("bob") == 0
    assert custody.balance_of("bob") == 1


def test_accumulator_overflow_surfaces_instead_of_wrapping() -> None:
    clock = _Clock()
    custody = InMemoryCustody({"owner": 0, "alice": 1})
    ledger = AccrualLedger(store=MemoryPoolStore(), custody=custody, clock=clock)
    ledger.initialize(owner="owner", token="RWD", reward_rate=MAX_UINT256)
    ledger.deposit("alice", 1)
    clock.t = 2

    with pytest.raises(LedgerArithmeticError):
        ledger.earned_view("alice")
    with pytest.raises(LedgerArithmeticError):
        ledger.claim("alice")
    assert ledger.staked_of("alice") == 1
