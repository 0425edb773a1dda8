from __future__ import annotations

import pytest

from accrual.runtime.custody import InMemoryCustody
from accrual.runtime.engine import AccrualLedger, AdminCapability
from accrual.runtime.errors import AuthorizationError
from accrual.runtime.memory_store import MemoryPoolStore


def _mk_ledger() -> tuple[AccrualLedger, InMemoryCustody]:
    custody = InMemoryCustody({"owner": 1000, "mallory": 1000})
    ledger = AccrualLedger(store=MemoryPoolStore(), custody=custody, clock=lambda: 0)
    ledger.initialize(owner="owner", token="RWD", reward_rate=1)
    return ledger, custody


@pytest.mark.parametrize(
    "call",
    [
        lambda led, cap: led.fund(cap, 10),
        lambda led, cap: led.set_reward_rate(cap, 99),
        lambda led, cap: led.pause(cap),
        lambda led, cap: led.transfer_ownership(cap, "mallory"),
    ],
)
def test_admin_calls_reject_non_owner(call) -> None:
    ledger, custody = _mk_ledger()
    before = ledger.pool_summary()

    with pytest.raises(AuthorizationError) as e:
        call(ledger, AdminCapability("mallory"))
    assert e.value.code == "forbidden"
    assert e.value.reason == "not_owner"

    assert ledger.pool_summary() == before
    assert custody.balance_of("mallory") == 1000


def test_admin_calls_reject_missing_capability() -> None:
    ledger, _custody = _mk_ledger()
    with pytest.raises(AuthorizationError):
        ledger.fund(None, 10)  # type: ignore[arg-type]
    with pytest.raises(AuthorizationError):
        ledger.pause("owner")  # type: ignore[arg-type]


def test_transfer_ownership_moves_admin_rights() -> None:
    ledger, custody = _mk_ledger()
    r = ledger.transfer_ownership(AdminCapability("owner"), "treasury")
    assert r == {"applied": "OWNERSHIP_TRANSFERRED", "previous_owner": "owner", "new_owner": "treasury"}
    assert ledger.view().owner == "treasury"

    with pytest.raises(AuthorizationError):
        ledger.pause(AdminCapability("owner"))

    custody.mint("treasury", 50)
    assert ledger.fund(AdminCapability("treasury"), 50)["funder"] == "treasury"
    assert ledger.available_rewards == 50


def test_fund_pulls_from_owner_balance() -> None:
    ledger, custody = _mk_ledger()
    ledger.fund(AdminCapability("owner"), 400)
    assert custody.balance_of("owner") == 600
    assert custody.held == 400
    assert ledger.available_rewards == 400
