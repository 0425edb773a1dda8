from __future__ import annotations

import json
import logging
import os
from pathlib import Path

import pytest

import accrual.env as env_mod
from accrual.runtime import metrics
from accrual.runtime.custody import InMemoryCustody
from accrual.runtime.engine import AccrualLedger
from accrual.runtime.errors import ValidationError
from accrual.runtime.ledger_logging import configure_structured_logging, log_event
from accrual.runtime.memory_store import MemoryPoolStore


def _events(caplog: pytest.LogCaptureFixture) -> list[dict]:
    out = []
    for rec in caplog.records:
        if rec.name == "accrual.ledger":
            out.append(json.loads(rec.getMessage()))
    return out


def test_applied_and_rejected_operations_are_logged(caplog: pytest.LogCaptureFixture) -> None:
    ledger = AccrualLedger(store=MemoryPoolStore(), custody=InMemoryCustody({"alice": 10}), clock=lambda: 0)
    with caplog.at_level(logging.INFO, logger="accrual.ledger"):
        ledger.initialize(owner="owner", token="RWD", reward_rate=1)
        ledger.deposit("alice", 10)
        with pytest.raises(ValidationError):
            ledger.withdraw("alice", 11)

    evs = _events(caplog)
    names = [e["event"] for e in evs]
    assert names == ["pool_initialized", "staked", "ledger_rejected"]
    staked = evs[1]
    assert staked["participant"] == "alice"
    assert staked["amount"] == 10
    assert staked["pool_id"] == "default"
    assert evs[2]["reason"] == "insufficient_stake"
    assert evs[2]["op"] == "withdraw"


def test_outcome_counters() -> None:
    metrics.reset()
    ledger = AccrualLedger(store=MemoryPoolStore(), custody=InMemoryCustody({"alice": 10}), clock=lambda: 0)
    ledger.initialize(owner="owner", token="RWD", reward_rate=1)
    ledger.deposit("alice", 4)
    with pytest.raises(ValidationError):
        ledger.claim("alice")

    snap = metrics.snapshot()
    assert snap["ops"]["deposit"] == {"ok": 1}
    assert snap["ops"]["claim"] == {"rejected": 1}
    assert snap["pools"]["default"] == {"total_staked": 4, "available_rewards": 0, "reward_rate": 1}


def test_wide_pool_totals_stay_exact_in_snapshot() -> None:
    metrics.reset()
    metrics.observe_pool("whales", total_staked=2**200, available_rewards=7, bogus=1)
    assert metrics.snapshot()["pools"]["whales"] == {"total_staked": 2**200, "available_rewards": 7}

    lines = {ln.split(" ")[0]: ln.split(" ")[1] for ln in metrics.format_prometheus().splitlines() if not ln.startswith("#")}
    assert float(lines['accrual_pool_total_staked{pool_id="whales"}']) == float(2**200)
    assert lines['accrual_pool_available_rewards{pool_id="whales"}'] == "7"


def test_unknown_outcome_is_rejected() -> None:
    with pytest.raises(ValueError):
        metrics.record_op("deposit", "maybe")


def test_log_event_is_single_json_line(caplog: pytest.LogCaptureFixture) -> None:
    lg = logging.getLogger("accrual.test")
    with caplog.at_level(logging.INFO, logger="accrual.test"):
        log_event(lg, "hello", n=1, s="x")
    payload = json.loads(caplog.records[-1].getMessage())
    assert payload["event"] == "hello"
    assert payload["n"] == 1
    assert "ts_ms" in payload


def test_configure_structured_logging_is_idempotent() -> None:
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    saved_flag = getattr(root, "_accrual_configured", None)
    try:
        if hasattr(root, "_accrual_configured"):
            delattr(root, "_accrual_configured")
        configure_structured_logging("warning")
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
        configure_structured_logging("debug")
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
    finally:
        root.handlers = saved_handlers
        root.setLevel(saved_level)
        if saved_flag is None:
            if hasattr(root, "_accrual_configured"):
                delattr(root, "_accrual_configured")
        else:
            setattr(root, "_accrual_configured", saved_flag)


def test_dotenv_never_overrides_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    p = tmp_path / ".env"
    p.write_text("ACCRUAL_OWNER=from_file\nACCRUAL_TOKEN=FILE\n", encoding="utf-8")
    monkeypatch.setattr(env_mod, "_LOADED", False)
    monkeypatch.setenv("ACCRUAL_OWNER", "from_env")

    try:
        assert env_mod.load_dotenv_if_present(str(p)) is True
        assert os.environ["ACCRUAL_OWNER"] == "from_env"
        assert os.environ["ACCRUAL_TOKEN"] == "FILE"

        # Second call is a no-op.
        assert env_mod.load_dotenv_if_present(str(p)) is False
    finally:
        os.environ.pop("ACCRUAL_TOKEN", None)


def test_dotenv_missing_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(env_mod, "_LOADED", False)
    assert env_mod.load_dotenv_if_present(str(tmp_path / "absent.env")) is False
