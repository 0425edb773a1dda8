from __future__ import annotations

import json
from pathlib import Path

import pytest

from accrual.runtime.pool_config import dev_pool_config, load_pool_config


def test_defaults_are_production_posture() -> None:
    cfg = load_pool_config()
    assert cfg.mode == "prod"
    assert cfg.db_path == "./data/accrual.db"
    assert cfg.pool_id == "default"
    assert cfg.api_port == 8080
    assert cfg.auto_initialize is False


def test_yaml_file_then_env_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    p = tmp_path / "pool.yaml"
    p.write_text(
        "pool_id: staking-main\n"
        "mode: testnet\n"
        "db_path: ''\n"
        "owner: treasury\n"
        "token: RWD\n"
        "reward_rate: 1000000000000000000\n"
        "auto_initialize: true\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("ACCRUAL_POOL_CONFIG", str(p))
    monkeypatch.setenv("ACCRUAL_API_PORT", "9100")
    monkeypatch.setenv("ACCRUAL_LOG_LEVEL", "debug")

    cfg = load_pool_config()
    assert cfg.pool_id == "staking-main"
    assert cfg.mode == "testnet"
    assert cfg.db_path == ""
    assert cfg.owner == "treasury"
    assert cfg.reward_rate == 10**18
    assert cfg.auto_initialize is True
    assert cfg.api_port == 9100
    assert cfg.log_level == "DEBUG"


def test_json_file_by_explicit_path(tmp_path: Path) -> None:
    p = tmp_path / "pool.json"
    p.write_text(json.dumps({"mode": "dev", "db_path": str(tmp_path / "x.db"), "reward_rate": 5}), encoding="utf-8")
    cfg = load_pool_config(config_path=str(p))
    assert cfg.mode == "dev"
    assert cfg.db_path.endswith("x.db")
    assert cfg.reward_rate == 5


def test_non_mapping_file_is_rejected(tmp_path: Path) -> None:
    p = tmp_path / "pool.yaml"
    p.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_pool_config(config_path=str(p))


@pytest.mark.parametrize(
    "env",
    [
        {"ACCRUAL_MODE": "staging"},
        {"ACCRUAL_API_PORT": "70000"},
        {"ACCRUAL_LOG_LEVEL": "LOUD"},
        {"ACCRUAL_REWARD_RATE": "-1"},
        {"ACCRUAL_AUTO_INITIALIZE": "1", "ACCRUAL_TOKEN": "RWD"},
        {"ACCRUAL_MODE": "prod", "ACCRUAL_DB_PATH": ""},
    ],
)
def test_invalid_config_fails_fast(env: dict, monkeypatch: pytest.MonkeyPatch) -> None:
    for k, v in env.items():
        monkeypatch.setenv(k, v)
    with pytest.raises(ValueError):
        load_pool_config()


def test_dev_pool_config_is_in_memory() -> None:
    cfg = dev_pool_config(owner="o", token="T", reward_rate=2, auto_initialize=True)
    assert cfg.mode == "dev"
    assert cfg.db_path == ""
    assert cfg.reward_rate == 2
