# src/accrual/runtime/pool_config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from accrual.ledger.constants import DEFAULT_POOL_ID, MAX_UINT256

Json = Dict[str, Any]


def _as_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


def _as_bool(v: Any, default: bool) -> bool:
    if v is None:
        return bool(default)
    if isinstance(v, bool):
        return v
    s = str(v).strip().lower()
    if s in {"1", "true", "yes", "y", "on"}:
        return True
    if s in {"0", "false", "no", "n", "off"}:
        return False
    return bool(default)


@dataclass(frozen=True)
class PoolConfig:
    pool_id: str
    mode: str  # "dev" | "testnet" | "prod"

    # SQLite file for pool persistence. Empty -> in-memory store.
    db_path: str

    # Initialization parameters, used when auto_initialize is on and the
    # store holds no pool yet.
    owner: str
    token: str
    reward_rate: int
    auto_initialize: bool

    api_host: str
    api_port: int

    log_level: str


_ALLOWED_MODES = {"dev", "testnet", "prod"}
_ALLOWED_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def validate_pool_config(cfg: PoolConfig) -> None:
    """Fail-fast validation for operator config."""

    if not isinstance(cfg.pool_id, str) or not cfg.pool_id.strip():
        raise ValueError("pool_id must be a non-empty string")

    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise ValueError(f"mode must be one of {_ALLOWED_MODES}; got: {cfg.mode!r}")

    if int(cfg.api_port) <= 0 or int(cfg.api_port) > 65535:
        raise ValueError(f"api_port must be 1..65535; got: {cfg.api_port}")

    if int(cfg.reward_rate) < 0 or int(cfg.reward_rate) > MAX_UINT256:
        raise ValueError(f"reward_rate must be a non-negative uint256; got: {cfg.reward_rate}")

    if str(cfg.log_level or "").strip().upper() not in _ALLOWED_LOG_LEVELS:
        raise ValueError(f"log_level must be one of {_ALLOWED_LOG_LEVELS}; got: {cfg.log_level!r}")

    if cfg.auto_initialize:
        if not cfg.owner.strip():
            raise ValueError("owner must be set when auto_initialize is enabled")
        if not cfg.token.strip():
            raise ValueError("token must be set when auto_initialize is enabled")

    # An in-memory pool loses every balance on restart.
    if mode == "prod" and not str(cfg.db_path or "").strip():
        raise ValueError("db_path is required in prod mode")


def default_pool_config() -> PoolConfig:
    return PoolConfig(
        pool_id=DEFAULT_POOL_ID,
        # Production-safe default: an operator must opt in to dev posture.
        mode="prod",
        db_path="./data/accrual.db",
        owner="",
        token="",
        reward_rate=0,
        auto_initialize=False,
        api_host="127.0.0.1",
        api_port=8080,
        log_level="INFO",
    )


def _merge(base: PoolConfig, raw: Json) -> PoolConfig:
    return PoolConfig(
        pool_id=_as_str(raw.get("pool_id"), base.pool_id),
        mode=_as_str(raw.get("mode"), base.mode).strip().lower(),
        # Explicit empty string selects the in-memory store.
        db_path=str(raw["db_path"]) if raw.get("db_path") is not None else base.db_path,
        owner=_as_str(raw.get("owner"), base.owner),
        token=_as_str(raw.get("token"), base.token),
        reward_rate=_as_int(raw.get("reward_rate"), base.reward_rate),
        auto_initialize=_as_bool(raw.get("auto_initialize"), base.auto_initialize),
        api_host=_as_str(raw.get("api_host"), base.api_host),
        api_port=_as_int(raw.get("api_port"), base.api_port),
        log_level=_as_str(raw.get("log_level"), base.log_level).strip().upper(),
    )


def _read_raw_file(path: str) -> Json:
    p = Path(path)
    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() in {".yaml", ".yml"}:
        raw = yaml.safe_load(text)
    else:
        raw = json.loads(text)
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError("pool config must be a mapping")
    return raw


_ENV_KEYS = {
    "pool_id": "ACCRUAL_POOL_ID",
    "mode": "ACCRUAL_MODE",
    "db_path": "ACCRUAL_DB_PATH",
    "owner": "ACCRUAL_OWNER",
    "token": "ACCRUAL_TOKEN",
    "reward_rate": "ACCRUAL_REWARD_RATE",
    "auto_initialize": "ACCRUAL_AUTO_INITIALIZE",
    "api_host": "ACCRUAL_API_HOST",
    "api_port": "ACCRUAL_API_PORT",
    "log_level": "ACCRUAL_LOG_LEVEL",
}


def _env_overrides() -> Json:
    out: Json = {}
    for field_name, env_name in _ENV_KEYS.items():
        v = os.environ.get(env_name)
        if v is not None:
            out[field_name] = v
    return out


def load_pool_config(*, config_path: Optional[str] = None) -> PoolConfig:
    """Defaults <- config file (JSON or YAML) <- ACCRUAL_* env vars."""
    cfg = default_pool_config()

    p = config_path or os.environ.get("ACCRUAL_POOL_CONFIG")
    if p:
        cfg = _merge(cfg, _read_raw_file(p))

    cfg = _merge(cfg, _env_overrides())
    validate_pool_config(cfg)
    return cfg


def dev_pool_config(**overrides: Any) -> PoolConfig:
    """In-memory dev posture; handy for tests and local experiments."""
    cfg = replace(default_pool_config(), mode="dev", db_path="", **overrides)
    validate_pool_config(cfg)
    return cfg
