# src/accrual/runtime/engine_boot.py

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from accrual.runtime.custody import AssetCustody, InMemoryCustody
from accrual.runtime.engine import AccrualLedger
from accrual.runtime.ledger_logging import log_event
from accrual.runtime.memory_store import MemoryPoolStore
from accrual.runtime.pool_config import PoolConfig, load_pool_config
from accrual.runtime.sqlite_db import SqliteDB, SqlitePoolStore

log = logging.getLogger("accrual.boot")


def build_store(cfg: PoolConfig) -> Any:
    path = str(cfg.db_path or "").strip()
    if not path:
        return MemoryPoolStore()
    return SqlitePoolStore(db=SqliteDB(path=path), pool_id=cfg.pool_id)


def build_custody(cfg: PoolConfig, custody: Optional[AssetCustody] = None) -> AssetCustody:
    """Resolve the custody backend a booted ledger will move assets through.

    Without an explicit backend, dev/testnet get a fresh InMemoryCustody.
    prod refuses InMemoryCustody outright: its balances live only in this
    process, while the pool store keeps stakes across restarts.
    """
    chosen: Any = custody if custody is not None else InMemoryCustody()
    if not isinstance(chosen, AssetCustody):
        raise TypeError(f"custody backend must implement transfer_in/transfer_out; got {type(chosen).__name__}")
    if str(cfg.mode).strip().lower() == "prod" and isinstance(chosen, InMemoryCustody):
        raise RuntimeError(
            "prod mode requires an external custody backend; "
            "pass custody= to build_ledger() or create_app()"
        )
    return chosen


def build_ledger(
    cfg: Optional[PoolConfig] = None,
    *,
    custody: Optional[AssetCustody] = None,
    clock: Optional[Callable[[], int]] = None,
) -> AccrualLedger:
    """
    Build an AccrualLedger from an explicit config or, if omitted, from
    ACCRUAL_POOL_CONFIG / ACCRUAL_* environment variables.

    With auto_initialize on and no pool in the store yet, the pool is
    initialized from cfg.owner / cfg.token / cfg.reward_rate.
    """
    c = cfg or load_pool_config()
    backend = build_custody(c, custody)
    store = build_store(c)
    ledger = AccrualLedger(store=store, custody=backend, clock=clock, pool_id=c.pool_id)

    # Only initialize commits a pool record into an empty store.
    if c.auto_initialize and not store.exists():
        ledger.initialize(owner=c.owner, token=c.token, reward_rate=c.reward_rate)

    log_event(
        log,
        "ledger_boot",
        pool_id=c.pool_id,
        mode=c.mode,
        store=type(store).__name__,
        custody=type(backend).__name__,
        initialized=ledger.view().initialized,
    )
    return ledger
