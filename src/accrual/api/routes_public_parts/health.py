from __future__ import annotations

import time

from fastapi import APIRouter, Request

router = APIRouter()


def _health_payload(request: Request) -> dict[str, object]:
    # health must never crash; best-effort telemetry only
    ledger = getattr(request.app.state, "ledger", None)
    pool_id = None
    initialized = None
    paused = None
    if ledger is not None:
        pool_id = ledger.pool_id
        try:
            v = ledger.view()
            initialized = v.initialized
            paused = v.paused
        except Exception:
            initialized = None
            paused = None

    return {
        "ok": ledger is not None,
        "service": "accrual-ledger",
        "version": "v1",
        "ts_ms": int(time.time() * 1000),
        "pool_id": pool_id,
        "initialized": initialized,
        "paused": paused,
    }


@router.get("/health")
def health(request: Request) -> dict[str, object]:
    return _health_payload(request)
