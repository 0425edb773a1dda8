from __future__ import annotations

from fastapi import APIRouter, Request, Response

from accrual.runtime.metrics import format_prometheus, metrics_enabled, observe_pool

router = APIRouter()


@router.get("/metrics")
def metrics(request: Request) -> Response:
    """Prometheus text: ledger call outcomes plus current pool totals.

    404 unless ACCRUAL_METRICS_ENABLED is set.
    """
    if not metrics_enabled():
        return Response(status_code=404, content="not_found\n", media_type="text/plain")

    # Pool totals come from the store, so they are right even before the
    # first write after a restart.
    ledger = getattr(request.app.state, "ledger", None)
    if ledger is not None:
        v = ledger.view()
        observe_pool(
            ledger.pool_id,
            total_staked=v.total_staked,
            available_rewards=v.available_rewards,
            reward_rate=v.reward_rate,
        )
    return Response(content=format_prometheus(), media_type="text/plain; version=0.0.4")
