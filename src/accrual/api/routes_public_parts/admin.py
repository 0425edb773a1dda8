from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from accrual.api.routes_public_parts.common import _admin_capability, _ledger
from accrual.api.schemas import FundRequest, RewardRateRequest, TransferOwnershipRequest

router = APIRouter()

Json = Dict[str, Any]


@router.post("/admin/fund")
def admin_fund(body: FundRequest, request: Request) -> Json:
    cap = _admin_capability(request)
    return {"ok": True, "receipt": _ledger(request).fund(cap, body.amount)}


@router.post("/admin/reward-rate")
def admin_reward_rate(body: RewardRateRequest, request: Request) -> Json:
    cap = _admin_capability(request)
    return {"ok": True, "receipt": _ledger(request).set_reward_rate(cap, body.reward_rate)}


@router.post("/admin/pause")
def admin_pause(request: Request) -> Json:
    cap = _admin_capability(request)
    return {"ok": True, "receipt": _ledger(request).pause(cap)}


@router.post("/admin/unpause")
def admin_unpause(request: Request) -> Json:
    cap = _admin_capability(request)
    return {"ok": True, "receipt": _ledger(request).unpause(cap)}


@router.post("/admin/transfer-ownership")
def admin_transfer_ownership(body: TransferOwnershipRequest, request: Request) -> Json:
    cap = _admin_capability(request)
    return {"ok": True, "receipt": _ledger(request).transfer_ownership(cap, body.new_owner)}
