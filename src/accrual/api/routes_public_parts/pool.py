from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from accrual.api.routes_public_parts.common import _ledger
from accrual.api.schemas import ClaimRequest, DepositRequest, WithdrawRequest

router = APIRouter()

Json = Dict[str, Any]


@router.get("/pool")
def pool_get(request: Request) -> Json:
    return {"ok": True, "pool": _ledger(request).pool_summary()}


@router.get("/participants/{participant_id}")
def participant_get(participant_id: str, request: Request) -> Json:
    """Staked amount and projected earned reward. Unknown ids read as zeros."""
    return {"ok": True, "participant": _ledger(request).participant_summary(participant_id)}


@router.post("/pool/deposit")
def pool_deposit(body: DepositRequest, request: Request) -> Json:
    return {"ok": True, "receipt": _ledger(request).deposit(body.participant, body.amount)}


@router.post("/pool/withdraw")
def pool_withdraw(body: WithdrawRequest, request: Request) -> Json:
    return {"ok": True, "receipt": _ledger(request).withdraw(body.participant, body.amount)}


@router.post("/pool/claim")
def pool_claim(body: ClaimRequest, request: Request) -> Json:
    return {"ok": True, "receipt": _ledger(request).claim(body.participant)}
