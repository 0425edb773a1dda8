from __future__ import annotations

"""Pydantic request schemas for the pool API.

Amounts are strict integers in the asset's smallest unit: no strings, no
floats, no bools. Range checks stay in the ledger so HTTP and in-process
callers get the same errors.
"""

from pydantic import BaseModel, Field, StrictInt


class DepositRequest(BaseModel):
    participant: str = Field(..., description="Participant identity, e.g. an account id")
    amount: StrictInt = Field(..., description="Amount to stake (smallest unit)")


class WithdrawRequest(BaseModel):
    participant: str = Field(..., description="Participant identity")
    amount: StrictInt = Field(..., description="Amount to unstake (smallest unit)")


class ClaimRequest(BaseModel):
    participant: str = Field(..., description="Participant identity")


class FundRequest(BaseModel):
    amount: StrictInt = Field(..., description="Reward asset to add to the reserve")


class RewardRateRequest(BaseModel):
    reward_rate: StrictInt = Field(..., description="Reward units per second")


class TransferOwnershipRequest(BaseModel):
    new_owner: str = Field(..., description="Identity of the next pool owner")
