"""Pydantic schemas for ledger endpoints."""

from typing import Optional

from pydantic import BaseModel


class BalanceAdjustRequest(BaseModel):
    amount: int
    reason: str = ""
    idempotency_key: Optional[str] = None


class BalanceAdjustResponse(BaseModel):
    success: bool = True
    device_id: str
    new_balance: int


class VpnTimeAdjustRequest(BaseModel):
    mode: str
    minutes: int
    reason: str = ""
    idempotency_key: Optional[str] = None


class VpnTimeAdjustResponse(BaseModel):
    success: bool = True
    device_id: str
    new_vpn_seconds: int


class AdRewardRequest(BaseModel):
    device_id: str
    ad_type: Optional[str] = None


class AdRewardResponse(BaseModel):
    success: bool = True
    new_balance: int
    points_earned: int
    message: str


class LedgerVerification(BaseModel):
    device_id: str
    valid: bool
    chain_valid: bool
    balanced: bool
    entries_checked: int
    break_at: Optional[str] = None
    balance: int
    ledger_total: int
