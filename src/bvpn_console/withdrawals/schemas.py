"""Pydantic schemas for withdrawal endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class WithdrawalResponse(BaseModel):
    id: str
    device_id: str
    points: int
    amount: int
    currency: str
    method: str
    account_number: str
    account_name: str
    status: str
    transaction_id: Optional[str] = None
    receipt_reference: Optional[str] = None
    rejection_reason: Optional[str] = None
    processed_by: Optional[str] = None
    created_at: datetime
    processed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ProcessWithdrawalRequest(BaseModel):
    action: str
    receipt_reference: Optional[str] = None
    rejection_reason: Optional[str] = None


class SubmitWithdrawalRequest(BaseModel):
    device_id: str
    amount: int
    method: str
    account_number: str
    account_name: str
    currency: str = "MMK"


class SubmitWithdrawalResponse(BaseModel):
    success: bool = True
    withdrawal_id: str
    points_deducted: int
    new_balance: int
    message: str = "Withdrawal request submitted successfully"


class CancelWithdrawalRequest(BaseModel):
    device_id: str


class CancelWithdrawalResponse(BaseModel):
    success: bool = True
    withdrawal_id: str
    points_refunded: int
    new_balance: int
    message: str = "Withdrawal cancelled and refunded"
