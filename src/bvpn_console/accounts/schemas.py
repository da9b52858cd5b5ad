"""Pydantic schemas for account and device endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class AccountResponse(BaseModel):
    id: str
    balance: int
    vpn_remaining_seconds: int
    status: str
    effective_status: str
    last_seen: Optional[datetime] = None
    data_usage: int
    device_model: str = ""
    app_version: str = ""
    platform: str = ""
    country: str = ""
    ip_address: str = ""
    ban_reason: Optional[str] = None
    banned_at: Optional[datetime] = None
    created_at: datetime


class BanRequest(BaseModel):
    reason: Optional[str] = None


class CheckInRequest(BaseModel):
    device_id: str
    device_model: str
    app_version: str = ""
    platform: str = ""


class CheckInResponse(BaseModel):
    success: bool = True
    is_new_device: bool
    message: str


class StatusReport(BaseModel):
    device_id: str
    status: str
    ip_address: Optional[str] = None
    country: Optional[str] = None


class DataUsageReport(BaseModel):
    device_id: str
    bytes_used: int = Field(..., ge=0)


class DataUsageResponse(BaseModel):
    success: bool = True
    data_usage: int


class StatsResponse(BaseModel):
    total_accounts: int
    online: int
    vpn_connected: int
    offline: int
    banned: int
    pending_withdrawals: int
    total_pending_points: int
