"""Pydantic schemas for activity log responses."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class ActivityEntryResponse(BaseModel):
    id: str
    device_id: str
    type: str
    description: str
    amount: int
    timestamp: datetime
    sequence: int
    prev_hash: Optional[str] = None
    entry_hash: str

    model_config = {"from_attributes": True}
