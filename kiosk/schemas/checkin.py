"""
Check-in Schemas
"""
from pydantic import BaseModel
from typing import Optional
from datetime import datetime

from kiosk.models.outbox import CheckInMethod

class CheckInCreate(BaseModel):
    name: str
    phone: Optional[str] = None
    method: CheckInMethod = CheckInMethod.WALK_IN
    customer_id: Optional[int] = None  # remote customer id

class CheckInResponse(BaseModel):
    deferred: bool
    message: str
    outbox_id: Optional[int] = None
    queue_id: Optional[int] = None
    error: Optional[str] = None

class OutboxEntryResponse(BaseModel):
    id: int
    name: str
    phone: Optional[str] = None
    method: str
    customer_ref: Optional[int] = None
    venue_id: str
    created_at: datetime
    synced: bool
    attempts: int
    last_error: Optional[str] = None

    class Config:
        from_attributes = True

class ReplayResponse(BaseModel):
    status: str = "success"  # "rejected" while another replay runs
    pending: int = 0
    synced: int = 0
    failed: int = 0
