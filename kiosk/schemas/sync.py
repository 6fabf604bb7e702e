"""
Sync Schemas
"""
from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime

from .customer import CustomerResponse

class SyncProgressOut(BaseModel):
    current: int
    total: int

class SyncStatusResponse(BaseModel):
    venue_id: Optional[str] = None
    is_syncing: bool = False
    phase: str = "IDLE"
    progress: Optional[SyncProgressOut] = None
    customer_count: int = 0
    last_sync: Optional[datetime] = None
    pending_checkins: int = 0

class SyncRunResponse(BaseModel):
    status: str
    type: Optional[str] = None
    pages: int = 0
    fetched: int = 0
    total: int = 0
    error: Optional[str] = None

class SyncJobItem(BaseModel):
    id: int
    job_type: str
    status: str
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    pages_fetched: int
    records_fetched: int
    total_records: int
    error_message: Optional[str] = None

    class Config:
        from_attributes = True

class DbInfoResponse(BaseModel):
    total_customers: int
    customers_with_phone: int
    venue_ids_in_db: List[str]
    selected_venue: Optional[str] = None
    sample_customers: List[CustomerResponse] = []
