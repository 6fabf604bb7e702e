"""
Sync Models - per-venue checkpoint and sync pass history
"""
import enum
from sqlalchemy import Column, Integer, String, DateTime, Text
from kiosk.core import Base
from .base import utcnow


class SyncJobType(str, enum.Enum):
    FULL = "FULL"
    INCREMENTAL = "INCREMENTAL"


class SyncJobStatus(str, enum.Enum):
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class VenueSyncState(Base):
    """
    Persisted sync checkpoint for a venue.

    last_sync_at only moves forward, and only after a pass fully succeeds.
    """
    __tablename__ = "venue_sync_state"

    venue_id = Column(String(64), primary_key=True)
    last_sync_at = Column(DateTime)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<VenueSyncState {self.venue_id} last_sync_at={self.last_sync_at}>"


class SyncJob(Base):
    """
    Track sync pass history and status
    """
    __tablename__ = "sync_job"

    id = Column(Integer, primary_key=True, autoincrement=True)
    venue_id = Column(String(64), nullable=False, index=True)

    job_type = Column(String(20), default=SyncJobType.FULL.value)
    started_at = Column(DateTime, default=utcnow)
    finished_at = Column(DateTime)
    status = Column(String(20), default=SyncJobStatus.RUNNING.value)

    # Stats
    pages_fetched = Column(Integer, default=0)
    records_fetched = Column(Integer, default=0)
    total_records = Column(Integer, default=0)

    # Error tracking
    error_message = Column(Text)

    def __repr__(self):
        return f"<SyncJob {self.id} {self.job_type} {self.status}>"

    def mark_success(self):
        self.status = SyncJobStatus.SUCCESS.value
        self.finished_at = utcnow()

    def mark_failed(self, error_message: str):
        self.status = SyncJobStatus.FAILED.value
        self.finished_at = utcnow()
        self.error_message = error_message[:500]

    def mark_cancelled(self):
        self.status = SyncJobStatus.CANCELLED.value
        self.finished_at = utcnow()
