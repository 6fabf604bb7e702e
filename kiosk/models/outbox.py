"""
Offline Queue Model - check-ins waiting for confirmed delivery
"""
import enum
import uuid

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, Index
from kiosk.core import Base
from .base import utcnow


class CheckInMethod(str, enum.Enum):
    PHONE = "phone"
    GUEST = "guest"
    ID_SCAN = "id_scan"
    APP = "app"
    WALK_IN = "walk_in"
    QR = "qr"


def new_idempotency_key() -> str:
    return uuid.uuid4().hex


class OutboxEntry(Base):
    """
    Pending check-in not yet confirmed by the remote directory.

    Only `synced` (and the failure bookkeeping columns) ever change after
    insert; rows are replayed oldest first.
    """
    __tablename__ = "offline_queue"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    phone = Column(String(30))
    method = Column(String(20), nullable=False, default=CheckInMethod.WALK_IN.value)
    customer_ref = Column(Integer)  # CustomerRecord.remote_id
    venue_id = Column(String(64), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    # Sent as Idempotency-Key so a remote that honors it drops resubmissions
    idempotency_key = Column(String(64), nullable=False, default=new_idempotency_key, unique=True)

    synced = Column(Boolean, nullable=False, default=False)
    synced_at = Column(DateTime)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text)

    __table_args__ = (
        Index("idx_offline_queue_pending", "venue_id", "synced", "created_at"),
    )

    def __repr__(self):
        return f"<OutboxEntry {self.id} {self.venue_id} synced={self.synced}>"
