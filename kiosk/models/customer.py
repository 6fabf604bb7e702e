"""
Customer Models - local mirror of the remote customer directory
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Index
from kiosk.core import Base
from .base import utcnow


class CustomerRecord(Base):
    """
    One remote customer as seen by one venue.

    Rows are only ever replaced whole (last write wins); see
    customer_cache.upsert_batch.
    """
    __tablename__ = "customers"

    remote_id = Column(Integer, primary_key=True, autoincrement=False)
    venue_id = Column(String(64), primary_key=True)

    first_name = Column(String(200), nullable=False, default="")
    last_name = Column(String(200), nullable=False, default="")
    phone = Column(String(20))  # trailing 10 digits only
    email = Column(String(200))
    loyalty_member = Column(Boolean, nullable=False, default=False)

    synced_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_customers_phone", "phone"),
        Index("idx_customers_venue", "venue_id"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self):
        return f"<CustomerRecord {self.venue_id}:{self.remote_id}>"
