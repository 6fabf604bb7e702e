"""
Kiosk Settings - small persisted key/value store
"""
from sqlalchemy import Column, String, Text, DateTime
from kiosk.core import Base
from .base import utcnow


class KioskSetting(Base):
    __tablename__ = "kiosk_setting"

    key = Column(String(100), primary_key=True)
    value = Column(Text)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


SELECTED_VENUE_KEY = "selected_venue_id"
