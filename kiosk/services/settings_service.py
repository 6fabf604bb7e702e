"""
Settings Service - selected venue and per-venue sync checkpoints
"""
from datetime import datetime
from typing import Optional
import logging

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from kiosk.core.exceptions import PersistenceFailure
from kiosk.models.setting import KioskSetting, SELECTED_VENUE_KEY
from kiosk.models.sync import VenueSyncState

logger = logging.getLogger(__name__)


def get_setting(db: Session, key: str) -> Optional[str]:
    row = db.query(KioskSetting).filter(KioskSetting.key == key).first()
    return row.value if row else None


def set_setting(db: Session, key: str, value: Optional[str]) -> None:
    try:
        db.merge(KioskSetting(key=key, value=value))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceFailure(f"Saving setting {key} failed: {e}") from e


def get_selected_venue(db: Session) -> Optional[str]:
    return get_setting(db, SELECTED_VENUE_KEY)


def set_selected_venue(db: Session, venue_id: str) -> None:
    set_setting(db, SELECTED_VENUE_KEY, venue_id)
    logger.info(f"Selected venue: {venue_id}")


def get_last_sync(db: Session, venue_id: str) -> Optional[datetime]:
    state = db.query(VenueSyncState).filter(VenueSyncState.venue_id == venue_id).first()
    return state.last_sync_at if state else None


def advance_last_sync(db: Session, venue_id: str, synced_at: datetime) -> datetime:
    """
    Move the venue checkpoint forward. An older timestamp never replaces a
    newer one; returns the checkpoint now stored.
    """
    try:
        state = db.query(VenueSyncState).filter(VenueSyncState.venue_id == venue_id).first()
        if state is None:
            state = VenueSyncState(venue_id=venue_id)
            db.add(state)
        if state.last_sync_at is None or synced_at > state.last_sync_at:
            state.last_sync_at = synced_at
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceFailure(f"Saving sync checkpoint for {venue_id} failed: {e}") from e

    return state.last_sync_at


def reset_last_sync(db: Session, venue_id: str) -> None:
    """Forget the checkpoint so the next pass is a full sync"""
    try:
        db.query(VenueSyncState).filter(VenueSyncState.venue_id == venue_id).delete(synchronize_session=False)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceFailure(f"Resetting sync checkpoint for {venue_id} failed: {e}") from e
