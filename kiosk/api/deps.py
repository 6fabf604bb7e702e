"""
Shared API dependencies
"""
from typing import Optional

from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from kiosk.core.database import get_db
from kiosk.jobs import CustomerSyncScheduler, get_scheduler
from kiosk.services import settings_service


def get_sync_scheduler() -> CustomerSyncScheduler:
    return get_scheduler()


def current_venue_id(
    db: Session = Depends(get_db),
    scheduler: CustomerSyncScheduler = Depends(get_sync_scheduler),
) -> Optional[str]:
    """Active venue, falling back to the persisted selection"""
    return scheduler.venue_id or settings_service.get_selected_venue(db)


def require_venue_id(venue_id: Optional[str] = Depends(current_venue_id)) -> str:
    if not venue_id:
        raise HTTPException(status_code=409, detail="No venue selected")
    return venue_id
