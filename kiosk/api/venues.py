"""
Venue API - list venues and select the active one
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from kiosk.core.database import get_db
from kiosk.core.exceptions import NotReady
from kiosk.core.venues import get_venue_list, get_venue_by_id
from kiosk.jobs import CustomerSyncScheduler
from kiosk.schemas.venue import VenueResponse, VenueSelect
from kiosk.services import settings_service
from .deps import get_sync_scheduler, current_venue_id

router = APIRouter(prefix="/venues", tags=["venues"])
logger = logging.getLogger(__name__)


def _venue_out(venue) -> VenueResponse:
    return VenueResponse(id=venue.id, name=venue.name, configured=venue.is_configured)


@router.get("", response_model=List[VenueResponse])
async def list_venues():
    return [_venue_out(v) for v in get_venue_list()]


@router.get("/current", response_model=Optional[VenueResponse])
async def current_venue(venue_id: Optional[str] = Depends(current_venue_id)):
    venue = get_venue_by_id(venue_id) if venue_id else None
    return _venue_out(venue) if venue else None


@router.post("/select", response_model=VenueResponse)
async def select_venue(
    data: VenueSelect,
    db: Session = Depends(get_db),
    scheduler: CustomerSyncScheduler = Depends(get_sync_scheduler),
):
    """
    Persist the venue and (re)activate background sync for it.
    Returns immediately; the bootstrap sync runs in the background.
    """
    venue = get_venue_by_id(data.venue_id)
    if not venue:
        raise HTTPException(status_code=404, detail="Invalid venue")

    try:
        scheduler.activate(venue.id)
    except NotReady as e:
        raise HTTPException(status_code=409, detail=str(e))

    settings_service.set_selected_venue(db, venue.id)
    return _venue_out(venue)
