"""
Check-in API - queue a customer, with offline fallback
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List, Dict, Any
import logging

from kiosk.core.database import get_db
from kiosk.core.exceptions import ConcurrencyRejected, NotReady, TransientRemoteError, PersistenceFailure
from kiosk.jobs import CustomerSyncScheduler
from kiosk.schemas.checkin import CheckInCreate, CheckInResponse, OutboxEntryResponse, ReplayResponse
from kiosk.services import customer_cache, checkin_service
from kiosk.services.checkin_service import CheckInRequest
from .deps import get_sync_scheduler, require_venue_id

router = APIRouter(tags=["checkins"])
logger = logging.getLogger(__name__)


@router.post("/checkins", response_model=CheckInResponse)
async def check_in(
    data: CheckInCreate,
    db: Session = Depends(get_db),
    venue_id: str = Depends(require_venue_id),
    scheduler: CustomerSyncScheduler = Depends(get_sync_scheduler),
):
    """
    Add a customer to the venue queue. When the remote is unreachable the
    check-in is stored offline and reported as deferred.
    """
    request = CheckInRequest(
        name=data.name,
        phone=data.phone,
        method=data.method.value,
        customer_ref=data.customer_id,
    )
    try:
        result = await checkin_service.submit_check_in(db, scheduler.client, request, venue_id)
    except PersistenceFailure as e:
        raise HTTPException(status_code=500, detail=str(e))

    return CheckInResponse(
        deferred=result.deferred,
        message=result.message,
        outbox_id=result.outbox_id,
        queue_id=result.receipt.queue_id if result.receipt else None,
        error=result.error,
    )


@router.get("/checkins/pending", response_model=List[OutboxEntryResponse])
async def pending_checkins(
    db: Session = Depends(get_db),
    venue_id: str = Depends(require_venue_id),
):
    return customer_cache.list_unsynced_outbox(db, venue_id)


@router.post("/checkins/replay", response_model=ReplayResponse)
async def replay_checkins(
    db: Session = Depends(get_db),
    venue_id: str = Depends(require_venue_id),
    scheduler: CustomerSyncScheduler = Depends(get_sync_scheduler),
):
    try:
        stats = await checkin_service.replay_outbox(db, scheduler.client, venue_id)
    except NotReady as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ConcurrencyRejected as e:
        logger.info(f"Replay request ignored: {e}")
        return ReplayResponse(status="rejected")
    return ReplayResponse(**stats)


@router.get("/queue")
async def get_queue(
    venue_id: str = Depends(require_venue_id),
    scheduler: CustomerSyncScheduler = Depends(get_sync_scheduler),
) -> Dict[str, Any]:
    """Current remote queue for the TV display"""
    if scheduler.client is None:
        raise HTTPException(status_code=409, detail="No venue selected")
    try:
        items = await scheduler.client.get_queue()
    except TransientRemoteError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"venue_id": venue_id, "total_records": len(items), "customer_queues": items}
