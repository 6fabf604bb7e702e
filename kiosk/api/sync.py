"""
Sync API - status, forced full sync, history and progress events
"""
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from typing import List, Optional
import asyncio
import json
import logging

from kiosk.core.database import get_db
from kiosk.core.exceptions import NotReady
from kiosk.jobs import CustomerSyncScheduler
from kiosk.schemas.sync import SyncStatusResponse, SyncRunResponse, SyncJobItem, DbInfoResponse
from kiosk.schemas.customer import LookupResponse, CustomerResponse
from kiosk.services import customer_cache, settings_service, sync_service
from .deps import get_sync_scheduler, current_venue_id, require_venue_id

router = APIRouter(prefix="/sync", tags=["sync"])
logger = logging.getLogger(__name__)

# Keep-alive comment interval for the event stream
EVENT_STREAM_PING_SECONDS = 15.0


@router.get("/status", response_model=SyncStatusResponse)
async def get_sync_status(
    db: Session = Depends(get_db),
    venue_id: Optional[str] = Depends(current_venue_id),
    scheduler: CustomerSyncScheduler = Depends(get_sync_scheduler),
):
    if not venue_id:
        return SyncStatusResponse()

    engine = scheduler.engine if scheduler.venue_id == venue_id else None
    if engine is not None:
        status = engine.status()
    else:
        status = {
            "venue_id": venue_id,
            "customer_count": customer_cache.count_by_venue(db, venue_id),
            "last_sync": settings_service.get_last_sync(db, venue_id),
        }

    status["pending_checkins"] = customer_cache.count_outbox(db, venue_id, synced=False)
    return SyncStatusResponse(**status)


def _require_engine(scheduler: CustomerSyncScheduler):
    if scheduler.engine is None:
        raise HTTPException(status_code=409, detail="No venue selected")
    return scheduler.engine


@router.post("/force", response_model=SyncRunResponse)
async def force_sync(
    background: bool = Query(False),
    scheduler: CustomerSyncScheduler = Depends(get_sync_scheduler),
):
    """
    Run a full sync. Ignored (status "rejected") while another pass runs.
    With background=true the pass is queued and the call returns at once.
    """
    engine = _require_engine(scheduler)

    if background:
        try:
            scheduler.trigger_sync_now()
        except NotReady as e:
            raise HTTPException(status_code=409, detail=str(e))
        return SyncRunResponse(status="queued", type="FULL")

    return SyncRunResponse(**await engine.force_full_sync())


@router.post("/reimport", response_model=SyncRunResponse)
async def reimport_venue(scheduler: CustomerSyncScheduler = Depends(get_sync_scheduler)):
    """Drop the venue's cached customers and checkpoint, then run a full sync"""
    engine = _require_engine(scheduler)
    return SyncRunResponse(**await engine.full_sync(clear_first=True))


@router.get("/history", response_model=List[SyncJobItem])
async def sync_history(
    limit: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
    venue_id: str = Depends(require_venue_id),
):
    return sync_service.get_recent_jobs(db, venue_id, limit)


@router.get("/events")
async def sync_events(
    request: Request,
    scheduler: CustomerSyncScheduler = Depends(get_sync_scheduler),
):
    """Server-sent events: sync-progress and sync-complete"""
    broker = scheduler.events
    queue = broker.subscribe()

    async def event_stream():
        try:
            while True:
                if await request.is_disconnected():
                    break
                try:
                    message = await asyncio.wait_for(queue.get(), timeout=EVENT_STREAM_PING_SECONDS)
                except asyncio.TimeoutError:
                    yield ": ping\n\n"
                    continue
                yield f"event: {message['event']}\ndata: {json.dumps(message['data'])}\n\n"
        finally:
            broker.unsubscribe(queue)

    return StreamingResponse(event_stream(), media_type="text/event-stream")


# ========== Diagnostics ==========

@router.get("/debug/db-info", response_model=DbInfoResponse)
async def debug_db_info(
    db: Session = Depends(get_db),
    venue_id: Optional[str] = Depends(current_venue_id),
):
    return DbInfoResponse(
        total_customers=customer_cache.count_all(db),
        customers_with_phone=customer_cache.count_with_phone(db),
        venue_ids_in_db=customer_cache.venue_ids(db),
        selected_venue=venue_id,
        sample_customers=[CustomerResponse.model_validate(c) for c in customer_cache.sample_customers(db, 5)],
    )


@router.get("/debug/search-phone", response_model=LookupResponse)
async def debug_search_phone(
    phone: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
):
    """Phone lookup across every venue in the cache"""
    customer = customer_cache.search_phone_all_venues(db, phone)
    if customer is None:
        return LookupResponse(found=False)
    return LookupResponse(found=True, customer=CustomerResponse.model_validate(customer))
