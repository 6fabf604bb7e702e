"""
Customer API - local lookups and remote create/update
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import Optional
import logging

from kiosk.core.database import get_db
from kiosk.core.exceptions import NotReady, TransientRemoteError, PersistenceFailure
from kiosk.jobs import CustomerSyncScheduler
from kiosk.schemas.customer import (
    CustomerCreate,
    CustomerResponse,
    CustomerUpdate,
    LookupResponse,
    RemoteCustomerResponse,
)
from kiosk.services import customer_cache, checkin_service
from .deps import get_sync_scheduler, current_venue_id, require_venue_id

router = APIRouter(prefix="/customers", tags=["customers"])
logger = logging.getLogger(__name__)


@router.get("/lookup", response_model=LookupResponse)
async def lookup_by_phone(
    phone: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    venue_id: Optional[str] = Depends(current_venue_id),
):
    """Customer lookup by phone from the local cache"""
    if not venue_id:
        logger.info("No venue selected for lookup")
        return LookupResponse(found=False)

    customer = customer_cache.find_by_phone(db, phone, venue_id)
    logger.info(f"Lookup {phone} in {venue_id}: {'found ' + str(customer.remote_id) if customer else 'not found'}")
    if customer is None:
        return LookupResponse(found=False)
    return LookupResponse(found=True, customer=CustomerResponse.model_validate(customer))


@router.get("/lookup-by-name", response_model=LookupResponse)
async def lookup_by_name(
    first_name: str = Query(""),
    last_name: str = Query(""),
    db: Session = Depends(get_db),
    venue_id: Optional[str] = Depends(current_venue_id),
):
    """Customer lookup by name from the local cache (ID scan path)"""
    if not venue_id:
        return LookupResponse(found=False)

    customer = customer_cache.find_by_name(db, first_name, last_name, venue_id)
    if customer is None:
        return LookupResponse(found=False)
    return LookupResponse(found=True, customer=CustomerResponse.model_validate(customer))


@router.post("", response_model=RemoteCustomerResponse)
async def create_customer(
    data: CustomerCreate,
    db: Session = Depends(get_db),
    venue_id: str = Depends(require_venue_id),
    scheduler: CustomerSyncScheduler = Depends(get_sync_scheduler),
):
    try:
        return await checkin_service.create_customer(
            db, scheduler.client, venue_id, data.model_dump(exclude_none=True)
        )
    except NotReady as e:
        raise HTTPException(status_code=409, detail=str(e))
    except TransientRemoteError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except PersistenceFailure as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.put("/{remote_id}", response_model=RemoteCustomerResponse)
async def update_customer(
    remote_id: int,
    data: CustomerUpdate,
    db: Session = Depends(get_db),
    venue_id: str = Depends(require_venue_id),
    scheduler: CustomerSyncScheduler = Depends(get_sync_scheduler),
):
    try:
        return await checkin_service.update_customer(
            db, scheduler.client, venue_id, remote_id, data.model_dump(exclude_none=True)
        )
    except NotReady as e:
        raise HTTPException(status_code=409, detail=str(e))
    except TransientRemoteError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except PersistenceFailure as e:
        raise HTTPException(status_code=500, detail=str(e))
