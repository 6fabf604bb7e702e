"""
Check-in Service - live queue submission with offline fallback, outbox
replay, and customer create/update passthrough
"""
import threading
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional, Dict, Any
import logging

from sqlalchemy.orm import Session

from kiosk.core.config import settings
from kiosk.core.exceptions import ConcurrencyRejected, NotReady, PersistenceFailure
from kiosk.integrations.base import (
    BaseDirectoryClient,
    CheckInPayload,
    CheckInReceipt,
    NormalizedCustomer,
)
from kiosk.models.base import utcnow
from kiosk.models.outbox import OutboxEntry, CheckInMethod
from kiosk.services import customer_cache

logger = logging.getLogger(__name__)

DEFERRED_MESSAGE = "Your check-in was recorded and will sync when possible."

# One replay per venue at a time; the API and the scheduler jobs share these
_replay_locks: Dict[str, threading.Lock] = {}
_replay_locks_guard = threading.Lock()


@dataclass
class CheckInRequest:
    name: str
    phone: Optional[str] = None
    method: str = CheckInMethod.WALK_IN.value
    customer_ref: Optional[int] = None


@dataclass
class CheckInResult:
    """
    Outcome shown to the customer. deferred=True means the check-in sits in
    the offline queue and is not yet confirmed by the remote.
    """
    deferred: bool
    receipt: Optional[CheckInReceipt] = None
    outbox_id: Optional[int] = None
    message: str = ""
    error: Optional[str] = None


# ========== Live check-in ==========

async def submit_check_in(
    db: Session,
    client: Optional[BaseDirectoryClient],
    request: CheckInRequest,
    venue_id: str,
) -> CheckInResult:
    """
    Try the remote queue first; on any failure (or with no client at all)
    store the check-in in the offline queue and report it as deferred.

    Only a failure to write the offline queue reaches the caller.
    """
    error = None
    if client is None:
        error = "No remote directory configured"
    else:
        try:
            receipt = await client.submit_check_in(CheckInPayload(
                name=request.name,
                phone=request.phone,
                customer_ref=request.customer_ref,
                method=request.method,
            ))
            logger.info(f"Checked in {request.name} ({request.method}) at {venue_id}")
            return CheckInResult(deferred=False, receipt=receipt, message="Checked in")
        except Exception as e:
            error = str(e)
            logger.warning(f"Live check-in failed for {request.name}, storing offline: {e}")

    outbox_id = customer_cache.enqueue_outbox(
        db,
        venue_id=venue_id,
        name=request.name,
        phone=request.phone,
        method=request.method,
        customer_ref=request.customer_ref,
    )
    return CheckInResult(deferred=True, outbox_id=outbox_id, message=DEFERRED_MESSAGE, error=error)


# ========== Outbox replay ==========

def _payload_for(entry: OutboxEntry) -> CheckInPayload:
    return CheckInPayload(
        name=entry.name,
        phone=entry.phone,
        customer_ref=entry.customer_ref,
        method=entry.method,
        idempotency_key=entry.idempotency_key,
    )


async def replay_outbox(
    db: Session,
    client: Optional[BaseDirectoryClient],
    venue_id: str,
) -> Dict[str, int]:
    """
    Resubmit unsynced check-ins oldest first. A failing entry is logged and
    skipped; the rest of the queue still goes out.

    If the remote accepts an entry but marking it synced fails, it is sent
    again on the next replay with the same idempotency key.

    Raises ConcurrencyRejected while another replay of the venue is running.
    Returns: {pending, synced, failed}
    """
    if client is None:
        raise NotReady(f"No remote directory configured for venue {venue_id}")

    lock = _replay_lock(venue_id)
    if not lock.acquire(blocking=False):
        raise ConcurrencyRejected(f"Offline queue replay already running for venue {venue_id}")
    try:
        return await _replay_entries(db, client, venue_id)
    finally:
        lock.release()


def _replay_lock(venue_id: str) -> threading.Lock:
    with _replay_locks_guard:
        return _replay_locks.setdefault(venue_id, threading.Lock())


async def _replay_entries(db: Session, client: BaseDirectoryClient, venue_id: str) -> Dict[str, int]:
    entries = customer_cache.list_unsynced_outbox(db, venue_id)
    stats = {"pending": len(entries), "synced": 0, "failed": 0}
    if not entries:
        return stats

    logger.info(f"Syncing {len(entries)} offline queue entries for {venue_id}...")

    for entry in entries:
        entry_id = entry.id
        try:
            await client.submit_check_in(_payload_for(entry))
        except Exception as e:
            stats["failed"] += 1
            logger.error(f"Failed to sync offline entry {entry_id}: {e}")
            try:
                customer_cache.record_outbox_failure(db, entry_id, str(e))
            except PersistenceFailure as pe:
                logger.error(f"Could not record failure for offline entry {entry_id}: {pe}")
            continue

        try:
            customer_cache.mark_outbox_synced(db, entry_id)
        except PersistenceFailure as e:
            stats["failed"] += 1
            logger.error(f"Offline entry {entry_id} was delivered but not marked synced: {e}")
            continue

        stats["synced"] += 1
        logger.info(f"Synced offline entry {entry_id}")

    logger.info(
        f"Offline queue replay for {venue_id}: synced={stats['synced']}, failed={stats['failed']}"
    )
    return stats


def apply_outbox_retention(db: Session) -> int:
    """Purge synced entries older than OUTBOX_RETENTION_DAYS (0 keeps them forever)"""
    if settings.OUTBOX_RETENTION_DAYS <= 0:
        return 0
    cutoff = utcnow() - timedelta(days=settings.OUTBOX_RETENTION_DAYS)
    return customer_cache.purge_synced_outbox(db, cutoff)


# ========== Customers ==========

async def create_customer(
    db: Session,
    client: Optional[BaseDirectoryClient],
    venue_id: str,
    fields: Dict[str, Any],
) -> NormalizedCustomer:
    """Create the customer remotely, then mirror the response locally"""
    if client is None:
        raise NotReady("No venue selected")

    customer = await client.create_customer(fields)
    customer_cache.upsert_batch(db, [customer], venue_id)
    logger.info(f"Created customer {customer.remote_id} for {venue_id}")
    return customer


async def update_customer(
    db: Session,
    client: Optional[BaseDirectoryClient],
    venue_id: str,
    remote_id: int,
    fields: Dict[str, Any],
) -> NormalizedCustomer:
    """Update the customer remotely, then replace the local copy"""
    if client is None:
        raise NotReady("No venue selected")

    customer = await client.update_customer(remote_id, fields)
    customer_cache.upsert_batch(db, [customer], venue_id)
    logger.info(f"Local cache updated for customer {remote_id}")
    return customer
