"""
Customer Cache Service - durable local mirror of the customer directory
and the offline check-in queue.

Every write runs in its own transaction under a process-wide write lock, so
a sync page upsert never interleaves with a live check-in's customer update
and readers never see half a batch.
"""
import re
import threading
from datetime import datetime
from typing import Optional, List, Iterable
import logging

from sqlalchemy.orm import Session
from sqlalchemy import and_, func
from sqlalchemy.exc import SQLAlchemyError

from kiosk.core.exceptions import PersistenceFailure
from kiosk.integrations.base import NormalizedCustomer
from kiosk.models.base import utcnow
from kiosk.models.customer import CustomerRecord
from kiosk.models.outbox import OutboxEntry, CheckInMethod

logger = logging.getLogger(__name__)

_write_lock = threading.RLock()

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """Strip non-digits and keep the trailing 10 (drops country code)"""
    if not phone:
        return None
    digits = _NON_DIGITS.sub("", phone)[-10:]
    return digits or None


# ========== Customers ==========

def upsert_batch(db: Session, records: Iterable[NormalizedCustomer], venue_id: str) -> int:
    """
    Insert-or-replace customers keyed by (remote_id, venue_id).

    The whole batch is one transaction: on any error nothing from this call
    is kept and PersistenceFailure is raised.
    """
    records = list(records)
    if not records:
        return 0

    synced_at = utcnow()
    with _write_lock:
        try:
            for record in records:
                db.merge(CustomerRecord(
                    remote_id=record.remote_id,
                    venue_id=venue_id,
                    first_name=record.first_name or "",
                    last_name=record.last_name or "",
                    phone=normalize_phone(record.phone),
                    email=record.email or None,
                    loyalty_member=bool(record.loyalty_member),
                    synced_at=synced_at,
                ))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Customer upsert failed for venue {venue_id} ({len(records)} records): {e}")
            raise PersistenceFailure(f"Customer upsert failed: {e}") from e

    return len(records)


def find_by_phone(db: Session, phone: str, venue_id: str) -> Optional[CustomerRecord]:
    """
    Find a customer whose stored phone ends with the trailing 10 digits of `phone`.

    Several matches resolve to the lowest remote_id.
    """
    normalized = normalize_phone(phone)
    if not normalized:
        return None

    return db.query(CustomerRecord).filter(
        and_(
            CustomerRecord.venue_id == venue_id,
            CustomerRecord.phone.like(f"%{normalized}"),
        )
    ).order_by(CustomerRecord.remote_id).first()


def find_by_name(db: Session, first_name: str, last_name: str, venue_id: str) -> Optional[CustomerRecord]:
    """Case-insensitive exact match on first and last name within the venue"""
    first = (first_name or "").strip().upper()
    last = (last_name or "").strip().upper()

    return db.query(CustomerRecord).filter(
        and_(
            CustomerRecord.venue_id == venue_id,
            func.upper(CustomerRecord.first_name) == first,
            func.upper(CustomerRecord.last_name) == last,
        )
    ).order_by(CustomerRecord.remote_id).first()


def count_by_venue(db: Session, venue_id: str) -> int:
    return db.query(func.count(CustomerRecord.remote_id)).filter(
        CustomerRecord.venue_id == venue_id
    ).scalar() or 0


def clear_venue(db: Session, venue_id: str) -> int:
    """Delete every cached customer of a venue (forced full re-import)"""
    with _write_lock:
        try:
            deleted = db.query(CustomerRecord).filter(
                CustomerRecord.venue_id == venue_id
            ).delete(synchronize_session=False)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceFailure(f"Clearing venue {venue_id} failed: {e}") from e

    logger.info(f"Cleared {deleted} cached customers for venue {venue_id}")
    return deleted


# ========== Diagnostics ==========

def count_all(db: Session) -> int:
    return db.query(func.count(CustomerRecord.remote_id)).scalar() or 0


def count_with_phone(db: Session) -> int:
    return db.query(func.count(CustomerRecord.remote_id)).filter(
        and_(CustomerRecord.phone.isnot(None), CustomerRecord.phone != "")
    ).scalar() or 0


def venue_ids(db: Session) -> List[str]:
    rows = db.query(CustomerRecord.venue_id).distinct().order_by(CustomerRecord.venue_id).all()
    return [row[0] for row in rows]


def sample_customers(db: Session, limit: int = 10) -> List[CustomerRecord]:
    return db.query(CustomerRecord).order_by(CustomerRecord.venue_id, CustomerRecord.remote_id).limit(limit).all()


def search_phone_all_venues(db: Session, phone: str) -> Optional[CustomerRecord]:
    """Phone lookup ignoring the venue; used to diagnose "not found" reports"""
    normalized = normalize_phone(phone)
    if not normalized:
        return None
    return db.query(CustomerRecord).filter(
        CustomerRecord.phone.like(f"%{normalized}%")
    ).order_by(CustomerRecord.venue_id, CustomerRecord.remote_id).first()


# ========== Offline Queue ==========

def enqueue_outbox(
    db: Session,
    venue_id: str,
    name: str,
    phone: Optional[str] = None,
    method: str = CheckInMethod.WALK_IN.value,
    customer_ref: Optional[int] = None,
    created_at: Optional[datetime] = None,
) -> int:
    """Persist a pending check-in with synced=False and return its id"""
    entry = OutboxEntry(
        venue_id=venue_id,
        name=name,
        phone=phone or None,
        method=CheckInMethod(method).value,
        customer_ref=customer_ref,
        created_at=created_at or utcnow(),
        synced=False,
    )

    with _write_lock:
        try:
            db.add(entry)
            db.commit()
            db.refresh(entry)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Could not store offline check-in for {name}: {e}")
            raise PersistenceFailure(f"Offline queue write failed: {e}") from e

    logger.info(f"Queued offline check-in {entry.id} ({entry.method}) for venue {venue_id}")
    return entry.id


def list_unsynced_outbox(db: Session, venue_id: str) -> List[OutboxEntry]:
    """Unsynced entries oldest first"""
    return db.query(OutboxEntry).filter(
        and_(
            OutboxEntry.venue_id == venue_id,
            OutboxEntry.synced == False,  # noqa: E712
        )
    ).order_by(OutboxEntry.created_at.asc(), OutboxEntry.id.asc()).all()


def get_outbox_entry(db: Session, entry_id: int) -> Optional[OutboxEntry]:
    return db.query(OutboxEntry).filter(OutboxEntry.id == entry_id).first()


def mark_outbox_synced(db: Session, entry_id: int) -> bool:
    """
    Flip an entry to synced. Returns False when it was already synced or
    does not exist, so calling twice is a no-op.
    """
    with _write_lock:
        try:
            updated = db.query(OutboxEntry).filter(
                and_(
                    OutboxEntry.id == entry_id,
                    OutboxEntry.synced == False,  # noqa: E712
                )
            ).update({"synced": True, "synced_at": utcnow()}, synchronize_session=False)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceFailure(f"Marking offline entry {entry_id} synced failed: {e}") from e

    return updated > 0


def record_outbox_failure(db: Session, entry_id: int, error: str) -> None:
    with _write_lock:
        try:
            db.query(OutboxEntry).filter(OutboxEntry.id == entry_id).update(
                {"attempts": OutboxEntry.attempts + 1, "last_error": error[:500]},
                synchronize_session=False,
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceFailure(f"Recording failure for offline entry {entry_id} failed: {e}") from e


def count_outbox(db: Session, venue_id: str, synced: Optional[bool] = None) -> int:
    query = db.query(func.count(OutboxEntry.id)).filter(OutboxEntry.venue_id == venue_id)
    if synced is not None:
        query = query.filter(OutboxEntry.synced == synced)
    return query.scalar() or 0


def purge_synced_outbox(db: Session, older_than: datetime) -> int:
    """
    Delete entries that were confirmed before `older_than`.
    Unsynced entries are never touched.
    """
    with _write_lock:
        try:
            deleted = db.query(OutboxEntry).filter(
                and_(
                    OutboxEntry.synced == True,  # noqa: E712
                    OutboxEntry.synced_at < older_than,
                )
            ).delete(synchronize_session=False)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceFailure(f"Offline queue purge failed: {e}") from e

    if deleted:
        logger.info(f"Purged {deleted} synced offline entries older than {older_than.isoformat()}")
    return deleted
