"""
Sync Service - mirrors the remote customer directory into the local cache

One CustomerSyncEngine exists per activated venue. Its phase value is the
single-flight guard: the interval tick and a user "force sync" both go
through the same engine, and a pass requested while another is running is
rejected and logged.
"""
import asyncio
import enum
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Dict, Any, Callable
import logging

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from kiosk.core.config import settings
from kiosk.core.database import SessionLocal
from kiosk.core.exceptions import (
    ConcurrencyRejected,
    PersistenceFailure,
    SyncCancelled,
    TransientRemoteError,
)
from kiosk.integrations.base import BaseDirectoryClient
from kiosk.models.base import utcnow
from kiosk.models.sync import SyncJob, SyncJobType
from kiosk.services import customer_cache, settings_service
from kiosk.services.sync_events import SyncEventBroker, SYNC_PROGRESS, SYNC_COMPLETE

logger = logging.getLogger(__name__)


class SyncPhase(str, enum.Enum):
    IDLE = "IDLE"
    FULL_SYNCING = "FULL_SYNCING"
    INCREMENTAL_SYNCING = "INCREMENTAL_SYNCING"


@dataclass
class SyncProgress:
    current: int
    total: int

    def as_dict(self) -> Dict[str, int]:
        return {"current": self.current, "total": self.total}


class CustomerSyncEngine:
    """
    Full and incremental customer sync for one venue
    """

    def __init__(
        self,
        venue_id: str,
        client: BaseDirectoryClient,
        session_factory: Callable[[], Session] = SessionLocal,
        events: Optional[SyncEventBroker] = None,
        page_size: Optional[int] = None,
        page_delay: Optional[float] = None,
        predecessor: Optional["CustomerSyncEngine"] = None,
    ):
        self.venue_id = venue_id
        self.client = client
        self.session_factory = session_factory
        self.events = events
        self.page_size = page_size or settings.SYNC_PAGE_SIZE
        self.page_delay = settings.SYNC_PAGE_DELAY_SECONDS if page_delay is None else page_delay

        self._state_lock = threading.Lock()
        self._phase = SyncPhase.IDLE
        self._progress: Optional[SyncProgress] = None
        self._cancel_requested = False

        # Engine of the previously active venue; its last pass must end before ours starts
        self._predecessor = predecessor

    # ========== State ==========

    @property
    def phase(self) -> SyncPhase:
        return self._phase

    @property
    def is_syncing(self) -> bool:
        return self._phase != SyncPhase.IDLE

    @property
    def progress(self) -> Optional[SyncProgress]:
        return self._progress

    def _begin(self, phase: SyncPhase) -> None:
        with self._state_lock:
            if self._phase != SyncPhase.IDLE:
                raise ConcurrencyRejected(
                    f"{self._phase.value} already running for venue {self.venue_id}"
                )
            self._phase = phase
            self._progress = None
            self._cancel_requested = False

    def _finish(self) -> None:
        with self._state_lock:
            self._phase = SyncPhase.IDLE
            self._progress = None
            self._cancel_requested = False

    def cancel(self) -> bool:
        """
        Ask the running pass to stop before its next page.
        Returns False when nothing is running.
        """
        with self._state_lock:
            if self._phase == SyncPhase.IDLE:
                return False
            self._cancel_requested = True
        logger.info(f"Cancellation requested for {self._phase.value} of venue {self.venue_id}")
        return True

    async def wait_idle(self, poll_interval: float = 0.05) -> None:
        """Return once no pass is running"""
        while self.is_syncing:
            await asyncio.sleep(poll_interval)

    def status(self) -> Dict[str, Any]:
        """Snapshot for the kiosk status bar"""
        db = self.session_factory()
        try:
            customer_count = customer_cache.count_by_venue(db, self.venue_id)
            last_sync = settings_service.get_last_sync(db, self.venue_id)
        finally:
            db.close()

        progress = self._progress
        return {
            "venue_id": self.venue_id,
            "is_syncing": self.is_syncing,
            "phase": self._phase.value,
            "progress": progress.as_dict() if progress else None,
            "customer_count": customer_count,
            "last_sync": last_sync,
        }

    # ========== Passes ==========

    async def full_sync(self, clear_first: bool = False) -> Dict[str, Any]:
        """
        Re-fetch the whole directory page by page.

        With clear_first the venue's cached rows and checkpoint are dropped
        before the first page (forced full re-import).
        """
        return await self._run_pass(SyncPhase.FULL_SYNCING, updated_since=None, clear_first=clear_first)

    async def force_full_sync(self) -> Dict[str, Any]:
        return await self.full_sync()

    async def incremental_sync(self) -> Dict[str, Any]:
        """
        Fetch only customers updated since the last successful pass.
        Without a checkpoint this is a full sync.
        """
        db = self.session_factory()
        try:
            last_sync = settings_service.get_last_sync(db, self.venue_id)
        finally:
            db.close()

        if last_sync is None:
            logger.info(f"No sync checkpoint for venue {self.venue_id}, running full sync")
            return await self.full_sync()

        return await self._run_pass(SyncPhase.INCREMENTAL_SYNCING, updated_since=last_sync)

    async def _run_pass(
        self,
        phase: SyncPhase,
        updated_since: Optional[datetime],
        clear_first: bool = False,
    ) -> Dict[str, Any]:
        job_type = SyncJobType.FULL if phase == SyncPhase.FULL_SYNCING else SyncJobType.INCREMENTAL
        stats = {
            "status": "rejected",
            "type": job_type.value,
            "venue_id": self.venue_id,
            "pages": 0,
            "fetched": 0,
            "total": 0,
            "error": None,
        }

        try:
            self._begin(phase)
        except ConcurrencyRejected as e:
            logger.info(f"Sync request ignored: {e}")
            return stats

        # Checkpoint is the pass start so updates made during the pass are re-read next time
        started_at = utcnow()
        db = self.session_factory()
        job = None
        try:
            await self._wait_for_predecessor()
            job = self._start_job(db, job_type)

            if clear_first:
                customer_cache.clear_venue(db, self.venue_id)
                settings_service.reset_last_sync(db, self.venue_id)

            if updated_since:
                logger.info(f"Starting incremental sync for {self.venue_id} since {updated_since.isoformat()}")
            else:
                logger.info(f"Starting full customer sync for {self.venue_id}")

            await self._page_through(db, updated_since, stats)

            settings_service.advance_last_sync(db, self.venue_id, started_at)
            stats["status"] = "success"
            self._close_job(db, job, stats, SyncJob.mark_success)

            logger.info(
                f"{job_type.value.capitalize()} sync complete for {self.venue_id}: "
                f"pages={stats['pages']}, fetched={stats['fetched']}, total={stats['total']}"
            )

        except SyncCancelled:
            stats["status"] = "cancelled"
            self._close_job(db, job, stats, SyncJob.mark_cancelled)
            logger.warning(
                f"{job_type.value.capitalize()} sync cancelled for {self.venue_id} "
                f"after {stats['pages']} pages; checkpoint unchanged"
            )

        except asyncio.CancelledError:
            stats["status"] = "cancelled"
            self._close_job(db, job, stats, SyncJob.mark_cancelled)
            raise

        except (TransientRemoteError, PersistenceFailure) as e:
            stats["status"] = "failed"
            stats["error"] = str(e)
            self._close_job(db, job, stats, lambda j: j.mark_failed(str(e)))
            logger.error(f"{job_type.value.capitalize()} sync failed for {self.venue_id}: {e}")

        except Exception as e:
            stats["status"] = "failed"
            stats["error"] = str(e)
            self._close_job(db, job, stats, lambda j: j.mark_failed(str(e)))
            logger.exception(f"Unexpected error during {job_type.value.lower()} sync for {self.venue_id}")

        finally:
            self._finish()
            db.close()
            self._publish(SYNC_COMPLETE, {
                "status": stats["status"],
                "type": stats["type"],
                "fetched": stats["fetched"],
            })

        return stats

    async def _page_through(
        self,
        db: Session,
        updated_since: Optional[datetime],
        stats: Dict[str, Any],
    ) -> None:
        """
        Fetch pages in order, upserting each before requesting the next.
        The page count is fixed by the first response.
        """
        page = 1
        total_pages = None

        while True:
            self._check_cancelled()

            result = await self.client.fetch_customers(
                page=page,
                per_page=self.page_size,
                updated_since=updated_since,
            )

            if total_pages is None:
                total_pages = result.total_pages
                stats["total"] = result.total_records
            elif result.total_pages != total_pages:
                logger.warning(
                    f"Remote reported {result.total_pages} pages on page {page} "
                    f"(first response said {total_pages}); keeping {total_pages}"
                )

            customer_cache.upsert_batch(db, result.records, self.venue_id)
            stats["pages"] += 1
            stats["fetched"] += len(result.records)
            self._report_progress(stats["fetched"], stats["total"])

            if page >= total_pages:
                break
            page += 1

            if self.page_delay > 0:
                await asyncio.sleep(self.page_delay)

    async def _wait_for_predecessor(self) -> None:
        predecessor = self._predecessor
        if predecessor is None:
            return
        if predecessor.is_syncing:
            logger.info(
                f"Waiting for the running pass of venue {predecessor.venue_id} to stop before syncing {self.venue_id}"
            )
            await predecessor.wait_idle()
        self._predecessor = None

    def _check_cancelled(self) -> None:
        if self._cancel_requested:
            raise SyncCancelled(f"Sync for venue {self.venue_id} cancelled")

    def _report_progress(self, current: int, total: int) -> None:
        self._progress = SyncProgress(current=current, total=total)
        if current and current % 1000 == 0:
            logger.info(f"Sync progress for {self.venue_id}: {current}/{total}")
        self._publish(SYNC_PROGRESS, {"current": current, "total": total})

    def _publish(self, event: str, data: Dict[str, Any]) -> None:
        if self.events is not None:
            self.events.publish(event, {"venue_id": self.venue_id, **data})

    # ========== Job history ==========

    def _start_job(self, db: Session, job_type: SyncJobType) -> SyncJob:
        job = SyncJob(venue_id=self.venue_id, job_type=job_type.value)
        try:
            db.add(job)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceFailure(f"Could not record sync job: {e}") from e
        return job

    def _close_job(self, db: Session, job: Optional[SyncJob], stats: Dict[str, Any], mark) -> None:
        if job is None:
            return
        try:
            job.pages_fetched = stats["pages"]
            job.records_fetched = stats["fetched"]
            job.total_records = stats["total"]
            mark(job)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Could not update sync job {job.id}: {e}")


def get_recent_jobs(db: Session, venue_id: str, limit: int = 20):
    """Most recent sync passes for a venue"""
    return db.query(SyncJob).filter(
        SyncJob.venue_id == venue_id
    ).order_by(SyncJob.started_at.desc(), SyncJob.id.desc()).limit(limit).all()
