"""
Customer Sync Scheduler - bootstrap sync on venue activation, then periodic
incremental sync and offline queue replay
"""
from datetime import datetime
from typing import Optional, Callable, Dict, Any
import logging

from sqlalchemy.orm import Session

from kiosk.core.config import settings
from kiosk.core.database import SessionLocal
from kiosk.core.exceptions import ConcurrencyRejected, NotReady
from kiosk.core.venues import Venue, get_venue_by_id
from kiosk.integrations import BaseDirectoryClient, get_client_for_venue
from kiosk.services import checkin_service, settings_service
from kiosk.services.sync_events import SyncEventBroker, get_event_broker
from kiosk.services.sync_service import CustomerSyncEngine

logger = logging.getLogger(__name__)

# Global scheduler instance
_scheduler = None


class CustomerSyncScheduler:
    """
    Owns the active venue's client and sync engine.

    Exactly one bootstrap job and one interval job exist at a time; activating
    another venue replaces them.
    """
    BOOTSTRAP_JOB_ID = "customer_sync_bootstrap"
    INTERVAL_JOB_ID = "customer_sync_interval"
    IMMEDIATE_JOB_ID = "customer_sync_immediate"

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        events: Optional[SyncEventBroker] = None,
        client_factory: Callable[[Venue], Optional[BaseDirectoryClient]] = get_client_for_venue,
        interval_minutes: Optional[int] = None,
    ):
        from apscheduler.schedulers.asyncio import AsyncIOScheduler
        self.scheduler = AsyncIOScheduler()
        self.is_running = False

        self.session_factory = session_factory
        self.events = events if events is not None else get_event_broker()
        self.client_factory = client_factory
        self.interval_minutes = interval_minutes or settings.SYNC_INTERVAL_MINUTES

        self.venue_id: Optional[str] = None
        self.client: Optional[BaseDirectoryClient] = None
        self.engine: Optional[CustomerSyncEngine] = None

    def start(self):
        """Start the scheduler and re-activate the last selected venue"""
        if not self.is_running:
            self.scheduler.start()
            self.is_running = True
            logger.info("Customer sync scheduler started")

            db = self.session_factory()
            try:
                saved_venue = settings_service.get_selected_venue(db)
            finally:
                db.close()

            if saved_venue:
                try:
                    self.activate(saved_venue)
                except NotReady as e:
                    logger.warning(f"Could not restore venue {saved_venue}: {e}")

    def stop(self):
        """Stop the scheduler, asking any running pass to stop first"""
        if self.engine is not None:
            self.engine.cancel()
        if self.is_running:
            self.scheduler.shutdown(wait=False)
            self.is_running = False
            logger.info("Customer sync scheduler stopped")

    # ========== Activation ==========

    def activate(self, venue_id: str) -> CustomerSyncEngine:
        """
        Bind the scheduler to a venue: build its client and engine, run one
        bootstrap pass in the background and arm the interval timer.
        """
        venue = get_venue_by_id(venue_id)
        if venue is None:
            raise NotReady(f"Unknown venue: {venue_id}")

        client = self.client_factory(venue)
        if client is None:
            raise NotReady(f"No POSaBIT credentials configured for venue {venue_id}")

        previous = self.engine
        if previous is not None and previous.venue_id == venue_id:
            # Same venue: keep the engine so its single-flight guard still covers a running pass
            logger.info(f"Venue {venue_id} already active, re-arming sync jobs")
        else:
            if previous is not None:
                previous.cancel()
            self.venue_id = venue_id
            self.client = client
            self.engine = CustomerSyncEngine(
                venue_id,
                client,
                session_factory=self.session_factory,
                events=self.events,
                predecessor=previous,
            )

        # Run bootstrap as a job so activation never blocks on the network
        self._replace_job(
            self.BOOTSTRAP_JOB_ID,
            func=self._bootstrap,
            trigger="date",
            run_date=datetime.now(),
            name=f"Bootstrap sync {venue_id}",
            misfire_grace_time=None,
        )

        from apscheduler.triggers.interval import IntervalTrigger
        self._replace_job(
            self.INTERVAL_JOB_ID,
            func=self._tick,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            name=f"Sync {venue_id}",
            max_instances=1,  # Prevent overlapping ticks
        )

        logger.info(f"Background sync started for {venue_id} ({self.interval_minutes} minute interval)")
        return self.engine

    def _replace_job(self, job_id: str, **job_kwargs):
        # Remove existing job if any
        if self.scheduler.get_job(job_id):
            self.scheduler.remove_job(job_id)
        self.scheduler.add_job(id=job_id, replace_existing=True, **job_kwargs)

    # ========== Jobs ==========

    async def _bootstrap(self):
        """First pass after activation: full sync on a fresh install, else incremental"""
        engine = self.engine
        if engine is None:
            return

        try:
            db = self.session_factory()
            try:
                last_sync = settings_service.get_last_sync(db, engine.venue_id)
            finally:
                db.close()

            if last_sync is None:
                logger.info(f"First install detected for {engine.venue_id}, starting background full sync...")
                await engine.full_sync()
            else:
                await engine.incremental_sync()
        except Exception as e:
            logger.error(f"Background sync error for {engine.venue_id}: {e}")

        await self._replay()

    async def run_tick(self):
        """Run one incremental sync and offline queue replay now"""
        await self._tick()

    async def _tick(self):
        """Periodic incremental sync followed by offline queue replay"""
        engine = self.engine
        if engine is None:
            return

        try:
            await engine.incremental_sync()
        except Exception as e:
            logger.error(f"Periodic sync error for {engine.venue_id}: {e}")

        await self._replay()

    async def _replay(self) -> Optional[Dict[str, Any]]:
        if self.venue_id is None:
            return None

        db = self.session_factory()
        try:
            stats = await checkin_service.replay_outbox(db, self.client, self.venue_id)
            checkin_service.apply_outbox_retention(db)
            return stats
        except ConcurrencyRejected as e:
            logger.info(f"Offline sync skipped: {e}")
            return None
        except Exception as e:
            logger.error(f"Offline sync error for {self.venue_id}: {e}")
            return None
        finally:
            db.close()

    async def _run_full(self):
        engine = self.engine
        if engine is None:
            return
        try:
            await engine.force_full_sync()
        except Exception as e:
            logger.error(f"Forced sync error for {engine.venue_id}: {e}")

    def trigger_sync_now(self):
        """Queue an immediate full sync without waiting for it"""
        if self.engine is None:
            raise NotReady("No venue selected")

        self.scheduler.add_job(
            func=self._run_full,
            trigger="date",
            run_date=datetime.now(),
            id=self.IMMEDIATE_JOB_ID,
            replace_existing=True,
        )
        logger.info(f"Triggered immediate full sync for venue: {self.venue_id}")


# ========== Global Functions ==========

def get_scheduler() -> "CustomerSyncScheduler":
    """Get or create the global scheduler instance"""
    global _scheduler
    if _scheduler is None:
        _scheduler = CustomerSyncScheduler()
    return _scheduler


def start_scheduler():
    """Start the global scheduler"""
    scheduler = get_scheduler()
    scheduler.start()


def stop_scheduler():
    """Stop the global scheduler"""
    global _scheduler
    if _scheduler:
        _scheduler.stop()
        _scheduler = None
