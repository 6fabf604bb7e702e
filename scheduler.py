#!/usr/bin/env python3
"""
Headless Sync Scheduler - keeps the customer cache and offline queue in sync
without the kiosk API (e.g. on a back-office machine)

Usage:
    python scheduler.py                 # run forever for the selected venue
    python scheduler.py --venue tacoma  # select a venue first
    python scheduler.py --once          # one incremental pass + queue replay, then exit
"""
import argparse
import asyncio
import logging

from kiosk.core import settings, engine, Base, SessionLocal
from kiosk.core.exceptions import NotReady
from kiosk.core.log_config import setup_logging
from kiosk.jobs import CustomerSyncScheduler
from kiosk.services import settings_service

logger = logging.getLogger(__name__)


async def run_once(scheduler: CustomerSyncScheduler):
    """One tick: incremental sync (full on first run) then offline queue replay"""
    await scheduler.run_tick()
    if scheduler.engine is not None:
        status = scheduler.engine.status()
        logger.info(f"Customers synced: {status['customer_count']} (last sync {status['last_sync']})")


async def run_forever(scheduler: CustomerSyncScheduler):
    scheduler.start()
    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        scheduler.stop()


def main():
    parser = argparse.ArgumentParser(description="Kiosk customer sync scheduler")
    parser.add_argument("--venue", help="venue id to select before syncing")
    parser.add_argument("--once", action="store_true", help="run a single pass and exit")
    args = parser.parse_args()

    setup_logging("scheduler")
    Base.metadata.create_all(bind=engine)

    if args.venue:
        db = SessionLocal()
        try:
            settings_service.set_selected_venue(db, args.venue)
        finally:
            db.close()

    logger.info("Kiosk Sync Scheduler Started")
    logger.info(f"   Log dir: {settings.LOGS_PATH}")
    logger.info(f"   Schedule: every {settings.SYNC_INTERVAL_MINUTES} minutes")

    scheduler = CustomerSyncScheduler()
    try:
        if args.once:
            db = SessionLocal()
            try:
                venue_id = settings_service.get_selected_venue(db)
            finally:
                db.close()
            if not venue_id:
                logger.error("No venue selected; pass --venue")
                return
            scheduler.activate(venue_id)
            asyncio.run(run_once(scheduler))
        else:
            asyncio.run(run_forever(scheduler))
    except NotReady as e:
        logger.error(f"Cannot sync: {e}")
    except KeyboardInterrupt:
        logger.info("Scheduler stopped")


if __name__ == "__main__":
    main()
