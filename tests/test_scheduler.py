"""Tests for the customer sync scheduler."""

import asyncio

import pytest

from kiosk.core.exceptions import NotReady
from kiosk.jobs import CustomerSyncScheduler
from kiosk.services import checkin_service, customer_cache, settings_service
from kiosk.services.sync_service import SyncPhase

from tests.fakes import make_customers


def _job_ids(scheduler):
    return sorted(job.id for job in scheduler.scheduler.get_jobs())


class TestActivation:
    def test_activate_schedules_bootstrap_and_interval(self, sync_scheduler):
        engine = sync_scheduler.activate("tacoma")

        assert engine.venue_id == "tacoma"
        assert sync_scheduler.venue_id == "tacoma"
        assert _job_ids(sync_scheduler) == [
            CustomerSyncScheduler.BOOTSTRAP_JOB_ID,
            CustomerSyncScheduler.INTERVAL_JOB_ID,
        ]

    def test_reactivation_keeps_one_job_of_each(self, sync_scheduler):
        sync_scheduler.activate("tacoma")
        sync_scheduler.activate("tacoma")
        sync_scheduler.activate("leavenworth")

        assert len(sync_scheduler.scheduler.get_jobs()) == 2
        assert sync_scheduler.engine.venue_id == "leavenworth"

    def test_unknown_venue(self, sync_scheduler):
        with pytest.raises(NotReady):
            sync_scheduler.activate("seattle")
        assert sync_scheduler.engine is None

    def test_venue_without_credentials(self, sync_scheduler):
        with pytest.raises(NotReady):
            sync_scheduler.activate("wenatchee")
        assert sync_scheduler.scheduler.get_jobs() == []

    def test_trigger_requires_venue(self, sync_scheduler):
        with pytest.raises(NotReady):
            sync_scheduler.trigger_sync_now()

    def test_trigger_queues_immediate_job(self, sync_scheduler):
        sync_scheduler.activate("tacoma")
        sync_scheduler.trigger_sync_now()

        assert CustomerSyncScheduler.IMMEDIATE_JOB_ID in _job_ids(sync_scheduler)

    @pytest.mark.asyncio
    async def test_start_restores_selected_venue(self, sync_scheduler, db_session):
        settings_service.set_selected_venue(db_session, "leavenworth")

        sync_scheduler.start()
        try:
            assert sync_scheduler.is_running
            assert sync_scheduler.venue_id == "leavenworth"
        finally:
            sync_scheduler.stop()

        assert not sync_scheduler.is_running


class TestJobs:
    @pytest.mark.asyncio
    async def test_bootstrap_runs_full_sync_then_replay(self, sync_scheduler, fake_client, db_session):
        fake_client.customers = make_customers(150)
        customer_cache.enqueue_outbox(db_session, "tacoma", "Ada")
        sync_scheduler.activate("tacoma")

        await sync_scheduler._bootstrap()

        assert all(call["updated_since"] is None for call in fake_client.fetch_calls)
        assert customer_cache.count_by_venue(db_session, "tacoma") == 150
        assert settings_service.get_last_sync(db_session, "tacoma") is not None
        assert [p.name for p in fake_client.submitted] == ["Ada"]
        assert customer_cache.count_outbox(db_session, "tacoma", synced=False) == 0

    @pytest.mark.asyncio
    async def test_bootstrap_with_checkpoint_is_incremental(self, sync_scheduler, fake_client):
        sync_scheduler.activate("tacoma")
        await sync_scheduler._bootstrap()
        await sync_scheduler._bootstrap()

        assert fake_client.fetch_calls[0]["updated_since"] is None
        assert fake_client.fetch_calls[1]["updated_since"] is not None

    @pytest.mark.asyncio
    async def test_tick_contains_failures(self, sync_scheduler, fake_client, db_session):
        fake_client.customers = make_customers(10)
        fake_client.fail_pages = {1}
        fake_client.fail_all_check_ins = True
        customer_cache.enqueue_outbox(db_session, "tacoma", "Ada")
        sync_scheduler.activate("tacoma")

        await sync_scheduler._tick()

        assert sync_scheduler.engine.phase == SyncPhase.IDLE
        assert settings_service.get_last_sync(db_session, "tacoma") is None
        db_session.expire_all()
        entry = customer_cache.list_unsynced_outbox(db_session, "tacoma")[0]
        assert entry.attempts == 1

    @pytest.mark.asyncio
    async def test_run_full(self, sync_scheduler, fake_client, db_session):
        fake_client.customers = make_customers(5)
        sync_scheduler.activate("tacoma")

        await sync_scheduler._run_full()

        assert customer_cache.count_by_venue(db_session, "tacoma") == 5

    @pytest.mark.asyncio
    async def test_jobs_without_venue_are_noops(self, sync_scheduler, fake_client):
        await sync_scheduler._tick()
        await sync_scheduler._bootstrap()

        assert fake_client.fetch_calls == []

    @pytest.mark.asyncio
    async def test_replay_skipped_while_another_replay_runs(self, sync_scheduler, fake_client, db_session):
        customer_cache.enqueue_outbox(db_session, "tacoma", "Ada")
        sync_scheduler.activate("tacoma")

        lock = checkin_service._replay_lock("tacoma")
        lock.acquire()
        try:
            assert await sync_scheduler._replay() is None
        finally:
            lock.release()

        assert fake_client.submitted == []
        assert (await sync_scheduler._replay())["synced"] == 1


class TestSinglePassPerProcess:
    @staticmethod
    async def _wait_for_fetch(client, count=1):
        while len(client.fetch_calls) < count:
            await asyncio.sleep(0)

    @pytest.mark.asyncio
    async def test_reactivating_same_venue_during_pass(self, sync_scheduler, fake_client, db_session):
        fake_client.customers = make_customers(5)
        fake_client.gate = asyncio.Event()
        engine = sync_scheduler.activate("tacoma")

        first = asyncio.create_task(engine.full_sync())
        await self._wait_for_fetch(fake_client)

        assert sync_scheduler.activate("tacoma") is engine
        await sync_scheduler._run_full()
        await sync_scheduler.run_tick()

        assert len(fake_client.fetch_calls) == 1
        assert engine.is_syncing

        fake_client.gate.set()
        result = await first

        assert result["status"] == "success"
        assert len(fake_client.fetch_calls) == 1
        assert customer_cache.count_by_venue(db_session, "tacoma") == 5

    @pytest.mark.asyncio
    async def test_switching_venue_waits_for_previous_pass(self, sync_scheduler, fake_client, db_session):
        fake_client.customers = make_customers(250)
        fake_client.gate = asyncio.Event()
        old_engine = sync_scheduler.activate("tacoma")

        first = asyncio.create_task(old_engine.full_sync())
        await self._wait_for_fetch(fake_client)

        new_engine = sync_scheduler.activate("leavenworth")
        assert new_engine is not old_engine

        second = asyncio.create_task(new_engine.full_sync())
        for _ in range(5):
            await asyncio.sleep(0)

        # New venue has not fetched anything while the old pass is in flight
        assert len(fake_client.fetch_calls) == 1

        fake_client.gate.set()
        old_result = await first
        new_result = await second

        assert old_result["status"] == "cancelled"
        assert new_result["status"] == "success"
        assert len(fake_client.fetch_calls) == 4
        assert customer_cache.count_by_venue(db_session, "tacoma") == 100
        assert customer_cache.count_by_venue(db_session, "leavenworth") == 250
        assert settings_service.get_last_sync(db_session, "tacoma") is None
