"""Tests for the local customer cache and offline queue."""

from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from kiosk.core.exceptions import PersistenceFailure
from kiosk.integrations.base import NormalizedCustomer
from kiosk.models import CustomerRecord, OutboxEntry
from kiosk.services import customer_cache

from tests.fakes import make_customers


def _customer(remote_id, phone=None, first="Ada", last="Lovelace", loyalty=False):
    return NormalizedCustomer(
        remote_id=remote_id,
        first_name=first,
        last_name=last,
        phone=phone,
        loyalty_member=loyalty,
    )


class TestNormalizePhone:
    def test_keeps_trailing_ten_digits(self):
        assert customer_cache.normalize_phone("+1 (509) 555-0182") == "5095550182"

    def test_short_numbers_kept_whole(self):
        assert customer_cache.normalize_phone("555-0182") == "5550182"

    def test_empty_values(self):
        assert customer_cache.normalize_phone(None) is None
        assert customer_cache.normalize_phone("") is None
        assert customer_cache.normalize_phone("() -") is None


class TestUpsertBatch:
    def test_upsert_is_idempotent_and_last_write_wins(self, db_session):
        customer_cache.upsert_batch(db_session, [_customer(7, "5095550182", first="Ada")], "tacoma")
        customer_cache.upsert_batch(db_session, [_customer(7, "5095550199", first="Grace", loyalty=True)], "tacoma")

        rows = db_session.query(CustomerRecord).filter(CustomerRecord.remote_id == 7).all()
        assert len(rows) == 1
        assert rows[0].first_name == "Grace"
        assert rows[0].phone == "5095550199"
        assert rows[0].loyalty_member is True

    def test_same_remote_id_in_two_venues_is_two_rows(self, db_session):
        customer_cache.upsert_batch(db_session, [_customer(7)], "tacoma")
        customer_cache.upsert_batch(db_session, [_customer(7)], "leavenworth")

        assert customer_cache.count_by_venue(db_session, "tacoma") == 1
        assert customer_cache.count_by_venue(db_session, "leavenworth") == 1
        assert customer_cache.count_all(db_session) == 2

    def test_overlapping_batches(self, db_session):
        customer_cache.upsert_batch(db_session, make_customers(50), "tacoma")
        customer_cache.upsert_batch(db_session, make_customers(50, start=26), "tacoma")

        assert customer_cache.count_by_venue(db_session, "tacoma") == 75

    def test_phone_stored_normalized(self, db_session):
        customer_cache.upsert_batch(db_session, [_customer(1, "+1 (509) 555-0182")], "tacoma")

        row = db_session.query(CustomerRecord).one()
        assert row.phone == "5095550182"
        assert row.synced_at is not None

    def test_empty_batch(self, db_session):
        assert customer_cache.upsert_batch(db_session, [], "tacoma") == 0

    def test_failed_commit_leaves_nothing_behind(self, db_session, monkeypatch):
        def broken_commit():
            raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(db_session, "commit", broken_commit)

        with pytest.raises(PersistenceFailure):
            customer_cache.upsert_batch(db_session, make_customers(10), "tacoma")

        monkeypatch.undo()
        assert customer_cache.count_by_venue(db_session, "tacoma") == 0


class TestLookups:
    def test_find_by_phone_normalizes_input(self, db_session):
        customer_cache.upsert_batch(db_session, [_customer(1, "5095550182")], "tacoma")

        found = customer_cache.find_by_phone(db_session, "+1 (509) 555-0182", "tacoma")
        assert found is not None
        assert found.remote_id == 1

    def test_find_by_phone_is_venue_scoped(self, db_session):
        customer_cache.upsert_batch(db_session, [_customer(1, "5095550182")], "leavenworth")

        assert customer_cache.find_by_phone(db_session, "5095550182", "tacoma") is None
        assert customer_cache.find_by_phone(db_session, "5095550182", "leavenworth") is not None

    def test_find_by_phone_ambiguity_resolves_to_lowest_id(self, db_session):
        customer_cache.upsert_batch(
            db_session,
            [_customer(42, "5095550182"), _customer(9, "509-555-0182"), _customer(77, "5095550182")],
            "tacoma",
        )

        for _ in range(3):
            assert customer_cache.find_by_phone(db_session, "5095550182", "tacoma").remote_id == 9

    def test_find_by_phone_without_digits(self, db_session):
        customer_cache.upsert_batch(db_session, [_customer(1, "5095550182")], "tacoma")
        assert customer_cache.find_by_phone(db_session, "abc", "tacoma") is None

    def test_find_by_name_case_insensitive(self, db_session):
        customer_cache.upsert_batch(db_session, [_customer(3, first="Ada", last="Lovelace")], "tacoma")

        found = customer_cache.find_by_name(db_session, "  ADA ", "lovelace", "tacoma")
        assert found is not None
        assert found.remote_id == 3
        assert customer_cache.find_by_name(db_session, "Ada", "Lovelace", "leavenworth") is None
        assert customer_cache.find_by_name(db_session, "Ada", "Byron", "tacoma") is None

    def test_find_by_name_with_blank_first_name(self, db_session):
        customer_cache.upsert_batch(db_session, [_customer(4, first="", last="Cher")], "tacoma")

        found = customer_cache.find_by_name(db_session, "", "cher", "tacoma")
        assert found is not None
        assert found.remote_id == 4
        assert customer_cache.find_by_name(db_session, "", "", "tacoma") is None

    def test_clear_venue(self, db_session):
        customer_cache.upsert_batch(db_session, make_customers(5), "tacoma")
        customer_cache.upsert_batch(db_session, make_customers(3), "leavenworth")

        assert customer_cache.clear_venue(db_session, "tacoma") == 5
        assert customer_cache.count_by_venue(db_session, "tacoma") == 0
        assert customer_cache.count_by_venue(db_session, "leavenworth") == 3

    def test_diagnostics(self, db_session):
        customer_cache.upsert_batch(db_session, [_customer(1, "5095550182"), _customer(2)], "tacoma")
        customer_cache.upsert_batch(db_session, [_customer(3, "2065550100")], "leavenworth")

        assert customer_cache.count_with_phone(db_session) == 2
        assert customer_cache.venue_ids(db_session) == ["leavenworth", "tacoma"]
        assert len(customer_cache.sample_customers(db_session, limit=2)) == 2
        assert customer_cache.search_phone_all_venues(db_session, "206-555-0100").venue_id == "leavenworth"


class TestOutbox:
    def test_enqueue_persists_unsynced(self, db_session):
        entry_id = customer_cache.enqueue_outbox(
            db_session, "tacoma", "Ada L", phone="5095550182", method="phone", customer_ref=7
        )

        entry = customer_cache.get_outbox_entry(db_session, entry_id)
        assert entry.synced is False
        assert entry.method == "phone"
        assert entry.customer_ref == 7
        assert entry.idempotency_key

    def test_unknown_method_rejected(self, db_session):
        with pytest.raises(ValueError):
            customer_cache.enqueue_outbox(db_session, "tacoma", "Ada", method="carrier_pigeon")

    def test_list_unsynced_is_fifo_by_created_at(self, db_session):
        base = datetime(2026, 10, 1, 12, 0, 0)
        e3 = customer_cache.enqueue_outbox(db_session, "tacoma", "E3", created_at=base + timedelta(minutes=2))
        e1 = customer_cache.enqueue_outbox(db_session, "tacoma", "E1", created_at=base)
        e2 = customer_cache.enqueue_outbox(db_session, "tacoma", "E2", created_at=base + timedelta(minutes=1))
        customer_cache.enqueue_outbox(db_session, "leavenworth", "Other", created_at=base)

        pending = customer_cache.list_unsynced_outbox(db_session, "tacoma")
        assert [e.id for e in pending] == [e1, e2, e3]

    def test_mark_synced_is_idempotent(self, db_session):
        entry_id = customer_cache.enqueue_outbox(db_session, "tacoma", "Ada")

        assert customer_cache.mark_outbox_synced(db_session, entry_id) is True
        assert customer_cache.mark_outbox_synced(db_session, entry_id) is False
        assert customer_cache.list_unsynced_outbox(db_session, "tacoma") == []

        entry = customer_cache.get_outbox_entry(db_session, entry_id)
        db_session.refresh(entry)
        assert entry.synced is True
        assert entry.synced_at is not None

    def test_record_failure(self, db_session):
        entry_id = customer_cache.enqueue_outbox(db_session, "tacoma", "Ada")
        customer_cache.record_outbox_failure(db_session, entry_id, "503")
        customer_cache.record_outbox_failure(db_session, entry_id, "timeout")

        entry = customer_cache.get_outbox_entry(db_session, entry_id)
        db_session.refresh(entry)
        assert entry.attempts == 2
        assert entry.last_error == "timeout"
        assert entry.synced is False

    def test_purge_only_touches_old_synced_entries(self, db_session):
        old = customer_cache.enqueue_outbox(db_session, "tacoma", "Old")
        recent = customer_cache.enqueue_outbox(db_session, "tacoma", "Recent")
        pending = customer_cache.enqueue_outbox(db_session, "tacoma", "Pending")
        customer_cache.mark_outbox_synced(db_session, old)
        customer_cache.mark_outbox_synced(db_session, recent)

        db_session.query(OutboxEntry).filter(OutboxEntry.id == old).update(
            {"synced_at": datetime(2020, 1, 1)}, synchronize_session=False
        )
        db_session.commit()

        assert customer_cache.purge_synced_outbox(db_session, datetime(2025, 1, 1)) == 1
        assert customer_cache.get_outbox_entry(db_session, old) is None
        assert customer_cache.get_outbox_entry(db_session, recent) is not None
        assert customer_cache.get_outbox_entry(db_session, pending) is not None
        assert customer_cache.count_outbox(db_session, "tacoma", synced=False) == 1
