"""
Property-based tests for the Queue Store module.

Uses Hypothesis for property-based testing of queue ordering, status
updates, submitter accounting and transaction tracking.
"""

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from subdomain_registrar.enums import QueueStatus
from subdomain_registrar.exceptions import PersistenceError
from subdomain_registrar.models import RecordStatus, SubmitterRecord
from subdomain_registrar.queue_store import SUBDOMAIN_PAGE_SIZE, QueueStore

from fakes import TEST_ADDRESS, TEST_ADDRESS_2, make_operation


name_strategy = st.text(
    alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz0123456789-_"),
    min_size=1,
    max_size=20,
)


class TestQueueOrderingProperty:
    """
    Property-based tests for queue ordering.
    """

    @given(names=st.lists(name_strategy, min_size=1, max_size=20, unique=True))
    @settings(max_examples=50)
    def test_queue_indices_increase_and_fetch_is_ordered(self, names: list[str]) -> None:
        """
        Property 6: Queue indices strictly increase in insertion order and
        fetch_queue returns received rows oldest first.
        """
        store = QueueStore()
        indices = [store.add_to_queue(make_operation(name)) for name in names]

        assert indices == sorted(indices)
        assert len(set(indices)) == len(indices)

        queued = store.fetch_queue()
        assert [record.subdomain_name for record in queued] == names
        assert all(record.status == RecordStatus.received() for record in queued)
        store.close()

    @given(names=st.lists(name_strategy, min_size=2, max_size=10, unique=True))
    @settings(max_examples=50)
    def test_submitted_rows_leave_the_queue(self, names: list[str]) -> None:
        """
        Property 7: Only received rows are returned by fetch_queue.
        """
        store = QueueStore()
        for name in names:
            store.add_to_queue(make_operation(name))

        store.update_status(names[:1], RecordStatus.submitted("txhash"))

        assert [record.subdomain_name for record in store.fetch_queue()] == names[1:]
        store.close()


class TestStatusRecordProperty:
    """
    Tests for the latest-record-per-name lookup.
    """

    def test_latest_record_wins(self) -> None:
        store = QueueStore()
        first = store.add_to_queue(make_operation("bar"))
        store.set_record_status(first, RecordStatus.error("boom"))
        second = store.add_to_queue(make_operation("bar"))

        record = store.get_status_record("bar")
        assert record is not None
        assert record.queue_index == second
        assert record.status.kind == QueueStatus.RECEIVED
        store.close()

    def test_unknown_name_has_no_record(self) -> None:
        store = QueueStore()
        assert store.get_status_record("nobody") is None
        store.close()

    def test_submitted_detail_is_tx_id(self) -> None:
        store = QueueStore()
        store.add_to_queue(make_operation("bar"))
        store.update_status(["bar"], RecordStatus.submitted("txhash"))

        record = store.get_status_record("bar")
        assert record.status == RecordStatus.submitted("txhash")
        store.close()

    def test_error_status_round_trips(self) -> None:
        store = QueueStore()
        index = store.add_to_queue(make_operation("bar"))
        store.set_record_status(index, RecordStatus.error("disk full"))

        record = store.get_status_record("bar")
        assert record.status.kind == QueueStatus.ERROR
        assert record.status.detail == "disk full"
        assert record.status.render() == "error:disk full"
        store.close()


class TestSubmitterLogProperty:
    """
    Property-based tests for submitter accounting.
    """

    @given(
        ip_counts=st.dictionaries(
            st.sampled_from(["10.0.0.1", "10.0.0.2", "192.168.1.7"]),
            st.integers(min_value=1, max_value=5),
            min_size=1,
        )
    )
    @settings(max_examples=50)
    def test_ip_counts_match_logged_submissions(self, ip_counts: dict[str, int]) -> None:
        """
        Property 8: ip_count equals the number of submissions logged for that IP.
        """
        store = QueueStore()
        n = 0
        for ip, count in ip_counts.items():
            for _ in range(count):
                index = store.add_to_queue(make_operation(f"name-{n}"))
                store.log_submitter(SubmitterRecord(ip, TEST_ADDRESS, index))
                n += 1

        for ip, count in ip_counts.items():
            assert store.ip_count(ip) == count
        assert store.owner_count(TEST_ADDRESS) == n
        assert store.owner_count(TEST_ADDRESS_2) == 0
        store.close()

    def test_log_submitter_requires_matching_queue_row(self) -> None:
        store = QueueStore()
        index = store.add_to_queue(make_operation("bar", owner=TEST_ADDRESS))

        with pytest.raises(PersistenceError) as exc_info:
            store.log_submitter(SubmitterRecord("10.0.0.1", TEST_ADDRESS_2, index))
        assert exc_info.value.code == "no_queue_entry"

        with pytest.raises(PersistenceError):
            store.log_submitter(SubmitterRecord("10.0.0.1", TEST_ADDRESS, index + 1))

        assert store.owner_count(TEST_ADDRESS_2) == 0
        store.close()

    def test_unknown_ip_is_allowed(self) -> None:
        store = QueueStore()
        index = store.add_to_queue(make_operation("bar"))
        store.log_submitter(SubmitterRecord(None, TEST_ADDRESS, index))
        assert store.owner_count(TEST_ADDRESS) == 1
        store.close()


class TestListingProperty:
    """
    Tests for paged, time-bounded listing.
    """

    def test_listing_respects_cursor_window_and_page_size(self) -> None:
        store = QueueStore()
        now = datetime.now(timezone.utc)
        old = store.add_to_queue(make_operation("old"), received_at=now - timedelta(days=30))
        indices = [
            store.add_to_queue(make_operation(f"new-{i}"), received_at=now)
            for i in range(SUBDOMAIN_PAGE_SIZE + 5)
        ]

        page = store.list_subdomains(0, now - timedelta(days=7))
        assert len(page) == SUBDOMAIN_PAGE_SIZE
        assert old not in [record.queue_index for record in page]
        assert [record.queue_index for record in page] == indices[:SUBDOMAIN_PAGE_SIZE]

        rest = store.list_subdomains(indices[SUBDOMAIN_PAGE_SIZE], now - timedelta(days=7))
        assert [record.queue_index for record in rest] == indices[SUBDOMAIN_PAGE_SIZE:]
        store.close()


class TestTrackedTransactionProperty:
    """
    Tests for batch submission bookkeeping.
    """

    def test_record_submission_marks_only_received_rows(self) -> None:
        store = QueueStore()
        store.add_to_queue(make_operation("foo"))
        errored = store.add_to_queue(make_operation("bar"))
        store.set_record_status(errored, RecordStatus.error("failed"))

        store.record_submission(["foo", "bar"], "txhash", "$ORIGIN bar.id\n")

        assert store.get_status_record("foo").status == RecordStatus.submitted("txhash")
        assert store.get_status_record("bar").status.kind == QueueStatus.ERROR
        tracked = store.get_tracked_transactions()
        assert [(tx.tx_hash, tx.block_height) for tx in tracked] == [("txhash", 0)]

    def test_failed_submission_record_changes_nothing(self) -> None:
        store = QueueStore()
        store.add_to_queue(make_operation("foo"))
        store.track_transaction("txhash", "zonefile")

        # duplicate tx hash violates the unique constraint
        with pytest.raises(PersistenceError):
            store.record_submission(["foo"], "txhash", "zonefile")

        assert store.get_status_record("foo").status == RecordStatus.received()
        assert len(store.get_tracked_transactions()) == 1

    def test_heights_persist_and_flush_removes(self) -> None:
        store = QueueStore()
        store.track_transaction("tx-a", "zf-a")
        store.track_transaction("tx-b", "zf-b")

        store.update_transaction_heights({"tx-a": 289})
        heights = {tx.tx_hash: tx.block_height for tx in store.get_tracked_transactions()}
        assert heights == {"tx-a": 289, "tx-b": 0}

        store.flush_tracked_transactions(["tx-a"])
        assert [tx.tx_hash for tx in store.get_tracked_transactions()] == ["tx-b"]

    def test_backups_are_append_only(self) -> None:
        store = QueueStore()
        store.backup_zonefile("zf-1")
        store.backup_zonefile("zf-1")
        assert store.backup_count() == 2


class TestDurabilityProperty:
    """
    Tests that the queue survives reopening the database file.
    """

    def test_reopen_keeps_queue(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            db_path = Path(tmpdir) / "nested" / "queue.db"
            store = QueueStore(db_path)
            store.add_to_queue(make_operation("bar"))
            store.track_transaction("txhash", "zonefile")
            store.close()

            reopened = QueueStore(db_path)
            assert reopened.get_status_record("bar") is not None
            assert len(reopened.get_tracked_transactions()) == 1
            reopened.close()
