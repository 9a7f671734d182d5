# tests/pipeline/test_deleter.py
"""Tests for BatchDeleter counting, failures, progress and cancellation."""

import threading

import pytest

from tablesweep.contracts.entities import NO_CONTENT, DeleteOperation, DeleteResult, EntityRef, PendingBatch
from tablesweep.contracts.errors import BatchTransactionError, SweepCancelled
from tablesweep.contracts.events import DeleteProgress
from tablesweep.pipeline.deleter import BatchDeleter
from tests.fixtures import FakeTableHandle


def make_batch(table: FakeTableHandle, partition_key: str, size: int, capacity: int = 100) -> PendingBatch:
    entity = EntityRef(table, partition_key, "r0")
    batch = PendingBatch(key=entity.batch_key, table=table, capacity=capacity)
    for i in range(size):
        batch.append(EntityRef(table, partition_key, f"r{i:04d}"))
    return batch


class TestCounting:
    def test_all_success_counts_every_operation(self) -> None:
        table = FakeTableHandle("acct", "Logs")
        batches = [make_batch(table, "P1", 100), make_batch(table, "P2", 40)]

        result = BatchDeleter().execute(batches)

        assert result == DeleteResult(total_count=140, error_count=0)
        assert table.deleted_count == 140
        assert [pk for pk, _ in table.transactions] == ["P1", "P2"]

    def test_non_success_statuses_are_counted_not_raised(self) -> None:
        def status_for(op: DeleteOperation) -> int:
            return 404 if op.row_key.endswith(("1", "3")) else NO_CONTENT

        table = FakeTableHandle("acct", "Logs", status_for=status_for)
        deleter = BatchDeleter()

        result = deleter.execute([make_batch(table, "P1", 10)])

        assert result.total_count == 10
        assert result.error_count == 2
        assert deleter.batches_executed == 1

    def test_empty_stream_returns_zero_counts(self) -> None:
        assert BatchDeleter().execute([]) == DeleteResult()

    def test_status_count_mismatch_is_a_programming_error(self) -> None:
        table = FakeTableHandle("acct", "Logs")
        table.submit_deletes = lambda partition_key, operations: [NO_CONTENT]  # type: ignore[method-assign]

        with pytest.raises(RuntimeError, match="1 statuses for 3 operations"):
            BatchDeleter().execute([make_batch(table, "P1", 3)])


class TestTransactionFailure:
    def test_rejected_transaction_propagates_with_partial_counts(self) -> None:
        table = FakeTableHandle("acct", "Logs", reject_on_transaction=2)
        deleter = BatchDeleter()
        batches = [make_batch(table, "P1", 100), make_batch(table, "P2", 30), make_batch(table, "P3", 5)]

        with pytest.raises(BatchTransactionError) as exc_info:
            deleter.execute(batches)

        assert exc_info.value.partition_key == "P2"
        assert exc_info.value.operation_count == 30
        assert deleter.result == DeleteResult(total_count=100, error_count=0)
        assert len(table.transactions) == 1


class TestProgress:
    def test_reports_every_n_batches(self) -> None:
        table = FakeTableHandle("acct", "Logs")
        events: list[DeleteProgress] = []
        deleter = BatchDeleter(progress_interval=2, on_progress=events.append)

        deleter.execute([make_batch(table, f"P{i}", 10) for i in range(5)])

        assert [e.batches for e in events] == [2, 4]
        assert [e.total_count for e in events] == [20, 40]
        assert all(e.table_id == "acct/Logs" for e in events)
        assert all(e.elapsed_seconds >= 0 for e in events)

    def test_zero_interval_disables_progress(self) -> None:
        table = FakeTableHandle("acct", "Logs")
        events: list[DeleteProgress] = []

        BatchDeleter(progress_interval=0, on_progress=events.append).execute([make_batch(table, "P1", 1)] * 3)

        assert events == []

    def test_rejects_negative_interval(self) -> None:
        with pytest.raises(ValueError):
            BatchDeleter(progress_interval=-1)


class TestCancellation:
    def test_cancel_stops_before_next_batch(self) -> None:
        event = threading.Event()
        table = FakeTableHandle("acct", "Logs", on_submit=lambda n: event.set())
        deleter = BatchDeleter(cancel_event=event)

        with pytest.raises(SweepCancelled):
            deleter.execute([make_batch(table, "P1", 10), make_batch(table, "P2", 10)])

        assert len(table.transactions) == 1
        assert deleter.result == DeleteResult(total_count=10, error_count=0)

    def test_cancel_before_start_executes_nothing(self) -> None:
        event = threading.Event()
        event.set()
        table = FakeTableHandle("acct", "Logs")

        with pytest.raises(SweepCancelled):
            BatchDeleter(cancel_event=event).execute([make_batch(table, "P1", 10)])

        assert table.transactions == []
