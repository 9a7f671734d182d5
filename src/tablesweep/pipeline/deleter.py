# src/tablesweep/pipeline/deleter.py
"""Executes pending batches as atomic delete transactions."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Iterable

import structlog

from tablesweep.contracts.entities import NO_CONTENT, DeleteResult, PendingBatch
from tablesweep.contracts.errors import SweepCancelled
from tablesweep.contracts.events import DeleteProgress

slog = structlog.get_logger(__name__)

ProgressCallback = Callable[[DeleteProgress], None]


class BatchDeleter:
    """Pulls PendingBatches and submits each as one transaction.

    Every operation counts toward ``total_count`` whatever its outcome; an
    operation answered with anything other than 204 counts toward
    ``error_count``. A rejected transaction raises BatchTransactionError and
    ends the unit. Nothing is retried.

    Counts are kept on the instance while ``execute()`` runs, so a caller that
    catches a unit-ending error can still read ``result`` for partial progress.

    Args:
        progress_interval: Emit a DeleteProgress every N batches; 0 disables
        on_progress: Receives DeleteProgress events
        cancel_event: When set, the next batch raises SweepCancelled instead of executing
    """

    def __init__(
        self,
        *,
        progress_interval: int = 0,
        on_progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        if progress_interval < 0:
            raise ValueError(f"progress_interval must be >= 0, got {progress_interval}")
        self._progress_interval = progress_interval
        self._on_progress = on_progress
        self._cancel_event = cancel_event
        self.batches_executed = 0
        self.total_count = 0
        self.error_count = 0
        self._started_at: float | None = None

    @property
    def result(self) -> DeleteResult:
        """Counts so far (final once execute() has returned)."""
        return DeleteResult(total_count=self.total_count, error_count=self.error_count)

    def execute(self, batches: Iterable[PendingBatch]) -> DeleteResult:
        """Submit every batch in ``batches``.

        Raises:
            BatchTransactionError: If the store rejects a whole transaction.
            SweepCancelled: If cancellation is observed before a batch executes.
        """
        self._started_at = time.monotonic()

        for batch in batches:
            if self._cancel_event is not None and self._cancel_event.is_set():
                raise SweepCancelled(
                    f"Cancelled before executing batch {self.batches_executed + 1}",
                    table_id=batch.key.table_id,
                )
            self._execute_batch(batch)

        return self.result

    def _execute_batch(self, batch: PendingBatch) -> None:
        statuses = batch.table.submit_deletes(batch.key.partition_key, batch.operations)
        if len(statuses) != len(batch.operations):
            raise RuntimeError(
                f"Store returned {len(statuses)} statuses for {len(batch.operations)} operations "
                f"({batch.key.table_id}, partition '{batch.key.partition_key}')"
            )

        failed = sum(1 for status in statuses if status != NO_CONTENT)
        self.batches_executed += 1
        self.total_count += len(batch.operations)
        self.error_count += failed

        if failed:
            slog.warning(
                "delete_operations_failed",
                table_id=batch.key.table_id,
                partition_key=batch.key.partition_key,
                failed=failed,
                operations=len(batch.operations),
            )

        if self._progress_interval and self.batches_executed % self._progress_interval == 0:
            self._report_progress(batch.key.table_id)

    def _report_progress(self, table_id: str) -> None:
        started_at = self._started_at if self._started_at is not None else time.monotonic()
        progress = DeleteProgress(
            table_id=table_id,
            batches=self.batches_executed,
            total_count=self.total_count,
            error_count=self.error_count,
            elapsed_seconds=time.monotonic() - started_at,
        )
        slog.debug("delete_progress", table_id=table_id, batches=progress.batches, total_count=progress.total_count)
        if self._on_progress is not None:
            self._on_progress(progress)
