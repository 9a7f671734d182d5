# src/tablesweep/pipeline/dispatcher.py
"""Runs one sweep pipeline per (account, table) pair in parallel.

Each unit is an independent PageFetcher -> BatchAccumulator -> BatchDeleter
chain on its own worker thread. Units share nothing except the cancel event
and the event bus; results are collected on the dispatching thread as units
finish, so the aggregate is only ever written from one place.
"""

from __future__ import annotations

import signal
import threading
import time
from collections.abc import Iterator, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from contextlib import contextmanager, nullcontext
from typing import Any

import structlog

from tablesweep.contracts.entities import MAX_TRANSACTION_SIZE, SweepResult, UnitResult, UnitStatus
from tablesweep.contracts.errors import SweepCancelled, SweepError
from tablesweep.contracts.events import SweepSummary, TableSkipped, UnitFinished
from tablesweep.core.events import EventBusProtocol, NullEventBus
from tablesweep.pipeline.accumulator import BatchAccumulator
from tablesweep.pipeline.deleter import BatchDeleter
from tablesweep.pipeline.fetcher import PageFetcher
from tablesweep.pipeline.protocols import TableStore

slog = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_CANCELLED = 130


@contextmanager
def shutdown_handler_context() -> Iterator[threading.Event]:
    """Install SIGINT/SIGTERM handlers that set a shutdown event.

    On first signal: sets the event and restores the default handlers, so a
    second Ctrl-C raises KeyboardInterrupt and a second SIGTERM terminates.

    Outside the main thread signal registration is skipped (signal.signal()
    raises ValueError there). The yielded Event still works; it just won't be
    triggered by OS signals.

    Original handlers are restored on exit.
    """
    shutdown_event = threading.Event()

    if threading.current_thread() is not threading.main_thread():
        yield shutdown_event
        return

    original_sigint = signal.getsignal(signal.SIGINT)
    original_sigterm = signal.getsignal(signal.SIGTERM)

    def _handler(signum: int, frame: Any) -> None:
        shutdown_event.set()
        signal.signal(signal.SIGINT, signal.default_int_handler)
        signal.signal(signal.SIGTERM, signal.SIG_DFL)

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)
    try:
        yield shutdown_event
    finally:
        signal.signal(signal.SIGINT, original_sigint)
        signal.signal(signal.SIGTERM, original_sigterm)


def exit_code_for(result: SweepResult) -> int:
    """Process exit code for a finished sweep.

    Per-entity errors, failed units and skipped tables are reported in the
    summary and still exit 0; only an interrupted sweep exits non-zero.
    """
    return EXIT_CANCELLED if result.cancelled else EXIT_OK


class JobDispatcher:
    """Fans a sweep out over every (account, table) pair and joins the results.

    Example:
        dispatcher = JobDispatcher(page_size=10_000, cache_size=50_000, event_bus=bus)
        result = dispatcher.run(stores, ["AuditLog", "Events"])
        print(result.total_count, result.error_count)

    Args:
        page_size: Entities per query page (0 = service default)
        cache_size: Pending-operation bound for each unit's accumulator
        batch_size: Operations per transaction
        max_pages: Per-table page cap (0 = unlimited)
        progress_interval: Batches between DeleteProgress events (0 = off)
        max_workers: Parallel unit cap; defaults to one thread per pair
        event_bus: Receives DeleteProgress, TableSkipped, UnitFinished and SweepSummary
    """

    def __init__(
        self,
        *,
        page_size: int,
        cache_size: int,
        batch_size: int = MAX_TRANSACTION_SIZE,
        max_pages: int = 0,
        progress_interval: int = 0,
        max_workers: int | None = None,
        event_bus: EventBusProtocol | None = None,
    ) -> None:
        if max_workers is not None and max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self._page_size = page_size
        self._cache_size = cache_size
        self._batch_size = batch_size
        self._max_pages = max_pages
        self._progress_interval = progress_interval
        self._max_workers = max_workers
        self._events: EventBusProtocol = event_bus if event_bus is not None else NullEventBus()

    def run(
        self,
        stores: Sequence[TableStore],
        tables: Sequence[str],
        *,
        cancel_event: threading.Event | None = None,
    ) -> SweepResult:
        """Sweep every table of every store and wait for all units.

        Args:
            stores: One TableStore per account
            tables: Table names, swept in every account
            cancel_event: External cancellation. When None, SIGINT/SIGTERM
                handlers are installed for the duration of the run.

        Returns:
            SweepResult with one UnitResult per pair, in pair order.
        """
        pairs = [(store, table) for store in stores for table in tables]
        started = time.monotonic()

        shutdown_ctx = nullcontext(cancel_event) if cancel_event is not None else shutdown_handler_context()
        with shutdown_ctx as active_event:
            units = self._run_units(pairs, active_event)

        result = SweepResult(units=tuple(units), duration_seconds=time.monotonic() - started)
        exit_code = exit_code_for(result)
        slog.info(
            "sweep_finished",
            total_count=result.total_count,
            error_count=result.error_count,
            units=len(units),
            failed=len(result.failed_units),
            skipped=len(result.skipped_units),
            cancelled=result.cancelled,
        )
        self._events.emit(
            SweepSummary(
                total_count=result.total_count,
                error_count=result.error_count,
                tables=len(units),
                skipped=len(result.skipped_units),
                failed=len(result.failed_units),
                cancelled=result.cancelled,
                duration_seconds=result.duration_seconds,
                exit_code=exit_code,
            )
        )
        return result

    def _run_units(self, pairs: list[tuple[TableStore, str]], cancel_event: threading.Event) -> list[UnitResult]:
        if not pairs:
            return []

        results: list[UnitResult | None] = [None] * len(pairs)
        workers = min(self._max_workers or len(pairs), len(pairs))

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="tablesweep") as executor:
            futures: dict[Future[UnitResult], int] = {
                executor.submit(self.run_unit, store, table, cancel_event): index
                for index, (store, table) in enumerate(pairs)
            }
            for future in as_completed(futures):
                unit = future.result()
                results[futures[future]] = unit
                if unit.status == UnitStatus.SKIPPED:
                    self._events.emit(TableSkipped(table_id=unit.table_id, reason=unit.error or ""))
                self._events.emit(UnitFinished(unit=unit))

        return [unit for unit in results if unit is not None]

    def run_unit(self, store: TableStore, table_name: str, cancel_event: threading.Event | None = None) -> UnitResult:
        """Run one (account, table) pipeline to completion on the calling thread.

        Any error that ends the unit becomes a non-completed UnitResult
        carrying the counts reached so far, so one broken unit never hides
        the results of its siblings.
        """
        account = store.account_name

        if cancel_event is not None and cancel_event.is_set():
            return UnitResult(account, table_name, UnitStatus.CANCELLED, error="Cancelled before start")

        fetcher = PageFetcher(page_size=self._page_size, max_pages=self._max_pages, cancel_event=cancel_event)
        accumulator = BatchAccumulator(batch_size=self._batch_size, cache_size=self._cache_size)
        deleter = BatchDeleter(
            progress_interval=self._progress_interval,
            on_progress=self._events.emit,
            cancel_event=cancel_event,
        )

        with structlog.contextvars.bound_contextvars(account=account, table=table_name):
            slog.debug("unit_started")
            try:
                table = store.get_table(table_name)
                deleter.execute(accumulator.accumulate(fetcher.fetch(table)))
            except SweepCancelled as e:
                slog.warning("unit_cancelled", total_count=deleter.total_count)
                return UnitResult(account, table_name, UnitStatus.CANCELLED, deleter.result, str(e))
            except SweepError as e:
                slog.error(
                    "unit_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                    total_count=deleter.total_count,
                    error_count=deleter.error_count,
                )
                return UnitResult(account, table_name, UnitStatus.FAILED, deleter.result, str(e))
            except Exception as e:
                slog.exception(
                    "unit_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                    total_count=deleter.total_count,
                    error_count=deleter.error_count,
                )
                return UnitResult(account, table_name, UnitStatus.FAILED, deleter.result, f"{type(e).__name__}: {e}")

            if fetcher.skipped_reason is not None:
                return UnitResult(account, table_name, UnitStatus.SKIPPED, deleter.result, fetcher.skipped_reason)

            slog.info(
                "unit_completed",
                pages=fetcher.pages_fetched,
                batches=deleter.batches_executed,
                evictions=accumulator.evictions,
                total_count=deleter.total_count,
                error_count=deleter.error_count,
            )
            return UnitResult(account, table_name, UnitStatus.COMPLETED, deleter.result)
