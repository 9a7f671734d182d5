# src/tablesweep/contracts/events.py
"""Observability events emitted during a sweep.

Events are plain frozen dataclasses published on the EventBus. The CLI
subscribes formatters to them; library callers can subscribe their own
handlers or pass a NullEventBus.
"""

from __future__ import annotations

from dataclasses import dataclass

from tablesweep.contracts.entities import UnitResult


@dataclass(frozen=True, slots=True)
class DeleteProgress:
    """Emitted by a unit every ``progress_interval`` executed batches.

    Attributes:
        table_id: "<account>/<table>" of the emitting unit
        batches: Batches executed so far by this unit
        total_count: Deletes attempted so far by this unit
        error_count: Deletes that reported a non-success status so far
        elapsed_seconds: Time since this unit started deleting
    """

    table_id: str
    batches: int
    total_count: int
    error_count: int
    elapsed_seconds: float


@dataclass(frozen=True, slots=True)
class TableSkipped:
    """Emitted when a table cannot be resolved and its unit is skipped."""

    table_id: str
    reason: str


@dataclass(frozen=True, slots=True)
class UnitFinished:
    """Emitted once per unit, from the dispatching thread, as it completes."""

    unit: UnitResult


@dataclass(frozen=True, slots=True)
class SweepSummary:
    """Final metrics emitted when a sweep finishes.

    Attributes:
        total_count: Deletes attempted across all units (partial units included)
        error_count: Deletes that reported a non-success status
        tables: Number of (account, table) units dispatched
        skipped: Units skipped because the table could not be resolved
        failed: Units aborted by a query or transaction failure
        cancelled: Whether the sweep was interrupted
        duration_seconds: Wall-clock time of the sweep
        exit_code: Process exit code the CLI will use
    """

    total_count: int
    error_count: int
    tables: int
    skipped: int
    failed: int
    cancelled: bool
    duration_seconds: float
    exit_code: int
