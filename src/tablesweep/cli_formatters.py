# src/tablesweep/cli_formatters.py
"""CLI event formatter factories for sweep output.

Each factory returns a dict mapping event types to handler callables,
suitable for subscribing to an EventBus. Console handlers print
human-readable lines; JSON handlers print one JSON object per line.
"""

from __future__ import annotations

import json
from collections.abc import Callable

import typer

from tablesweep.contracts.entities import UnitStatus
from tablesweep.contracts.events import DeleteProgress, SweepSummary, TableSkipped, UnitFinished
from tablesweep.core.events import EventBusProtocol


def _format_duration(seconds: float) -> str:
    return f"{seconds:.2f}s" if seconds < 60 else f"{seconds / 60:.1f}m"


def create_console_formatters() -> dict[type, Callable[..., None]]:
    """Create console formatters for human-readable CLI output."""

    def _format_progress(event: DeleteProgress) -> None:
        rate = event.total_count / event.elapsed_seconds if event.elapsed_seconds > 0 else 0
        typer.echo(
            f"  [{event.table_id}] {event.batches:,} batches | "
            f"{event.total_count:,} deleted | "
            f"✗{event.error_count:,} | "
            f"{rate:.0f} entities/sec"
        )

    def _format_table_skipped(event: TableSkipped) -> None:
        typer.echo(f"[{event.table_id}] ⚠ Skipped: {event.reason}", err=True)

    def _format_unit_finished(event: UnitFinished) -> None:
        unit = event.unit
        if unit.status == UnitStatus.SKIPPED:
            return  # already reported by TableSkipped
        symbols = {
            UnitStatus.COMPLETED: "✓",
            UnitStatus.FAILED: "✗",
            UnitStatus.CANCELLED: "⚠",
        }
        line = (
            f"[{unit.table_id}] {symbols[unit.status]} {unit.status.value.capitalize()}: "
            f"{unit.result.total_count:,} attempted, {unit.result.error_count:,} errors"
        )
        if unit.error:
            line += f" ({unit.error})"
        typer.echo(line, err=unit.status == UnitStatus.FAILED)

    def _format_summary(event: SweepSummary) -> None:
        status = "CANCELLED" if event.cancelled else "COMPLETED"
        symbol = "⚠" if event.cancelled or event.failed or event.error_count else "✓"
        typer.echo(
            f"\n{symbol} Sweep {status}: "
            f"{event.total_count:,} deletes attempted | "
            f"✗{event.error_count:,} errors | "
            f"{event.tables - event.skipped - event.failed} of {event.tables} tables completed, "
            f"{event.skipped} skipped, {event.failed} failed | "
            f"{_format_duration(event.duration_seconds)} total"
        )

    return {
        DeleteProgress: _format_progress,
        TableSkipped: _format_table_skipped,
        UnitFinished: _format_unit_finished,
        SweepSummary: _format_summary,
    }


def create_json_formatters() -> dict[type, Callable[..., None]]:
    """Create JSON formatters for structured CLI output."""

    def _format_progress_json(event: DeleteProgress) -> None:
        rate = event.total_count / event.elapsed_seconds if event.elapsed_seconds > 0 else 0
        typer.echo(
            json.dumps(
                {
                    "event": "progress",
                    "table_id": event.table_id,
                    "batches": event.batches,
                    "total_count": event.total_count,
                    "error_count": event.error_count,
                    "elapsed_seconds": event.elapsed_seconds,
                    "entities_per_second": rate,
                }
            )
        )

    def _format_table_skipped_json(event: TableSkipped) -> None:
        typer.echo(json.dumps({"event": "table_skipped", "table_id": event.table_id, "reason": event.reason}))

    def _format_unit_finished_json(event: UnitFinished) -> None:
        unit = event.unit
        typer.echo(
            json.dumps(
                {
                    "event": "unit_finished",
                    "account": unit.account,
                    "table": unit.table,
                    "status": unit.status.value,
                    "total_count": unit.result.total_count,
                    "error_count": unit.result.error_count,
                    "error": unit.error,
                }
            )
        )

    def _format_summary_json(event: SweepSummary) -> None:
        typer.echo(
            json.dumps(
                {
                    "event": "sweep_completed",
                    "total_count": event.total_count,
                    "error_count": event.error_count,
                    "tables": event.tables,
                    "skipped": event.skipped,
                    "failed": event.failed,
                    "cancelled": event.cancelled,
                    "duration_seconds": event.duration_seconds,
                    "exit_code": event.exit_code,
                }
            )
        )

    return {
        DeleteProgress: _format_progress_json,
        TableSkipped: _format_table_skipped_json,
        UnitFinished: _format_unit_finished_json,
        SweepSummary: _format_summary_json,
    }


def subscribe_formatters(
    event_bus: EventBusProtocol,
    formatters: dict[type, Callable[..., None]],
) -> None:
    """Subscribe all formatters to the event bus."""
    for event_type, handler in formatters.items():
        event_bus.subscribe(event_type, handler)
