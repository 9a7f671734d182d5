# src/tablesweep/contracts/errors.py
"""Error taxonomy for sweep runs.

Structural failures abort only the (account, table) unit that hit them;
per-operation delete failures are never raised, they are counted.

    SweepError
    ├── TableResolutionError   table/account not found or unreachable -> unit skipped
    ├── QueryError             page fetch failed mid-stream          -> unit failed
    ├── BatchTransactionError  whole transaction rejected            -> unit failed
    └── SweepCancelled         cancellation observed at a boundary   -> unit cancelled

ClientDependencyError is separate: it is raised before any unit starts and
maps to a dedicated process exit code.
"""

from __future__ import annotations


class SweepError(Exception):
    """Base class for errors that end a single sweep unit."""

    def __init__(self, message: str, *, table_id: str | None = None) -> None:
        super().__init__(message)
        self.table_id = table_id


class TableResolutionError(SweepError):
    """Raised when a table or its account cannot be resolved.

    Not fatal to the run: the affected table is skipped with a warning.
    """


class QueryError(SweepError):
    """Raised when fetching a page of entity keys fails."""


class BatchTransactionError(SweepError):
    """Raised when the service rejects an entire delete transaction.

    Attributes:
        partition_key: Partition the rejected batch targeted
        operation_count: Number of operations in the rejected batch
    """

    def __init__(
        self,
        message: str,
        *,
        table_id: str | None = None,
        partition_key: str | None = None,
        operation_count: int = 0,
    ) -> None:
        super().__init__(message, table_id=table_id)
        self.partition_key = partition_key
        self.operation_count = operation_count


class SweepCancelled(SweepError):
    """Raised at a page-fetch or batch-execute boundary once cancellation is requested.

    This is a control-flow signal, not a failure. It unwinds the pipeline
    without flushing cached batches.
    """


class ClientDependencyError(ImportError):
    """Raised when a required storage client library is not installed."""
