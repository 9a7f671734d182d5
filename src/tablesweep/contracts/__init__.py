"""Shared contracts: records, errors and events.

Everything that crosses a stage boundary is defined here so the pipeline,
the storage adapters and the CLI agree on one vocabulary.
"""

from tablesweep.contracts.entities import (
    MAX_TRANSACTION_SIZE,
    NO_CONTENT,
    BatchKey,
    DeleteOperation,
    DeleteResult,
    EntityRef,
    PendingBatch,
    QueryPage,
    SweepResult,
    UnitResult,
    UnitStatus,
)
from tablesweep.contracts.errors import (
    BatchTransactionError,
    ClientDependencyError,
    QueryError,
    SweepCancelled,
    SweepError,
    TableResolutionError,
)
from tablesweep.contracts.events import DeleteProgress, SweepSummary, TableSkipped, UnitFinished

__all__ = [
    "MAX_TRANSACTION_SIZE",
    "NO_CONTENT",
    "BatchKey",
    "BatchTransactionError",
    "ClientDependencyError",
    "DeleteOperation",
    "DeleteProgress",
    "DeleteResult",
    "EntityRef",
    "PendingBatch",
    "QueryError",
    "QueryPage",
    "SweepCancelled",
    "SweepError",
    "SweepResult",
    "SweepSummary",
    "TableResolutionError",
    "TableSkipped",
    "UnitFinished",
    "UnitResult",
    "UnitStatus",
]
