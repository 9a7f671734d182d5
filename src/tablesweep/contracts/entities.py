# src/tablesweep/contracts/entities.py
"""Typed records flowing through a sweep pipeline.

Data flows strictly downstream:

    PageFetcher --EntityRef--> BatchAccumulator --PendingBatch--> BatchDeleter --DeleteResult-->

One pipeline runs per (account, table) pair. The dispatcher folds the
per-pair UnitResults into a SweepResult.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from tablesweep.pipeline.protocols import TableHandle

# Status code the table service returns for a committed delete.
NO_CONTENT = 204

# Maximum operations the service accepts in one entity-group transaction.
MAX_TRANSACTION_SIZE = 100


@dataclass(frozen=True, slots=True)
class BatchKey:
    """Grouping key for transactional batches.

    Every operation in a transaction must share table and partition, so the
    key is exactly that pair. Uses the table's stable identity string rather
    than the handle object so keys compare by value.
    """

    table_id: str
    partition_key: str


@dataclass(frozen=True, slots=True)
class EntityRef:
    """One row to delete, as yielded by the page fetcher."""

    table: TableHandle
    partition_key: str
    row_key: str

    @property
    def batch_key(self) -> BatchKey:
        return BatchKey(self.table.table_id, self.partition_key)


@dataclass(frozen=True, slots=True)
class DeleteOperation:
    """A single delete inside a transaction."""

    partition_key: str
    row_key: str


@dataclass(slots=True)
class PendingBatch:
    """Delete operations for one (table, partition) awaiting execution.

    Owned by the accumulator's cache until emitted; after that the deleter
    owns it and the cache keeps no reference.

    Attributes:
        key: Table/partition this batch is pinned to
        table: Handle used to execute the transaction
        capacity: Maximum operations (the configured batch size)
        sequence: Cache insertion order, used to break eviction ties
        operations: Delete operations in arrival order
    """

    key: BatchKey
    table: TableHandle
    capacity: int
    sequence: int = 0
    operations: list[DeleteOperation] = field(default_factory=list)

    @property
    def remaining_capacity(self) -> int:
        """Operations that can still be appended before the batch is full."""
        return self.capacity - len(self.operations)

    @property
    def is_full(self) -> bool:
        return len(self.operations) >= self.capacity

    def append(self, entity: EntityRef) -> None:
        """Append a delete for ``entity``.

        Raises:
            ValueError: If the entity belongs to another table/partition or the batch is full.
        """
        if entity.batch_key != self.key:
            raise ValueError(f"Entity for {entity.batch_key} cannot join batch for {self.key}")
        if self.is_full:
            raise ValueError(f"Batch for {self.key} is full ({self.capacity} operations)")
        self.operations.append(DeleteOperation(entity.partition_key, entity.row_key))

    def __len__(self) -> int:
        return len(self.operations)


@dataclass(frozen=True, slots=True)
class QueryPage:
    """One page of a key-only projection query.

    Attributes:
        keys: (partition_key, row_key) pairs in service order
        continuation_token: Opaque cursor for the next page, None when exhausted
    """

    keys: list[tuple[str, str]]
    continuation_token: Any | None = None


@dataclass(frozen=True, slots=True)
class DeleteResult:
    """Attempted and failed delete counts. Adding two results sums both counts."""

    total_count: int = 0
    error_count: int = 0

    def __add__(self, other: DeleteResult) -> DeleteResult:
        if not isinstance(other, DeleteResult):
            return NotImplemented
        return DeleteResult(
            total_count=self.total_count + other.total_count,
            error_count=self.error_count + other.error_count,
        )


class UnitStatus(StrEnum):
    """Terminal state of one (account, table) pipeline."""

    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class UnitResult:
    """Outcome of one (account, table) pipeline.

    ``result`` holds whatever the deleter had counted when the unit ended,
    so failed and cancelled units still report their partial progress.
    """

    account: str
    table: str
    status: UnitStatus
    result: DeleteResult = DeleteResult()
    error: str | None = None

    @property
    def table_id(self) -> str:
        return f"{self.account}/{self.table}"


@dataclass(frozen=True, slots=True)
class SweepResult:
    """Aggregate over every unit of a sweep."""

    units: tuple[UnitResult, ...]
    duration_seconds: float

    @property
    def result(self) -> DeleteResult:
        return sum((unit.result for unit in self.units), DeleteResult())

    @property
    def total_count(self) -> int:
        return self.result.total_count

    @property
    def error_count(self) -> int:
        return self.result.error_count

    @property
    def failed_units(self) -> tuple[UnitResult, ...]:
        return tuple(u for u in self.units if u.status == UnitStatus.FAILED)

    @property
    def skipped_units(self) -> tuple[UnitResult, ...]:
        return tuple(u for u in self.units if u.status == UnitStatus.SKIPPED)

    @property
    def cancelled(self) -> bool:
        return any(u.status == UnitStatus.CANCELLED for u in self.units)
