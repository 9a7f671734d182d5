# src/tablesweep/pipeline/accumulator.py
"""Partition-aware batching with a bounded number of pending deletes.

Entity keys arrive in whatever order the service returns them, spread over
arbitrarily many partitions. A delete transaction may only touch one
(table, partition), so keys are parked in per-partition PendingBatches until
a batch fills up. To bound memory, the total number of parked operations is
capped at ``cache_size``; when the cap is exceeded the fullest pending batch
is flushed early.

Flushing the fullest batch moves the most operations per forced transaction,
and that batch was closest to filling up and flushing on its own anyway.
"""

from __future__ import annotations

import heapq
from collections.abc import Iterable, Iterator

import structlog

from tablesweep.contracts.entities import BatchKey, EntityRef, PendingBatch

slog = structlog.get_logger(__name__)


class BatchCache:
    """Pending batches keyed by (table, partition), with fullest-first eviction.

    Invariants:
        - total_pending == sum(len(batch) for batch in cached batches)
        - no cached batch is empty or full (full batches leave via add())
        - evict() returns the batch with the smallest remaining capacity;
          ties go to the batch inserted into the cache earliest

    Eviction uses a lazy min-heap of (remaining_capacity, sequence, key)
    entries. Every append pushes a fresh entry for its batch; entries whose
    batch has since grown, been emitted, or been replaced are discarded when
    they surface. The heap is rebuilt when stale entries dominate it.
    """

    def __init__(self, batch_size: int) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self._batch_size = batch_size
        self._batches: dict[BatchKey, PendingBatch] = {}
        self._heap: list[tuple[int, int, BatchKey]] = []
        self._next_sequence = 0
        self.total_pending = 0

    def __len__(self) -> int:
        return len(self._batches)

    def __contains__(self, key: BatchKey) -> bool:
        return key in self._batches

    def batches(self) -> list[PendingBatch]:
        """Snapshot of cached batches in insertion order."""
        return list(self._batches.values())

    def add(self, entity: EntityRef) -> PendingBatch | None:
        """Append a delete for ``entity`` to its partition's batch.

        Returns:
            The batch, removed from the cache, if this append filled it;
            otherwise None.
        """
        key = entity.batch_key
        batch = self._batches.get(key)
        if batch is None:
            batch = PendingBatch(key=key, table=entity.table, capacity=self._batch_size, sequence=self._next_sequence)
            self._next_sequence += 1
            self._batches[key] = batch

        batch.append(entity)
        self.total_pending += 1

        if batch.is_full:
            self._remove(batch)
            return batch

        heapq.heappush(self._heap, (batch.remaining_capacity, batch.sequence, key))
        self._maybe_compact()
        return None

    def evict(self) -> PendingBatch:
        """Remove and return the fullest cached batch.

        Raises:
            LookupError: If the cache is empty.
        """
        while self._heap:
            remaining, sequence, key = heapq.heappop(self._heap)
            batch = self._batches.get(key)
            if batch is None or batch.sequence != sequence or batch.remaining_capacity != remaining:
                continue  # stale entry
            self._remove(batch)
            return batch
        raise LookupError("evict() called on an empty BatchCache")

    def drain(self) -> Iterator[PendingBatch]:
        """Remove and yield every cached batch in insertion order, leaving the cache empty."""
        while self._batches:
            key = next(iter(self._batches))
            batch = self._batches[key]
            self._remove(batch)
            yield batch
        self._heap.clear()

    def _remove(self, batch: PendingBatch) -> None:
        del self._batches[batch.key]
        self.total_pending -= len(batch)

    def _maybe_compact(self) -> None:
        # Each live batch has exactly one valid entry; the rest are stale.
        if len(self._heap) > 4 * len(self._batches) + self._batch_size:
            self._heap = [(b.remaining_capacity, b.sequence, k) for k, b in self._batches.items()]
            heapq.heapify(self._heap)


class BatchAccumulator:
    """Turns a stream of EntityRefs into a stream of single-partition batches.

    Per entity:
        1. Append to the batch for its (table, partition), creating it if needed.
        2. If that batch is now full, emit it.
        3. Otherwise, if more than ``cache_size`` operations are pending, emit
           the fullest cached batch.
    At end of input every remaining batch is emitted and the cache is empty.

    Pending operations therefore never exceed ``cache_size + 1`` at any point,
    and never exceed ``cache_size`` between entities.

    The accumulator is lazy: it pulls the next entity only after the consumer
    has taken the previous emitted batch. If the upstream iterator raises
    (query failure, cancellation), nothing further is emitted.
    """

    def __init__(self, *, batch_size: int, cache_size: int) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        if cache_size < 1:
            raise ValueError(f"cache_size must be >= 1, got {cache_size}")
        self._batch_size = batch_size
        self._cache_size = cache_size
        self.entities_consumed = 0
        self.batches_emitted = 0
        self.evictions = 0
        self.peak_pending = 0

    def accumulate(self, entities: Iterable[EntityRef]) -> Iterator[PendingBatch]:
        """Lazily group ``entities`` into batches of at most ``batch_size`` operations."""
        cache = BatchCache(self._batch_size)

        for entity in entities:
            self.entities_consumed += 1
            full = cache.add(entity)
            self.peak_pending = max(self.peak_pending, cache.total_pending)

            if full is not None:
                self.batches_emitted += 1
                yield full
            elif cache.total_pending > self._cache_size:
                evicted = cache.evict()
                self.evictions += 1
                self.batches_emitted += 1
                slog.debug(
                    "batch_evicted",
                    table_id=evicted.key.table_id,
                    partition_key=evicted.key.partition_key,
                    operations=len(evicted),
                    pending=cache.total_pending,
                )
                yield evicted

        for batch in cache.drain():
            self.batches_emitted += 1
            yield batch
