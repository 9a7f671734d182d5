# src/tablesweep/pipeline/__init__.py
"""Sweep pipeline: fetch keys, batch by partition, delete, fan out per table."""

from tablesweep.pipeline.accumulator import BatchAccumulator, BatchCache
from tablesweep.pipeline.deleter import BatchDeleter
from tablesweep.pipeline.dispatcher import JobDispatcher, exit_code_for, shutdown_handler_context
from tablesweep.pipeline.fetcher import PageFetcher
from tablesweep.pipeline.protocols import KEY_COLUMNS, TableHandle, TableStore

__all__ = [
    "KEY_COLUMNS",
    "BatchAccumulator",
    "BatchCache",
    "BatchDeleter",
    "JobDispatcher",
    "PageFetcher",
    "TableHandle",
    "TableStore",
    "exit_code_for",
    "shutdown_handler_context",
]
