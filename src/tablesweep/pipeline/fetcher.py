# src/tablesweep/pipeline/fetcher.py
"""Paginated key-only query over one table.

The fetcher is the head of a unit's pull pipeline. It requests the next page
only when the consumer has taken every entity of the current one, so at most
one page of keys is held in memory per unit.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from typing import Any

import structlog

from tablesweep.contracts.entities import EntityRef
from tablesweep.contracts.errors import SweepCancelled, TableResolutionError
from tablesweep.pipeline.protocols import KEY_COLUMNS, TableHandle

slog = structlog.get_logger(__name__)


class PageFetcher:
    """Yields EntityRefs for a table, one service page at a time.

    Usage:
        fetcher = PageFetcher(page_size=10_000)
        for entity in fetcher.fetch(table):
            ...
        if fetcher.skipped_reason is not None:
            ...  # table could not be resolved

    Args:
        page_size: Maximum entities per page; 0 leaves the page size to the service
        max_pages: Stop after this many pages; 0 means unlimited
        cancel_event: When set, the next page fetch raises SweepCancelled
    """

    def __init__(
        self,
        *,
        page_size: int,
        max_pages: int = 0,
        cancel_event: threading.Event | None = None,
    ) -> None:
        if page_size < 0:
            raise ValueError(f"page_size must be >= 0, got {page_size}")
        if max_pages < 0:
            raise ValueError(f"max_pages must be >= 0, got {max_pages}")
        self._page_size = page_size
        self._max_pages = max_pages
        self._cancel_event = cancel_event
        self.pages_fetched = 0
        self.entities_fetched = 0
        self.skipped_reason: str | None = None

    def fetch(self, table: TableHandle) -> Iterator[EntityRef]:
        """Lazily yield every entity key of ``table``.

        Resolution runs once, on the first ``next()``. An unresolvable table
        yields nothing and records ``skipped_reason`` instead of raising.

        Raises:
            QueryError: If a page fetch fails (propagated from the handle).
            SweepCancelled: If cancellation is observed before a page fetch.
        """
        try:
            table.resolve()
        except TableResolutionError as e:
            self.skipped_reason = str(e)
            slog.warning("table_skipped", table_id=table.table_id, reason=str(e))
            return

        results_per_page = self._page_size if self._page_size > 0 else None
        continuation_token: Any | None = None

        while True:
            self._check_cancelled(table)
            page = table.query_keys(
                select=KEY_COLUMNS,
                results_per_page=results_per_page,
                continuation_token=continuation_token,
            )
            self.pages_fetched += 1
            slog.debug(
                "page_fetched",
                table_id=table.table_id,
                page=self.pages_fetched,
                entities=len(page.keys),
                has_more=page.continuation_token is not None,
            )

            for partition_key, row_key in page.keys:
                self.entities_fetched += 1
                yield EntityRef(table, partition_key, row_key)

            # An empty page with a token is legal (server-side timeout); keep going
            continuation_token = page.continuation_token
            if continuation_token is None:
                return
            if self._max_pages and self.pages_fetched >= self._max_pages:
                slog.info("max_pages_reached", table_id=table.table_id, max_pages=self._max_pages)
                return

    def _check_cancelled(self, table: TableHandle) -> None:
        if self._cancel_event is not None and self._cancel_event.is_set():
            raise SweepCancelled(f"Cancelled before fetching page {self.pages_fetched + 1}", table_id=table.table_id)
