# src/tablesweep/pipeline/protocols.py
"""Storage contracts the sweep pipeline is written against.

The pipeline never imports a storage SDK. It talks to a TableStore (one per
account) and the TableHandles it hands out. The Azure adapter lives in
``tablesweep.azure.table_store``; tests use in-memory fakes.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from tablesweep.contracts.entities import DeleteOperation, QueryPage

# Columns requested by the key-only projection query.
KEY_COLUMNS: tuple[str, str] = ("PartitionKey", "RowKey")


@runtime_checkable
class TableHandle(Protocol):
    """One table in one account.

    Handles are cheap to create; nothing touches the network until
    ``resolve()``, ``query_keys()`` or ``submit_deletes()`` is called.
    Each call blocks the calling thread until the service answers.
    """

    @property
    def table_id(self) -> str:
        """Stable identity, "<account>/<table>". Part of every BatchKey."""
        ...

    @property
    def table_name(self) -> str: ...

    def resolve(self) -> None:
        """Check once that the table exists and its account is reachable.

        Raises:
            TableResolutionError: If it does not or is not.
        """
        ...

    def query_keys(
        self,
        *,
        select: Sequence[str],
        results_per_page: int | None,
        continuation_token: Any | None,
    ) -> QueryPage:
        """Fetch one page of the projection query.

        Args:
            select: Columns to return (the key columns)
            results_per_page: Page cap, or None for the service default
            continuation_token: Token from the previous page, None for the first

        Raises:
            QueryError: If the service call fails.
        """
        ...

    def submit_deletes(self, partition_key: str, operations: Sequence[DeleteOperation]) -> list[int]:
        """Execute ``operations`` as one atomic transaction.

        Returns:
            One status code per operation, in order.

        Raises:
            BatchTransactionError: If the service rejects the transaction.
        """
        ...


@runtime_checkable
class TableStore(Protocol):
    """One storage account."""

    @property
    def account_name(self) -> str: ...

    def get_table(self, table_name: str) -> TableHandle:
        """Return a handle for ``table_name`` without any I/O."""
        ...
