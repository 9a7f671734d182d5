# src/tablesweep/azure/table_store.py
"""Azure Table Storage adapter for the sweep pipeline.

Implements TableStore/TableHandle on top of azure-data-tables:

- resolve():        one-row key-only TableClient.list_entities() page, so a
                    table-scoped SAS token is enough (no account-level list)
- query_keys():     TableClient.list_entities(select=..., results_per_page=...)
                    consumed one page at a time via by_page(continuation_token)
- submit_deletes(): TableClient.submit_transaction([("delete", entity), ...])

SDK exceptions are translated into the sweep error taxonomy so the pipeline
stays storage-agnostic.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from tablesweep.contracts.entities import NO_CONTENT, DeleteOperation, QueryPage
from tablesweep.contracts.errors import BatchTransactionError, QueryError, TableResolutionError
from tablesweep.pipeline.protocols import KEY_COLUMNS

if TYPE_CHECKING:
    from azure.data.tables import TableServiceClient

    from tablesweep.core.config import AccountSettings

logger = logging.getLogger(__name__)


class AzureTableHandle:
    """Handle for one table, sharing its account's service client."""

    def __init__(self, account_name: str, service: TableServiceClient, table_name: str) -> None:
        self._account_name = account_name
        self._table_name = table_name
        # get_table_client() only builds a client; no request is sent
        self._client = service.get_table_client(table_name)

    @property
    def table_id(self) -> str:
        return f"{self._account_name}/{self._table_name}"

    @property
    def table_name(self) -> str:
        return self._table_name

    def __repr__(self) -> str:
        return f"AzureTableHandle({self.table_id!r})"

    def resolve(self) -> None:
        from azure.core.exceptions import AzureError, ResourceNotFoundError

        try:
            pages = self._client.list_entities(select=list(KEY_COLUMNS), results_per_page=1).by_page()
            next(pages, None)
        except ResourceNotFoundError as e:
            raise TableResolutionError(
                f"Table '{self._table_name}' does not exist in account '{self._account_name}'",
                table_id=self.table_id,
            ) from e
        except AzureError as e:
            raise TableResolutionError(
                f"Table '{self._table_name}' in account '{self._account_name}' is not reachable: {e}",
                table_id=self.table_id,
            ) from e

        logger.debug("Resolved table %s", self.table_id)

    def query_keys(
        self,
        *,
        select: Sequence[str],
        results_per_page: int | None,
        continuation_token: Any | None,
    ) -> QueryPage:
        from azure.core.exceptions import AzureError

        try:
            pages = self._client.list_entities(
                select=list(select),
                results_per_page=results_per_page,
            ).by_page(continuation_token=continuation_token)
            page = next(pages, None)
            if page is None:
                return QueryPage(keys=[], continuation_token=None)
            keys = [(entity["PartitionKey"], entity["RowKey"]) for entity in page]
        except AzureError as e:
            raise QueryError(f"Query page failed for {self.table_id}: {e}", table_id=self.table_id) from e

        # Tables continuation tokens are {"PartitionKey": ..., "RowKey": ...} or None
        return QueryPage(keys=keys, continuation_token=pages.continuation_token)

    def submit_deletes(self, partition_key: str, operations: Sequence[DeleteOperation]) -> list[int]:
        from azure.core.exceptions import AzureError
        from azure.data.tables import TableTransactionError

        actions = [("delete", {"PartitionKey": op.partition_key, "RowKey": op.row_key}) for op in operations]
        try:
            self._client.submit_transaction(actions)
        except TableTransactionError as e:
            raise BatchTransactionError(
                f"Transaction rejected for {self.table_id} partition '{partition_key}': {e.message}",
                table_id=self.table_id,
                partition_key=partition_key,
                operation_count=len(actions),
            ) from e
        except AzureError as e:
            raise BatchTransactionError(
                f"Transaction failed for {self.table_id} partition '{partition_key}': {e}",
                table_id=self.table_id,
                partition_key=partition_key,
                operation_count=len(actions),
            ) from e

        # The SDK raises TableTransactionError when any sub-request fails, so a
        # returned changeset means every operation was answered with 204.
        return [NO_CONTENT] * len(actions)


class AzureTableStore:
    """TableStore backed by one account's TableServiceClient."""

    def __init__(self, account_name: str, service: TableServiceClient) -> None:
        self._account_name = account_name
        self._service = service

    @classmethod
    def from_settings(cls, account: AccountSettings) -> AzureTableStore:
        """Build a store from validated account settings.

        Raises:
            ClientDependencyError: If the Azure client libraries are missing.
        """
        service = account.auth_config().create_table_service_client()
        logger.debug("Created table service client for %s (%s)", account.name, account.endpoint)
        return cls(account.name, service)

    @property
    def account_name(self) -> str:
        return self._account_name

    def get_table(self, table_name: str) -> AzureTableHandle:
        return AzureTableHandle(self._account_name, self._service, table_name)

    def close(self) -> None:
        self._service.close()
