"""Azure Table Storage support for tablesweep.

Provides credential configuration (AzureAuthConfig) and the TableStore
adapter (AzureTableStore). Supported authentication methods:
- Connection string
- SAS token
- Managed Identity (for Azure-hosted workloads)
- Service Principal (for automated/CI scenarios)

Import the submodules directly; this package stays import-light so settings
validation never pulls in the Azure SDK:
    from tablesweep.azure.table_store import AzureTableStore
"""
