# src/tablesweep/azure/auth.py
"""Azure authentication configuration for table storage accounts.

Supports four authentication methods (mutually exclusive):
1. Connection string - Simple connection string auth
2. SAS token - Shared Access Signature token against the account endpoint
3. Managed Identity - For Azure-hosted workloads (DefaultAzureCredential)
4. Service Principal - For automated/CI scenarios (ClientSecretCredential)

Credentials should come from environment variables via ${VAR} expansion
in the settings file, not be written into it.

The SDK imports are deferred to client construction so that settings can
be validated without the Azure libraries installed. A missing library is
reported as ClientDependencyError, which the CLI maps to its own exit code.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Self, cast

from pydantic import BaseModel, model_validator

from tablesweep.contracts.errors import ClientDependencyError

if TYPE_CHECKING:
    from azure.data.tables import TableServiceClient

_TABLES_INSTALL_HINT = "azure-data-tables is required to sweep table storage. Install with: uv pip install azure-data-tables"
_IDENTITY_INSTALL_HINT = "azure-identity is required for {method} auth. Install with: uv pip install azure-identity"


def _is_set(value: str | None) -> bool:
    """Whitespace-only strings count as unset, matching validation."""
    return value is not None and bool(value.strip())


class AzureAuthConfig(BaseModel):
    """Credentials for one storage account's table endpoint.

    ``account_url`` is the table endpoint (https://<name>.table.core.windows.net
    or an emulator URL). It is ignored for connection-string auth, which
    carries its own endpoint.
    """

    model_config = {"extra": "forbid"}

    connection_string: str | None = None
    sas_token: str | None = None
    use_managed_identity: bool = False
    account_url: str | None = None
    tenant_id: str | None = None
    client_id: str | None = None
    client_secret: str | None = None

    @model_validator(mode="after")
    def validate_auth_method(self) -> Self:
        """Ensure exactly one auth method is configured.

        - Connection string requires connection_string
        - SAS token requires sas_token AND account_url
        - Managed Identity requires use_managed_identity=True AND account_url
        - Service Principal requires tenant_id, client_id, client_secret AND account_url

        Raises:
            ValueError: If zero or multiple auth methods are configured, or a
                service principal is only partially configured.
        """
        has_url = _is_set(self.account_url)
        sp_fields = {
            "tenant_id": self.tenant_id,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        methods = [
            _is_set(self.connection_string),
            _is_set(self.sas_token) and has_url,
            self.use_managed_identity and has_url,
            all(_is_set(v) for v in sp_fields.values()) and has_url,
        ]
        options = (
            "connection_string, sas_token + account_url, "
            "managed identity (use_managed_identity + account_url), or "
            "service principal (tenant_id + client_id + client_secret + account_url)"
        )

        set_sp = [name for name, value in sp_fields.items() if value is not None]
        if 0 < len(set_sp) < len(sp_fields):
            missing = [name for name in sp_fields if name not in set_sp]
            raise ValueError(f"Service Principal auth requires all fields. Missing: {', '.join(missing)}")

        active_count = sum(methods)
        if active_count == 0:
            if self.sas_token and not has_url:
                raise ValueError("SAS token auth requires account_url")
            if self.use_managed_identity and not has_url:
                raise ValueError("Managed Identity auth requires account_url")
            raise ValueError(f"No authentication method configured. Provide one of: {options}")
        if active_count > 1:
            raise ValueError(f"Multiple authentication methods configured. Provide exactly one of: {options}")

        return self

    @property
    def auth_method(self) -> str:
        """One of: 'connection_string', 'sas_token', 'managed_identity', 'service_principal'."""
        if _is_set(self.connection_string):
            return "connection_string"
        elif _is_set(self.sas_token):
            return "sas_token"
        elif self.use_managed_identity:
            return "managed_identity"
        else:
            return "service_principal"

    def ensure_client_libraries(self) -> None:
        """Import every library this auth method needs, without connecting.

        Raises:
            ClientDependencyError: If azure-data-tables (or azure-identity,
                for credential-based methods) is not installed.
        """
        try:
            import azure.data.tables  # noqa: F401
        except ImportError as e:
            raise ClientDependencyError(_TABLES_INSTALL_HINT) from e

        if self.auth_method in ("managed_identity", "service_principal"):
            try:
                import azure.identity  # noqa: F401
            except ImportError as e:
                raise ClientDependencyError(_IDENTITY_INSTALL_HINT.format(method=self.auth_method)) from e

    def create_table_service_client(self) -> TableServiceClient:
        """Create a TableServiceClient using the configured auth method.

        Construction performs no network I/O; reachability is checked when a
        table is resolved.

        Raises:
            ClientDependencyError: If a required Azure library is not installed.
        """
        self.ensure_client_libraries()
        from azure.data.tables import TableServiceClient

        method = self.auth_method
        if method == "connection_string":
            return TableServiceClient.from_connection_string(cast(str, self.connection_string))

        # Every other method is only valid with account_url set
        account_url = cast(str, self.account_url)

        if method == "sas_token":
            from azure.core.credentials import AzureSasCredential

            sas_token = cast(str, self.sas_token).lstrip("?")
            return TableServiceClient(endpoint=account_url, credential=AzureSasCredential(sas_token))

        if method == "managed_identity":
            from azure.identity import DefaultAzureCredential

            return TableServiceClient(endpoint=account_url, credential=DefaultAzureCredential())

        from azure.identity import ClientSecretCredential

        sp_credential = ClientSecretCredential(
            tenant_id=cast(str, self.tenant_id),
            client_id=cast(str, self.client_id),
            client_secret=cast(str, self.client_secret),
        )
        return TableServiceClient(endpoint=account_url, credential=sp_credential)
