# src/tablesweep/core/config.py
"""
Configuration schema and loading for tablesweep.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction; CLI overrides produce
a new validated instance via ``SweepSettings.with_overrides``.
"""

import re
from pathlib import Path
from typing import Any, Self

from pydantic import BaseModel, Field, field_validator, model_validator

from tablesweep.azure.auth import AzureAuthConfig
from tablesweep.contracts.entities import MAX_TRANSACTION_SIZE

# Service naming rules: tables are 3-63 alphanumerics starting with a letter,
# storage accounts are 3-24 lowercase letters and digits.
_TABLE_NAME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9]{2,62}$")
_ACCOUNT_NAME_PATTERN = re.compile(r"^[a-z0-9]{3,24}$")

TABLE_ENDPOINT_TEMPLATE = "https://{name}.table.core.windows.net"


class AccountSettings(BaseModel):
    """One storage account to sweep.

    Exactly one authentication method must be configured (see
    AzureAuthConfig). ``account_url`` is optional: when omitted the public
    table endpoint is derived from ``name``.

    Example YAML:
        accounts:
          - name: prodlogs
            use_managed_identity: true
          - name: emulator
            connection_string: "${AZURITE_CONNECTION_STRING}"
    """

    model_config = {"frozen": True, "extra": "forbid"}

    name: str = Field(..., min_length=1, description="Account label; also the endpoint host when account_url is omitted")
    account_url: str | None = Field(default=None, description="Table service endpoint URL")

    connection_string: str | None = Field(default=None, description="Storage connection string")
    sas_token: str | None = Field(default=None, description="SAS token (with or without leading '?')")
    use_managed_identity: bool = Field(default=False, description="Authenticate with DefaultAzureCredential")
    tenant_id: str | None = Field(default=None, description="Azure AD tenant ID for Service Principal auth")
    client_id: str | None = Field(default=None, description="Azure AD client ID for Service Principal auth")
    client_secret: str | None = Field(default=None, description="Azure AD client secret for Service Principal auth")

    @model_validator(mode="after")
    def validate_account(self) -> Self:
        """Validate the derived endpoint and delegate auth checks to AzureAuthConfig."""
        if self.account_url is None and not _ACCOUNT_NAME_PATTERN.match(self.name):
            raise ValueError(
                f"Account name '{self.name}' is not a valid storage account name "
                "(3-24 lowercase letters and digits); set account_url explicitly"
            )
        self.auth_config()
        return self

    @property
    def endpoint(self) -> str:
        """Table service endpoint for this account."""
        if self.account_url is not None and self.account_url.strip():
            return self.account_url.rstrip("/")
        return TABLE_ENDPOINT_TEMPLATE.format(name=self.name)

    def auth_config(self) -> AzureAuthConfig:
        """Build the credential configuration for this account.

        Raises:
            ValueError: If zero or several auth methods are configured.
        """
        return AzureAuthConfig(
            connection_string=self.connection_string,
            sas_token=self.sas_token,
            use_managed_identity=self.use_managed_identity,
            account_url=self.endpoint,
            tenant_id=self.tenant_id,
            client_id=self.client_id,
            client_secret=self.client_secret,
        )


class SweepSettings(BaseModel):
    """Top-level settings for a sweep run.

    Every account is swept for every table, one independent pipeline per
    (account, table) pair.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    accounts: list[AccountSettings] = Field(..., min_length=1, description="Storage accounts to sweep")
    tables: list[str] = Field(..., min_length=1, description="Table names to empty in every account")
    page_size: int = Field(
        default=10_000,
        ge=0,
        description="Maximum entities per query page (0 = service default)",
    )
    cache_size: int = Field(
        default=50_000,
        ge=1,
        description="Maximum pending delete operations held across partial batches",
    )
    batch_size: int = Field(
        default=MAX_TRANSACTION_SIZE,
        ge=1,
        le=MAX_TRANSACTION_SIZE,
        description="Operations per delete transaction (service limit 100)",
    )
    max_pages: int = Field(
        default=0,
        ge=0,
        description="Stop each table after this many pages (0 = unlimited)",
    )
    progress_interval: int = Field(
        default=100,
        ge=0,
        description="Batches between progress events (0 = disabled)",
    )
    max_workers: int | None = Field(
        default=None,
        gt=0,
        description="Cap on parallel units (default: one worker per account/table pair)",
    )

    @field_validator("tables")
    @classmethod
    def validate_tables(cls, v: list[str]) -> list[str]:
        """Table names must follow service naming rules and be unique (case-insensitive)."""
        invalid = [name for name in v if not _TABLE_NAME_PATTERN.match(name)]
        if invalid:
            raise ValueError(f"Invalid table name(s): {', '.join(invalid)}. Names are 3-63 alphanumerics starting with a letter.")
        seen: set[str] = set()
        duplicates = []
        for name in v:
            if name.lower() in seen:
                duplicates.append(name)
            seen.add(name.lower())
        if duplicates:
            raise ValueError(f"Duplicate table name(s): {', '.join(duplicates)}")
        return v

    @field_validator("accounts")
    @classmethod
    def validate_unique_accounts(cls, v: list[AccountSettings]) -> list[AccountSettings]:
        names = [account.name for account in v]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate account name(s): {', '.join(duplicates)}")
        return v

    @property
    def unit_count(self) -> int:
        """Number of (account, table) pipelines this sweep dispatches."""
        return len(self.accounts) * len(self.tables)

    def with_overrides(
        self,
        *,
        tables: list[str] | None = None,
        accounts: list[str] | None = None,
        page_size: int | None = None,
        cache_size: int | None = None,
        max_pages: int | None = None,
    ) -> "SweepSettings":
        """Return revalidated settings with CLI overrides applied.

        Args:
            tables: Replaces the configured table list
            accounts: Keeps only the named accounts
            page_size: Replaces page_size
            cache_size: Replaces cache_size
            max_pages: Replaces max_pages

        Raises:
            ValueError: If an account filter names an unconfigured account.
            pydantic.ValidationError: If an override is out of range.
        """
        data = self.model_dump()
        if tables:
            data["tables"] = list(tables)
        if accounts:
            known = {account.name for account in self.accounts}
            unknown = [name for name in accounts if name not in known]
            if unknown:
                raise ValueError(f"Unknown account(s): {', '.join(unknown)}. Configured: {', '.join(sorted(known))}")
            data["accounts"] = [a for a in data["accounts"] if a["name"] in accounts]
        if page_size is not None:
            data["page_size"] = page_size
        if cache_size is not None:
            data["cache_size"] = cache_size
        if max_pages is not None:
            data["max_pages"] = max_pages
        return SweepSettings.model_validate(data)


# Regex pattern for ${VAR} or ${VAR:-default} syntax
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def _expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively expand ${VAR} and ${VAR:-default} in string values.

    Unset variables without a default are left as-is so validation reports
    them instead of silently receiving an empty secret.
    """
    import os

    def _expand_string(value: str) -> str:
        def replacer(match: re.Match[str]) -> str:
            env_value = os.environ.get(match.group(1))
            if env_value is not None:
                return env_value
            default = match.group(2)
            if default is not None:
                return default
            return match.group(0)

        return _ENV_VAR_PATTERN.sub(replacer, value)

    def _expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return _expand_string(value)
        elif isinstance(value, dict):
            return {k: _expand_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [_expand_value(item) for item in value]
        else:
            return value

    return {k: _expand_value(v) for k, v in config.items()}


def load_settings(config_path: Path) -> SweepSettings:
    """Load settings from a YAML file with environment variable overrides.

    Precedence, highest first:
    1. Environment variables (TABLESWEEP_*), e.g. TABLESWEEP_CACHE_SIZE=20000
    2. The settings file
    3. Pydantic defaults

    Args:
        config_path: Path to the YAML settings file

    Returns:
        Validated SweepSettings

    Raises:
        FileNotFoundError: If the settings file doesn't exist
        ValidationError: If the merged configuration is invalid
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="TABLESWEEP",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k.lower(): v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}

    raw_config = _expand_env_vars(raw_config)

    return SweepSettings(**raw_config)
