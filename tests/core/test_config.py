# tests/core/test_config.py
"""Tests for settings schema, overrides and loading."""

from pathlib import Path
from typing import Any

import pytest
from pydantic import ValidationError

from tablesweep.core.config import AccountSettings, SweepSettings, load_settings

CONNECTION_STRING = "UseDevelopmentStorage=true"


def make_settings(**overrides: Any) -> SweepSettings:
    data: dict[str, Any] = {
        "accounts": [
            {"name": "prodlogs", "use_managed_identity": True},
            {"name": "archive", "connection_string": CONNECTION_STRING},
        ],
        "tables": ["AuditLog", "Events"],
    }
    data.update(overrides)
    return SweepSettings.model_validate(data)


class TestAccountSettings:
    def test_endpoint_derived_from_name(self) -> None:
        account = AccountSettings(name="prodlogs", use_managed_identity=True)

        assert account.endpoint == "https://prodlogs.table.core.windows.net"

    def test_explicit_account_url_wins(self) -> None:
        account = AccountSettings(name="Local Emulator", account_url="http://127.0.0.1:10002/devstoreaccount1/", sas_token="sv=1")

        assert account.endpoint == "http://127.0.0.1:10002/devstoreaccount1"

    def test_invalid_account_name_without_url_rejected(self) -> None:
        with pytest.raises(ValidationError, match="not a valid storage account name"):
            AccountSettings(name="Prod_Logs", use_managed_identity=True)

    def test_requires_an_auth_method(self) -> None:
        with pytest.raises(ValidationError, match="No authentication method"):
            AccountSettings(name="prodlogs")

    def test_rejects_multiple_auth_methods(self) -> None:
        with pytest.raises(ValidationError, match="Multiple authentication methods"):
            AccountSettings(name="prodlogs", use_managed_identity=True, sas_token="sv=1")

    def test_auth_config_uses_endpoint(self) -> None:
        account = AccountSettings(name="prodlogs", sas_token="?sv=1")
        auth = account.auth_config()

        assert auth.account_url == "https://prodlogs.table.core.windows.net"
        assert auth.auth_method == "sas_token"

    def test_unknown_fields_rejected(self) -> None:
        with pytest.raises(ValidationError):
            AccountSettings(name="prodlogs", use_managed_identity=True, password="x")  # type: ignore[call-arg]

    def test_frozen(self) -> None:
        account = AccountSettings(name="prodlogs", use_managed_identity=True)

        with pytest.raises(ValidationError):
            account.name = "other"  # type: ignore[misc]


class TestSweepSettings:
    def test_defaults(self) -> None:
        settings = make_settings()

        assert settings.page_size == 10_000
        assert settings.cache_size == 50_000
        assert settings.batch_size == 100
        assert settings.max_pages == 0
        assert settings.progress_interval == 100
        assert settings.max_workers is None
        assert settings.unit_count == 4

    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("page_size", -1),
            ("cache_size", 0),
            ("batch_size", 0),
            ("batch_size", 101),
            ("max_pages", -1),
            ("progress_interval", -1),
            ("max_workers", 0),
        ],
    )
    def test_out_of_range_values_rejected(self, field: str, value: int) -> None:
        with pytest.raises(ValidationError):
            make_settings(**{field: value})

    def test_page_size_zero_allowed(self) -> None:
        assert make_settings(page_size=0).page_size == 0

    def test_requires_accounts_and_tables(self) -> None:
        with pytest.raises(ValidationError):
            make_settings(tables=[])
        with pytest.raises(ValidationError):
            make_settings(accounts=[])

    @pytest.mark.parametrize("name", ["1Logs", "ab", "Audit-Log", "a" * 64])
    def test_invalid_table_names_rejected(self, name: str) -> None:
        with pytest.raises(ValidationError, match="Invalid table name"):
            make_settings(tables=[name])

    def test_duplicate_tables_rejected_case_insensitively(self) -> None:
        with pytest.raises(ValidationError, match="Duplicate table name"):
            make_settings(tables=["AuditLog", "auditlog"])

    def test_duplicate_accounts_rejected(self) -> None:
        accounts = [
            {"name": "prodlogs", "use_managed_identity": True},
            {"name": "prodlogs", "connection_string": CONNECTION_STRING},
        ]
        with pytest.raises(ValidationError, match="Duplicate account name"):
            make_settings(accounts=accounts)


class TestOverrides:
    def test_no_overrides_is_equal(self) -> None:
        settings = make_settings()

        assert settings.with_overrides() == settings

    def test_tables_replaced(self) -> None:
        assert make_settings().with_overrides(tables=["Traces"]).tables == ["Traces"]

    def test_accounts_filtered(self) -> None:
        settings = make_settings().with_overrides(accounts=["archive"])

        assert [a.name for a in settings.accounts] == ["archive"]
        assert settings.unit_count == 2

    def test_unknown_account_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unknown account"):
            make_settings().with_overrides(accounts=["nope"])

    def test_numeric_overrides(self) -> None:
        settings = make_settings().with_overrides(page_size=500, cache_size=2000, max_pages=3)

        assert (settings.page_size, settings.cache_size, settings.max_pages) == (500, 2000, 3)

    def test_overrides_are_validated(self) -> None:
        with pytest.raises(ValidationError):
            make_settings().with_overrides(cache_size=0)
        with pytest.raises(ValidationError):
            make_settings().with_overrides(tables=["bad-name"])


class TestLoadSettings:
    """Test Dynaconf-based settings loading."""

    def test_load_from_yaml_file(self, tmp_path: Path) -> None:
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("""
accounts:
  - name: prodlogs
    use_managed_identity: true
tables: [AuditLog, Events]
cache_size: 20000
""")
        settings = load_settings(config_file)

        assert settings.accounts[0].name == "prodlogs"
        assert settings.accounts[0].use_managed_identity is True
        assert settings.tables == ["AuditLog", "Events"]
        assert settings.cache_size == 20_000
        assert settings.page_size == 10_000

    def test_load_with_env_override(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("""
accounts:
  - name: prodlogs
    use_managed_identity: true
tables: [AuditLog]
page_size: 1000
""")
        monkeypatch.setenv("TABLESWEEP_PAGE_SIZE", "250")

        assert load_settings(config_file).page_size == 250

    def test_env_var_expansion(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("""
accounts:
  - name: archive
    connection_string: "${ARCHIVE_CONN}"
  - name: prodlogs
    sas_token: "${PROD_SAS:-sv=default}"
tables: [AuditLog]
""")
        monkeypatch.setenv("ARCHIVE_CONN", CONNECTION_STRING)
        monkeypatch.delenv("PROD_SAS", raising=False)

        settings = load_settings(config_file)

        assert settings.accounts[0].connection_string == CONNECTION_STRING
        assert settings.accounts[1].sas_token == "sv=default"

    def test_load_validates_schema(self, tmp_path: Path) -> None:
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("""
accounts:
  - name: prodlogs
tables: [AuditLog]
""")
        with pytest.raises(ValidationError):
            load_settings(config_file)

    def test_load_missing_file_raises_file_not_found(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "nonexistent.yaml")
