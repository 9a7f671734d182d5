# src/tablesweep/cli.py
"""Tablesweep Command Line Interface.

Entry point for the tablesweep CLI tool.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Literal

import typer
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError
from pydantic import ValidationError

from tablesweep import __version__
from tablesweep.contracts.errors import ClientDependencyError
from tablesweep.core.config import SweepSettings, load_settings
from tablesweep.pipeline.protocols import TableStore

__all__ = [
    "app",
    "load_settings",  # Re-exported from config for convenience
]

EXIT_CONFIG_ERROR = 1
EXIT_MISSING_DEPENDENCY = 3

app = typer.Typer(
    name="tablesweep",
    help="Tablesweep: bulk-delete every entity from Azure Storage tables.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"tablesweep version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load environment variables from .env file.

    Args:
        env_file: Explicit path to .env file. If None, searches for .env
                 in current directory and parent directories.

    Returns:
        True if .env was found and loaded, False otherwise.

    Raises:
        typer.Exit: If explicit env_file path doesn't exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(
                f"Error: .env file not found: {env_file}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(EXIT_CONFIG_ERROR)
        return load_dotenv(env_file, override=False)

    return load_dotenv(override=False)  # Don't override existing env vars


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    no_dotenv: bool = typer.Option(
        False,
        "--no-dotenv",
        help="Skip loading .env file.",
    ),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Path to .env file (skips automatic search).",
        exists=False,  # We handle existence check ourselves for better error message
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose/debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """Tablesweep: bulk-delete every entity from Azure Storage tables."""
    from tablesweep.core.logging import configure_logging

    log_level = "DEBUG" if verbose else "INFO"
    configure_logging(json_output=json_logs, level=log_level)

    if not no_dotenv:
        _load_dotenv(env_file=env_file)
    elif env_file is not None:
        typer.secho(
            "Warning: --env-file ignored because --no-dotenv is set.",
            fg=typer.colors.YELLOW,
            err=True,
        )


def _format_validation_error(
    title: str,
    message: str,
    hint: str | None = None,
    details: list[str] | None = None,
) -> None:
    """Display a formatted validation error with optional hint and details."""
    from rich.console import Console
    from rich.panel import Panel
    from rich.text import Text

    console = Console(stderr=True)

    content = Text()
    content.append(message, style="white")

    if details:
        content.append("\n\n")
        for detail in details:
            content.append(f"  • {detail}\n", style="dim")

    if hint:
        content.append("\n")
        content.append("Hint: ", style="yellow bold")
        content.append(hint, style="yellow")

    console.print(Panel(content, title=f"[red bold]❌ {title}[/]", border_style="red"))


def _load_settings_or_exit(settings: str) -> SweepSettings:
    """Load settings, printing a formatted error and exiting 1 on failure."""
    settings_path = Path(settings).expanduser()
    try:
        return load_settings(settings_path)
    except (YamlParserError, YamlScannerError) as e:
        _format_validation_error(
            title="YAML Syntax Error",
            message=f"Failed to parse {settings_path.name}",
            details=[str(e.problem)] if hasattr(e, "problem") else None,
            hint="Check for unclosed brackets, incorrect indentation, or invalid characters.",
        )
        raise typer.Exit(EXIT_CONFIG_ERROR) from None
    except FileNotFoundError:
        _format_validation_error(
            title="File Not Found",
            message=f"Settings file does not exist: {settings}",
            hint="Check the path and ensure the file exists.",
        )
        raise typer.Exit(EXIT_CONFIG_ERROR) from None
    except ValidationError as e:
        # Must precede ValueError: ValidationError inherits from it
        details = [f"{'.'.join(str(x) for x in error['loc'])}: {error['msg']}" for error in e.errors()]
        _format_validation_error(
            title="Configuration Validation Failed",
            message=f"Invalid settings in {settings_path.name}",
            details=details,
            hint="Check field names, types, and required values.",
        )
        raise typer.Exit(EXIT_CONFIG_ERROR) from None
    except ValueError as e:
        _format_validation_error(title="Configuration Error", message=str(e))
        raise typer.Exit(EXIT_CONFIG_ERROR) from None


def _print_plan(config: SweepSettings) -> None:
    """Print the accounts x tables plan as a table."""
    from rich.console import Console
    from rich.table import Table

    plan = Table(title=f"Sweep plan: {config.unit_count} unit(s)")
    plan.add_column("Account")
    plan.add_column("Endpoint")
    plan.add_column("Auth")
    plan.add_column("Tables")
    for account in config.accounts:
        plan.add_row(account.name, account.endpoint, account.auth_config().auth_method, ", ".join(config.tables))

    console = Console()
    console.print(plan)
    console.print(
        f"page_size={config.page_size} cache_size={config.cache_size} batch_size={config.batch_size} "
        f"max_pages={config.max_pages} max_workers={config.max_workers or config.unit_count}"
    )


def _plan_json(config: SweepSettings) -> str:
    return json.dumps(
        {
            "event": "plan",
            "units": [{"account": a.name, "table": t} for a in config.accounts for t in config.tables],
            "page_size": config.page_size,
            "cache_size": config.cache_size,
            "batch_size": config.batch_size,
            "max_pages": config.max_pages,
        }
    )


def _create_stores(config: SweepSettings) -> list[TableStore]:
    """Build one AzureTableStore per configured account.

    Raises:
        ClientDependencyError: If the Azure client libraries are missing.
    """
    from tablesweep.azure.table_store import AzureTableStore

    stores: list[TableStore] = []
    for account in config.accounts:
        account.auth_config().ensure_client_libraries()
        stores.append(AzureTableStore.from_settings(account))
    return stores


def _close_stores(stores: list[TableStore]) -> None:
    for store in stores:
        close = getattr(store, "close", None)
        if close is not None:
            close()


@app.command()
def validate(
    settings: str = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
) -> None:
    """Validate sweep configuration without touching any table."""
    config = _load_settings_or_exit(settings)
    typer.echo("✅ Configuration valid!")
    _print_plan(config)


@app.command()
def run(
    settings: str = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
    table: list[str] | None = typer.Option(
        None,
        "--table",
        "-t",
        help="Table to sweep (repeatable; replaces the configured tables).",
    ),
    account: list[str] | None = typer.Option(
        None,
        "--account",
        "-a",
        help="Only sweep this configured account (repeatable).",
    ),
    page_size: int | None = typer.Option(
        None,
        "--page-size",
        help="Entities per query page (0 = service default).",
    ),
    cache_size: int | None = typer.Option(
        None,
        "--cache-size",
        help="Maximum pending delete operations per table.",
    ),
    max_pages: int | None = typer.Option(
        None,
        "--max-pages",
        help="Stop each table after this many pages (0 = unlimited).",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        "-n",
        help="Validate and show what would be swept without deleting anything.",
    ),
    execute: bool = typer.Option(
        False,
        "--execute",
        "-x",
        help="Actually delete entities (required for safety).",
    ),
    output_format: Literal["console", "json"] = typer.Option(
        "console",
        "--format",
        "-f",
        help="Output format: 'console' (human-readable) or 'json' (structured JSON).",
    ),
) -> None:
    """Delete every entity from the configured tables.

    Requires --execute flag to actually delete (safety feature).
    Use --dry-run to validate configuration and print the plan.
    """
    config = _load_settings_or_exit(settings)

    try:
        config = config.with_overrides(
            tables=table,
            accounts=account,
            page_size=page_size,
            cache_size=cache_size,
            max_pages=max_pages,
        )
    except ValidationError as e:
        typer.echo("Invalid option(s):", err=True)
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            typer.echo(f"  - {loc}: {error['msg']}", err=True)
        raise typer.Exit(EXIT_CONFIG_ERROR) from None
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(EXIT_CONFIG_ERROR) from None

    if dry_run:
        if output_format == "json":
            typer.echo(_plan_json(config))
        else:
            typer.echo("Dry run mode - would sweep:")
            _print_plan(config)
        return

    # Safety check: require explicit --execute flag
    if not execute:
        if output_format == "console":
            typer.echo("Sweep configuration valid.")
            _print_plan(config)
            typer.echo("")
            typer.echo("To delete, add --execute (or -x) flag:", err=True)
            typer.echo(f"  tablesweep run -s {settings} --execute", err=True)
        else:
            typer.echo(
                json.dumps(
                    {
                        "event": "error",
                        "error": "Refusing to delete without --execute (or -x)",
                        "error_type": "ExecuteFlagRequired",
                    }
                ),
                err=True,
            )
        raise typer.Exit(EXIT_CONFIG_ERROR)

    try:
        stores = _create_stores(config)
    except ClientDependencyError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(EXIT_MISSING_DEPENDENCY) from None

    try:
        exit_code = _execute_sweep(config, stores, output_format=output_format)
    except Exception as e:
        if output_format == "json":
            typer.echo(
                json.dumps({"event": "error", "error": str(e), "error_type": type(e).__name__}),
                err=True,
            )
        else:
            typer.echo(f"Error during sweep: {e}", err=True)
        raise typer.Exit(EXIT_CONFIG_ERROR) from None
    finally:
        _close_stores(stores)

    if exit_code != 0:
        raise typer.Exit(exit_code)


def _execute_sweep(
    config: SweepSettings,
    stores: list[TableStore],
    *,
    output_format: Literal["console", "json"],
) -> int:
    """Run the dispatcher with formatters subscribed; return the process exit code."""
    from tablesweep.cli_formatters import create_console_formatters, create_json_formatters, subscribe_formatters
    from tablesweep.core.events import EventBus
    from tablesweep.pipeline.dispatcher import JobDispatcher, exit_code_for

    event_bus = EventBus()
    formatters = create_json_formatters() if output_format == "json" else create_console_formatters()
    subscribe_formatters(event_bus, formatters)

    if output_format == "console":
        typer.echo(f"Sweeping {len(config.tables)} table(s) in {len(stores)} account(s)...")

    dispatcher = JobDispatcher(
        page_size=config.page_size,
        cache_size=config.cache_size,
        batch_size=config.batch_size,
        max_pages=config.max_pages,
        progress_interval=config.progress_interval,
        max_workers=config.max_workers,
        event_bus=event_bus,
    )
    result = dispatcher.run(stores, config.tables)
    return exit_code_for(result)


if __name__ == "__main__":
    app()
