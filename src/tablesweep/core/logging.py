# src/tablesweep/core/logging.py
"""Structured logging configuration for tablesweep.

structlog and stdlib logging share one ProcessorFormatter, so the Azure
adapter's ``logging.getLogger(__name__)`` records and the pipeline's
``structlog.get_logger(__name__)`` events render identically (console or
JSON). Logs go to stderr; stdout is reserved for CLI results so that
``--format json`` output stays machine-readable.

Per-unit context (account, table) is bound with structlog contextvars by
the dispatcher, so every line a worker thread emits carries it.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import ProcessorFormatter

# Azure SDK and its transport log every HTTP request at DEBUG/INFO. A sweep
# issues one request per page and per batch, which would drown the output.
_NOISY_LOGGERS: tuple[str, ...] = (
    "azure",
    "azure.core.pipeline.policies.http_logging_policy",
    "azure.data.tables",
    "azure.identity",
    "msal",
    "urllib3",
    "urllib3.connectionpool",
)


def _remove_internal_fields(
    logger: logging.Logger | None,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Drop ProcessorFormatter bookkeeping keys from rendered output."""
    del event_dict["_record"]
    del event_dict["_from_structlog"]
    return event_dict


def configure_logging(
    *,
    json_output: bool = False,
    level: str = "INFO",
) -> None:
    """Configure structlog and stdlib logging.

    Args:
        json_output: Render JSON lines instead of the colored console format.
        level: Root log level name (DEBUG, INFO, WARNING, ERROR).
    """
    log_level = getattr(logging, level.upper())

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_output:
        final_processors: list[Any] = [
            _remove_internal_fields,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        final_processors = [
            _remove_internal_fields,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ]

    structlog.configure(
        processors=[*shared_processors, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Tests reconfigure logging; cached loggers would keep the old setup.
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        ProcessorFormatter(
            processors=final_processors,
            foreign_pre_chain=shared_processors,
        )
    )

    root = logging.getLogger()
    root.handlers = []
    root.addHandler(handler)
    root.setLevel(log_level)

    # Never less restrictive than root, so ERROR runs stay quiet.
    noisy_level = max(log_level, logging.WARNING)
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(noisy_level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound to ``name`` (typically ``__name__``)."""
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger
