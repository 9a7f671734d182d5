# src/tablesweep/core/__init__.py
"""Core infrastructure: Configuration, Events, Logging."""

from tablesweep.core.config import AccountSettings, SweepSettings, load_settings
from tablesweep.core.events import EventBus, EventBusProtocol, NullEventBus
from tablesweep.core.logging import configure_logging, get_logger

__all__ = [
    "AccountSettings",
    "EventBus",
    "EventBusProtocol",
    "NullEventBus",
    "SweepSettings",
    "configure_logging",
    "get_logger",
    "load_settings",
]
