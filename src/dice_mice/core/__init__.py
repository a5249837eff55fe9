"""Core infrastructure: configuration, logging, exceptions and rule constants."""

from __future__ import annotations

from dice_mice.core.config import Settings, clear_settings_cache, get_settings
from dice_mice.core.exceptions import CommitError, DiceMiceError
from dice_mice.core.logging import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    setup_logging,
)

__all__ = [
    "Settings",
    "get_settings",
    "clear_settings_cache",
    "DiceMiceError",
    "CommitError",
    "configure_logging",
    "setup_logging",
    "get_logger",
    "bind_context",
    "clear_context",
]
