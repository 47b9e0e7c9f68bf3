"""Configuration: TOML profiles and logging setup."""

from predledger.config.settings import (
    LedgerLimits,
    Settings,
    configure_logging,
    get_settings,
    load_config,
)

__all__ = [
    "LedgerLimits",
    "Settings",
    "configure_logging",
    "get_settings",
    "load_config",
]
