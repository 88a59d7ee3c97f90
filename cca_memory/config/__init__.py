"""
Configuration Module for CCA Memory

This module provides configuration management including:
- Repository and submodule layout
- Storage, compression and Beads settings
- Environment variable loading
"""

from .settings import (
    MemorySettings,
    StorageSettings,
    CompressionSettings,
    ScopeBudgets,
    BeadsSettings,
    LoggingSettings,
    get_settings,
    reload_settings,
)

__all__ = [
    "MemorySettings",
    "StorageSettings",
    "CompressionSettings",
    "ScopeBudgets",
    "BeadsSettings",
    "LoggingSettings",
    "get_settings",
    "reload_settings",
]
