"""
Settings Configuration for CCA Memory

This module provides centralized settings management with:
- Environment variable loading
- Default values
- Validation
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


SUPPORTED_BACKENDS = ("filesystem",)


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() == "true"


def _env_list(name: str) -> list[str]:
    raw = os.environ.get(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class StorageSettings:
    """Durable artifact storage settings."""

    backend: str = "filesystem"
    path: str = ".beads/memory"
    max_size_mb: int = 1000  # informational
    retention_days: int = 90  # informational

    @classmethod
    def from_env(cls, repository: str) -> "StorageSettings":
        """Load storage settings from environment variables."""
        default_path = str(Path(repository) / ".beads" / "memory")
        return cls(
            backend=os.environ.get("CCA_STORAGE_BACKEND", "filesystem"),
            path=os.environ.get("CCA_MEMORY_PATH", default_path),
            max_size_mb=int(os.environ.get("CCA_STORAGE_MAX_MB", "1000")),
            retention_days=int(os.environ.get("CCA_RETENTION_DAYS", "90")),
        )


@dataclass
class ScopeBudgets:
    """Share of the global token target each scope kind is expected to use."""

    repository: float = 0.1
    submodule: float = 0.3
    session: float = 0.3
    task: float = 0.3

    def to_dict(self) -> dict[str, float]:
        return {
            "repository": self.repository,
            "submodule": self.submodule,
            "session": self.session,
            "task": self.task,
        }


@dataclass
class CompressionSettings:
    """Compression engine settings."""

    target_tokens: int = 100000
    compression_level: float = 0.5  # advisory
    scope_budgets: ScopeBudgets = field(default_factory=ScopeBudgets)

    @classmethod
    def from_env(cls) -> "CompressionSettings":
        """Load compression settings from environment variables."""
        return cls(
            target_tokens=int(os.environ.get("CCA_TARGET_TOKENS", "100000")),
            compression_level=float(os.environ.get("CCA_COMPRESSION_LEVEL", "0.5")),
        )


@dataclass
class BeadsSettings:
    """Beads issue tracker integration settings."""

    database_path: str = "."
    auto_create_task_scopes: bool = False
    auto_generate_notes: bool = True
    poll_interval_seconds: int = 60

    @classmethod
    def from_env(cls, repository: str) -> "BeadsSettings":
        """Load Beads settings from environment variables."""
        return cls(
            database_path=os.environ.get("BEADS_DB_PATH", repository),
            auto_create_task_scopes=_env_bool("BEADS_AUTO_TASK_SCOPES", "false"),
            auto_generate_notes=_env_bool("BEADS_AUTO_NOTES", "true"),
            poll_interval_seconds=int(os.environ.get("BEADS_POLL_INTERVAL", "60")),
        )


@dataclass
class LoggingSettings:
    """Logging settings."""

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls) -> "LoggingSettings":
        """Load logging settings from environment variables."""
        return cls(
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
            log_format=os.environ.get("LOG_FORMAT", "text").lower(),
        )


@dataclass
class MemorySettings:
    """
    Centralized settings for CCA Memory.

    Combines all setting categories and provides validation.
    """

    repository: str = "."
    submodules: list[str] = field(default_factory=list)
    storage: StorageSettings = field(default_factory=StorageSettings)
    compression: CompressionSettings = field(default_factory=CompressionSettings)
    beads: BeadsSettings = field(default_factory=BeadsSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    @classmethod
    def from_env(cls) -> "MemorySettings":
        """Load all settings from environment variables."""
        repository = os.environ.get("CCA_REPO", os.getcwd())

        return cls(
            repository=repository,
            submodules=_env_list("CCA_SUBMODULES"),
            storage=StorageSettings.from_env(repository),
            compression=CompressionSettings.from_env(),
            beads=BeadsSettings.from_env(repository),
            logging=LoggingSettings.from_env(),
        )

    @property
    def repository_name(self) -> str:
        return Path(self.repository).resolve().name

    def validate(self) -> list[str]:
        """
        Validate settings and return list of errors.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        if self.storage.backend not in SUPPORTED_BACKENDS:
            errors.append(
                f"Unsupported storage backend '{self.storage.backend}'. "
                f"Supported: {', '.join(SUPPORTED_BACKENDS)}."
            )

        if len(set(self.submodules)) != len(self.submodules):
            errors.append("CCA_SUBMODULES contains duplicate submodule names.")

        if self.compression.target_tokens < 0:
            errors.append("CCA_TARGET_TOKENS must be non-negative.")

        if not 0.0 <= self.compression.compression_level <= 1.0:
            errors.append("CCA_COMPRESSION_LEVEL must be between 0 and 1.")

        for name, budget in self.compression.scope_budgets.to_dict().items():
            if not 0.0 <= budget <= 1.0:
                errors.append(f"Scope budget for '{name}' must be between 0 and 1.")

        if self.beads.poll_interval_seconds < 1:
            errors.append("BEADS_POLL_INTERVAL must be at least 1.")

        if self.logging.log_format not in ("json", "text"):
            errors.append("LOG_FORMAT must be 'json' or 'text'.")

        return errors

    def is_valid(self) -> bool:
        """Check if settings are valid."""
        return len(self.validate()) == 0

    def to_dict(self) -> dict[str, Any]:
        """Convert settings to dictionary for logging."""
        return {
            "repository": self.repository,
            "submodules": list(self.submodules),
            "storage": {
                "backend": self.storage.backend,
                "path": self.storage.path,
                "max_size_mb": self.storage.max_size_mb,
                "retention_days": self.storage.retention_days,
            },
            "compression": {
                "target_tokens": self.compression.target_tokens,
                "compression_level": self.compression.compression_level,
                "scope_budgets": self.compression.scope_budgets.to_dict(),
            },
            "beads": {
                "database_path": self.beads.database_path,
                "auto_create_task_scopes": self.beads.auto_create_task_scopes,
                "auto_generate_notes": self.beads.auto_generate_notes,
                "poll_interval_seconds": self.beads.poll_interval_seconds,
            },
            "logging": {
                "log_level": self.logging.log_level,
                "log_format": self.logging.log_format,
            },
        }


# Global settings instance (lazy loaded)
_settings: MemorySettings | None = None


def get_settings() -> MemorySettings:
    """
    Get the global settings instance.

    Settings are loaded from environment variables on first access.
    """
    global _settings
    if _settings is None:
        _settings = MemorySettings.from_env()
    return _settings


def reload_settings() -> MemorySettings:
    """Reload settings from environment variables."""
    global _settings
    _settings = MemorySettings.from_env()
    return _settings
