"""Unit tests for settings."""

from pathlib import Path

import pytest

from cca_memory.config import settings as settings_module
from cca_memory.config.settings import (
    CompressionSettings,
    MemorySettings,
    StorageSettings,
    get_settings,
    reload_settings,
)


ENV_VARS = [
    "CCA_REPO",
    "CCA_SUBMODULES",
    "CCA_STORAGE_BACKEND",
    "CCA_MEMORY_PATH",
    "CCA_TARGET_TOKENS",
    "CCA_COMPRESSION_LEVEL",
    "BEADS_DB_PATH",
    "BEADS_AUTO_TASK_SCOPES",
    "BEADS_AUTO_NOTES",
    "BEADS_POLL_INTERVAL",
    "LOG_LEVEL",
    "LOG_FORMAT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove settings variables from the environment."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(settings_module, "_settings", None)


class TestMemorySettingsFromEnv:
    """Tests for loading settings from the environment."""

    def test_defaults(self, monkeypatch, tmp_path):
        """Test defaults derived from the repository path."""
        monkeypatch.setenv("CCA_REPO", str(tmp_path))

        settings = MemorySettings.from_env()

        assert settings.repository == str(tmp_path)
        assert settings.submodules == []
        assert settings.storage.backend == "filesystem"
        assert Path(settings.storage.path) == tmp_path / ".beads" / "memory"
        assert settings.compression.target_tokens == 100000
        assert settings.compression.compression_level == 0.5
        assert settings.beads.database_path == str(tmp_path)
        assert settings.beads.auto_create_task_scopes is False
        assert settings.beads.auto_generate_notes is True
        assert settings.logging.log_format == "text"
        assert settings.is_valid()

    def test_overrides(self, monkeypatch, tmp_path):
        """Test environment overrides."""
        monkeypatch.setenv("CCA_REPO", str(tmp_path))
        monkeypatch.setenv("CCA_SUBMODULES", "sdk, juce,,")
        monkeypatch.setenv("CCA_MEMORY_PATH", "/var/memory")
        monkeypatch.setenv("CCA_TARGET_TOKENS", "5000")
        monkeypatch.setenv("BEADS_AUTO_TASK_SCOPES", "TRUE")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        settings = MemorySettings.from_env()

        assert settings.submodules == ["sdk", "juce"]
        assert settings.storage.path == "/var/memory"
        assert settings.compression.target_tokens == 5000
        assert settings.beads.auto_create_task_scopes is True
        assert settings.logging.log_level == "DEBUG"

    def test_repository_name(self, tmp_path):
        """Test the repository name is the directory name."""
        repo = tmp_path / "white_room"
        repo.mkdir()

        assert MemorySettings(repository=str(repo)).repository_name == "white_room"


class TestMemorySettingsValidate:
    """Tests for settings validation."""

    def test_unsupported_backend(self):
        """Test that an unknown backend is reported."""
        settings = MemorySettings(storage=StorageSettings(backend="redis"))
        errors = settings.validate()

        assert len(errors) == 1
        assert "redis" in errors[0]

    def test_duplicate_submodules(self):
        """Test that duplicate submodules are reported."""
        settings = MemorySettings(submodules=["sdk", "sdk"])
        assert not settings.is_valid()

    def test_compression_ranges(self):
        """Test compression range checks."""
        settings = MemorySettings(
            compression=CompressionSettings(target_tokens=-1, compression_level=1.5)
        )
        assert len(settings.validate()) == 2

    def test_bad_log_format(self):
        """Test that an unknown log format is reported."""
        settings = MemorySettings()
        settings.logging.log_format = "xml"
        assert not settings.is_valid()

    def test_to_dict(self):
        """Test converting settings to a dictionary."""
        data = MemorySettings(submodules=["sdk"]).to_dict()

        assert data["submodules"] == ["sdk"]
        assert data["compression"]["scope_budgets"]["repository"] == 0.1
        assert data["storage"]["backend"] == "filesystem"


class TestGlobalSettings:
    """Tests for the global settings instance."""

    def test_get_settings_is_cached(self, monkeypatch, tmp_path):
        """Test that settings load once until reloaded."""
        monkeypatch.setenv("CCA_REPO", str(tmp_path))
        first = get_settings()

        monkeypatch.setenv("CCA_TARGET_TOKENS", "42")

        assert get_settings() is first
        assert reload_settings().compression.target_tokens == 42
