"""
CCA Memory: Hierarchical context memory for AI coding assistants

Remembers artifacts (code diffs, errors, decisions, learned patterns) across
repository, submodule, session and task scopes and returns the most
relevant ones within a token budget.

Core Components:
- schemas: Pydantic artifact and task context models
- memory: Scopes, hierarchical retrieval and compression
- storage: Durable artifact persistence
- feeds: Beads issue tracker integration
- config: Environment-driven settings

Usage:
    from cca_memory import HierarchicalMemory, Artifact, get_settings
"""

__version__ = "0.1.0"

from .schemas import (
    ArtifactType,
    ScopeType,
    Outcome,
    ArtifactMetadata,
    Artifact,
    TaskContext,
    estimate_tokens,
)

from .errors import (
    MemorySystemError,
    AdmissionError,
    DuplicateScopeError,
    ScopeNotFoundError,
    CorruptRecordError,
    StorageConfigError,
    BeadsError,
)

from .config import MemorySettings, get_settings

from .memory import (
    HierarchicalMemory,
    RetrievedContext,
    MemoryStats,
    ContextCompressionEngine,
    CompressionOptions,
)

from .storage import ArtifactStorage

__all__ = [
    # Version
    "__version__",
    # Schemas
    "ArtifactType",
    "ScopeType",
    "Outcome",
    "ArtifactMetadata",
    "Artifact",
    "TaskContext",
    "estimate_tokens",
    # Errors
    "MemorySystemError",
    "AdmissionError",
    "DuplicateScopeError",
    "ScopeNotFoundError",
    "CorruptRecordError",
    "StorageConfigError",
    "BeadsError",
    # Config
    "MemorySettings",
    "get_settings",
    # Memory
    "HierarchicalMemory",
    "RetrievedContext",
    "MemoryStats",
    "ContextCompressionEngine",
    "CompressionOptions",
    # Storage
    "ArtifactStorage",
]
