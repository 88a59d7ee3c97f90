"""
Memory Module for CCA Memory

This module provides hierarchical context management:
- Scopes partitioning artifacts by repository, submodule, session and task
- Keyword retrieval fanned out across scopes
- Token-budget compression of retrieved context
- Task scopes seeded with relevant context on creation
"""

from .compression import (
    CompressionOptions,
    CompressionResult,
    ContextCompressionEngine,
)

from .scopes import (
    Scope,
    ScopeKind,
    ScopeConfig,
    ScopeStats,
    scope_name_for,
    create_repository_scope,
    create_submodule_scope,
    create_session_scope,
    create_task_scope,
)

from .hierarchical import (
    HierarchicalMemory,
    RetrievedContext,
    ScopeBreakdown,
    MemoryStats,
    create_hierarchical_memory,
)

__all__ = [
    # Compression
    "CompressionOptions",
    "CompressionResult",
    "ContextCompressionEngine",
    # Scopes
    "Scope",
    "ScopeKind",
    "ScopeConfig",
    "ScopeStats",
    "scope_name_for",
    "create_repository_scope",
    "create_submodule_scope",
    "create_session_scope",
    "create_task_scope",
    # Hierarchical memory
    "HierarchicalMemory",
    "RetrievedContext",
    "ScopeBreakdown",
    "MemoryStats",
    "create_hierarchical_memory",
]
