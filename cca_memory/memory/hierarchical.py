"""
Hierarchical Memory for CCA Memory

Manages context across multiple scopes for multi-submodule repositories:
- Routes stored artifacts to their owning scope and persists them
- Fans retrieval out over every non-task scope plus the active task scope
- Compresses pooled results to the configured token budget
- Creates task scopes on demand and injects relevant context into them
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from ..config.settings import MemorySettings
from ..errors import AdmissionError, DuplicateScopeError, ScopeNotFoundError
from ..schemas.artifact import Artifact, ScopeType, TaskContext, estimate_tokens
from ..storage.artifact_storage import ArtifactStorage
from .compression import CompressionOptions, ContextCompressionEngine
from .scopes import (
    Scope,
    ScopeKind,
    create_repository_scope,
    create_session_scope,
    create_submodule_scope,
    create_task_scope,
    scope_name_for,
)

logger = logging.getLogger(__name__)

TASK_SCOPE_PREFIX = "task:"
_SCOPE_VALUES = {scope.value for scope in ScopeType}


@dataclass
class ScopeBreakdown:
    """Artifacts and tokens a scope contributed to a retrieval."""
    artifacts: int = 0
    tokens: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"artifacts": self.artifacts, "tokens": self.tokens}


@dataclass
class RetrievedContext:
    """Context returned by a retrieval."""
    artifacts: list[Artifact] = field(default_factory=list)
    compression_ratio: float = 0.0
    total_tokens: int = 0
    scopes: dict[str, ScopeBreakdown] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "artifacts": [artifact.model_dump(mode="json") for artifact in self.artifacts],
            "compression_ratio": self.compression_ratio,
            "total_tokens": self.total_tokens,
            "scopes": {name: entry.to_dict() for name, entry in self.scopes.items()},
        }


@dataclass
class MemoryStats:
    """Aggregate statistics across all scopes."""
    scopes: int = 0
    artifacts: int = 0
    total_tokens: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "scopes": self.scopes,
            "artifacts": self.artifacts,
            "total_tokens": self.total_tokens,
        }


class HierarchicalMemory:
    """
    Hierarchical memory system.

    Scopes are registered in a fixed order: repository, one per configured
    submodule, session, then task scopes as they are created. Scopes are
    never removed; clear() only empties them.
    """

    def __init__(
        self,
        settings: MemorySettings,
        storage: ArtifactStorage | None = None,
        session_id: str | None = None,
    ):
        """
        Initialize hierarchical memory.

        Args:
            settings: Repository layout, storage and compression settings
            storage: Durable store (built from settings.storage if omitted)
            session_id: Session identifier (generated if omitted)
        """
        self.settings = settings
        self.scopes: dict[str, Scope] = {}
        self.compression = ContextCompressionEngine(settings.compression)
        self.storage = storage or ArtifactStorage(settings.storage)
        self._registry_lock = asyncio.Lock()

        self._initialize_scopes(session_id)

    def _initialize_scopes(self, session_id: str | None) -> None:
        budgets = self.settings.compression.scope_budgets
        repository = self.settings.repository

        self._register(create_repository_scope(repository, token_budget=budgets.repository))

        for submodule in self.settings.submodules:
            self._register(create_submodule_scope(submodule, repository, token_budget=budgets.submodule))

        self._register(create_session_scope(session_id, token_budget=budgets.session))

    def _register(self, scope: Scope) -> None:
        self.scopes[scope.name] = scope

    # -------------------------------------------------------------------------
    # Routing
    # -------------------------------------------------------------------------

    @staticmethod
    def resolve_scope_name(artifact: Artifact) -> str:
        """Get the owning scope name from artifact metadata."""
        return artifact.scope_name

    def get_scope(self, scope_name: str) -> Scope:
        scope = self.scopes.get(scope_name)
        if scope is None:
            raise ScopeNotFoundError(scope_name)
        return scope

    def scope_names(self) -> list[str]:
        return list(self.scopes)

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    async def store(self, artifact: Artifact) -> None:
        """
        Store an artifact in its owning scope, then persist it.

        Raises:
            AdmissionError: If the scope is unknown or rejects the artifact.
                Nothing is persisted in that case.
        """
        scope_name = self.resolve_scope_name(artifact)

        if artifact.metadata.scope not in _SCOPE_VALUES:
            raise AdmissionError(
                f"Unrecognized scope: {artifact.metadata.scope}",
                scope_name=scope_name,
                artifact_id=artifact.id,
            )

        scope = self.scopes.get(scope_name)
        if scope is None:
            raise AdmissionError(
                f"Scope not found: {scope_name}",
                scope_name=scope_name,
                artifact_id=artifact.id,
            )

        await scope.store(artifact)
        await self.storage.store(artifact)

    async def retrieve(self, query: str, active_scope: str | None = None) -> RetrievedContext:
        """
        Retrieve relevant context from all scopes.

        Task scopes are only searched when named as the active scope.

        Args:
            query: Keyword query (case-insensitive substring)
            active_scope: Scope name such as "task:bd-12"

        Returns:
            RetrievedContext with the compressed artifacts and a per-scope
            breakdown of what was returned
        """
        pooled: list[Artifact] = []

        for scope_name, scope in list(self.scopes.items()):
            if scope_name.startswith(TASK_SCOPE_PREFIX) and scope_name != active_scope:
                continue
            pooled.extend(await scope.retrieve(query))

        compressed = await self.compression.compress(
            pooled,
            CompressionOptions(
                target_tokens=self.settings.compression.target_tokens,
                active_scope=active_scope,
            ),
        )

        # Attribution is re-derived from each artifact's own metadata
        breakdown: dict[str, ScopeBreakdown] = {}
        for artifact in compressed.artifacts:
            entry = breakdown.setdefault(self.resolve_scope_name(artifact), ScopeBreakdown())
            entry.artifacts += 1
            entry.tokens += estimate_tokens(artifact.content)

        return RetrievedContext(
            artifacts=compressed.artifacts,
            compression_ratio=compressed.ratio,
            total_tokens=compressed.total_tokens,
            scopes=breakdown,
        )

    async def create_task_scope(self, task_id: str, task_context: TaskContext | dict[str, Any]) -> int:
        """
        Create a task scope and inject relevant context from the other scopes.

        Every artifact the task query retrieves is copied into the new scope
        with metadata.scope set to "task" and metadata.task_id set to task_id.

        Returns:
            Number of artifacts injected

        Raises:
            DuplicateScopeError: If a scope for task_id already exists
        """
        if not isinstance(task_context, TaskContext):
            task_context = TaskContext.model_validate(task_context)

        scope = await self._register_task_scope(task_id, task_context)
        logger.info("Created task scope", extra={"scope_name": scope.name, "task_id": task_id})

        return await self._inject_relevant_notes(task_id, task_context)

    async def search_scope(self, query: str, scope_name: str) -> list[Artifact]:
        """Keyword search restricted to one named scope, uncompressed."""
        return await self.get_scope(scope_name).retrieve(query)

    async def clear(self, include_storage: bool = False) -> None:
        """
        Clear every scope, task scopes included. Scopes stay registered.

        Args:
            include_storage: Also delete every persisted record
        """
        for scope in list(self.scopes.values()):
            await scope.clear()

        if include_storage:
            await self.storage.clear()

        logger.info("Cleared memory", extra={"count": len(self.scopes)})

    async def get_stats(self) -> MemoryStats:
        """Get statistics about memory usage."""
        stats = MemoryStats(scopes=len(self.scopes))

        for scope in list(self.scopes.values()):
            scope_stats = await scope.get_stats()
            stats.artifacts += scope_stats.artifacts
            stats.total_tokens += scope_stats.tokens

        return stats

    async def load(self) -> int:
        """
        Rebuild the in-memory index from the durable store.

        Task scopes referenced by persisted records are registered without
        context injection. Records no scope admits are skipped.

        Returns:
            Number of artifacts indexed
        """
        loaded = 0

        for artifact in await self.storage.list():
            scope_name = self.resolve_scope_name(artifact)

            if scope_name.startswith(TASK_SCOPE_PREFIX) and scope_name not in self.scopes:
                task_id = artifact.metadata.task_id
                await self._register_task_scope(task_id, TaskContext(title=task_id, description=""))

            scope = self.scopes.get(scope_name)
            if scope is None:
                logger.warning(
                    "Skipping persisted artifact with unknown scope %s",
                    scope_name,
                    extra={"artifact_id": artifact.id},
                )
                continue

            try:
                await scope.store(artifact)
            except AdmissionError as e:
                logger.warning("Skipping persisted artifact: %s", e.message, extra={"artifact_id": artifact.id})
                continue

            loaded += 1

        logger.info("Loaded artifacts from storage", extra={"count": loaded})
        return loaded

    # -------------------------------------------------------------------------
    # Task scope helpers
    # -------------------------------------------------------------------------

    async def _register_task_scope(self, task_id: str, task_context: TaskContext) -> Scope:
        scope_name = scope_name_for(ScopeKind.TASK, task_id)

        async with self._registry_lock:
            if scope_name in self.scopes:
                raise DuplicateScopeError(scope_name)

            scope = create_task_scope(
                task_id,
                task_context,
                token_budget=self.settings.compression.scope_budgets.task,
            )
            self._register(scope)

        return scope

    async def _inject_relevant_notes(self, task_id: str, task_context: TaskContext) -> int:
        """Copy artifacts matching the task query into the task scope."""
        scope_name = scope_name_for(ScopeKind.TASK, task_id)
        query = task_context.build_query()

        context = await self.retrieve(query, scope_name)

        for artifact in context.artifacts:
            await self.store(artifact.for_task(task_id))

        logger.info(
            "Injected %d artifacts into %s",
            len(context.artifacts),
            scope_name,
            extra={"task_id": task_id, "count": len(context.artifacts)},
        )
        return len(context.artifacts)


def create_hierarchical_memory(
    settings: MemorySettings,
    session_id: str | None = None,
) -> HierarchicalMemory:
    """Create a new hierarchical memory instance."""
    return HierarchicalMemory(settings=settings, session_id=session_id)
