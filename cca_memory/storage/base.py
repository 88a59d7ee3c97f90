"""
Storage backend interface for CCA Memory.
"""

from abc import ABC, abstractmethod

from ..schemas.artifact import Artifact


class StorageBackend(ABC):
    """
    Abstract base class for durable artifact storage.

    Records are keyed by (artifact id, owning scope name), so one id may be
    persisted once per scope. Backends must implement:
    - store: persist or overwrite the record for the artifact's own scope
    - retrieve: exact-id lookup, optionally in one scope, None when absent
    - search/list: linear scans that skip unreadable records
    - delete/clear: idempotent removal
    - get_stats: aggregate count and content size
    """

    @abstractmethod
    async def store(self, artifact: Artifact) -> None:
        """Persist an artifact, overwriting the record with the same id and scope."""

    @abstractmethod
    async def retrieve(self, artifact_id: str, scope_name: str | None = None) -> Artifact | None:
        """Get an artifact by id (in any scope unless one is named), or None."""

    @abstractmethod
    async def search(self, query: str) -> list[Artifact]:
        """Get all artifacts whose content or tags contain the query."""

    @abstractmethod
    async def list(self) -> list[Artifact]:
        """Get every readable stored artifact."""

    @abstractmethod
    async def delete(self, artifact_id: str, scope_name: str | None = None) -> None:
        """Delete an artifact from one scope or all of them. Missing ids are a no-op."""

    @abstractmethod
    async def clear(self) -> None:
        """Delete every stored artifact."""

    @abstractmethod
    async def get_stats(self) -> dict[str, int]:
        """Get {"count", "size"} where size is the total content length."""
