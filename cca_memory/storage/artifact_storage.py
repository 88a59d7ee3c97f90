"""
Artifact Storage for CCA Memory

Facade over the configured storage backend. The memory engine only talks to
this class, never to a backend directly.
"""

from ..config.settings import StorageSettings
from ..errors import StorageConfigError
from ..schemas.artifact import Artifact
from .base import StorageBackend
from .filesystem import FileSystemStorage


class ArtifactStorage:
    """Artifact storage manager."""

    def __init__(self, settings: StorageSettings | None = None):
        self.settings = settings or StorageSettings()
        self.backend = self._create_backend(self.settings)

    @staticmethod
    def _create_backend(settings: StorageSettings) -> StorageBackend:
        if settings.backend == "filesystem":
            return FileSystemStorage(settings)
        raise StorageConfigError(f"Unsupported storage backend: {settings.backend}")

    async def store(self, artifact: Artifact) -> None:
        """Store artifact."""
        await self.backend.store(artifact)

    async def retrieve(self, artifact_id: str, scope_name: str | None = None) -> Artifact | None:
        """Retrieve artifact by id, optionally from one scope."""
        return await self.backend.retrieve(artifact_id, scope_name)

    async def search(self, query: str) -> list[Artifact]:
        """Search artifacts by query."""
        return await self.backend.search(query)

    async def list(self) -> list[Artifact]:
        """List all artifacts."""
        return await self.backend.list()

    async def delete(self, artifact_id: str, scope_name: str | None = None) -> None:
        """Delete artifact from one scope, or from every scope."""
        await self.backend.delete(artifact_id, scope_name)

    async def clear(self) -> None:
        """Clear all artifacts."""
        await self.backend.clear()

    async def get_stats(self) -> dict[str, int]:
        """Get storage statistics."""
        return await self.backend.get_stats()


def create_artifact_storage(path: str, backend: str = "filesystem") -> ArtifactStorage:
    """Create a new artifact storage instance rooted at path."""
    return ArtifactStorage(StorageSettings(backend=backend, path=path))
