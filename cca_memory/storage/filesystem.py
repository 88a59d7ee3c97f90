"""
Filesystem Storage for CCA Memory

Stores one JSON file per (artifact id, owning scope). The same id may live
in several scopes, e.g. a repository artifact and its copy injected into a
task scope. Files are sharded into subdirectories named after the first two
characters of the artifact id:

    <storage_path>/<id[:2]>/<quoted id>@<quoted scope name>.json

Records are written to a temporary file in the shard and renamed into place.
"""

import logging
import shutil
import uuid
from pathlib import Path
from typing import Iterator
from urllib.parse import quote

from ..config.settings import StorageSettings
from ..errors import CorruptRecordError
from ..schemas.artifact import Artifact
from .base import StorageBackend

logger = logging.getLogger(__name__)


def _is_safe_id(artifact_id: str) -> bool:
    return (
        bool(artifact_id)
        and not artifact_id.startswith(".")
        and "/" not in artifact_id
        and "\\" not in artifact_id
    )


def _quote(value: str) -> str:
    return quote(value, safe="")


class FileSystemStorage(StorageBackend):
    """Filesystem-based storage backend."""

    def __init__(self, settings: StorageSettings):
        self.settings = settings
        self.storage_path = Path(settings.path)

    async def store(self, artifact: Artifact) -> None:
        if not _is_safe_id(artifact.id):
            raise ValueError(f"Unsafe artifact id: {artifact.id!r}")

        file_path = self._artifact_path(artifact.id, artifact.scope_name)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        tmp_path = file_path.with_name(f"{file_path.name}.{uuid.uuid4().hex}.tmp")
        try:
            tmp_path.write_text(artifact.model_dump_json(indent=2), encoding="utf-8")
            tmp_path.replace(file_path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise

        logger.debug("Stored artifact record", extra={"artifact_id": artifact.id, "path": str(file_path)})

    async def retrieve(self, artifact_id: str, scope_name: str | None = None) -> Artifact | None:
        for file_path in self._record_files(artifact_id, scope_name):
            try:
                return self._read_record(file_path)
            except CorruptRecordError as e:
                logger.warning("Skipping corrupt artifact record: %s", e.message, extra={"path": e.path})
        return None

    async def search(self, query: str) -> list[Artifact]:
        return [artifact for artifact in await self.list() if artifact.matches(query)]

    async def delete(self, artifact_id: str, scope_name: str | None = None) -> None:
        for file_path in self._record_files(artifact_id, scope_name):
            file_path.unlink(missing_ok=True)

    async def clear(self) -> None:
        shutil.rmtree(self.storage_path, ignore_errors=True)

    async def get_stats(self) -> dict[str, int]:
        artifacts = await self.list()
        return {
            "count": len(artifacts),
            "size": sum(len(artifact.content) for artifact in artifacts),
        }

    def _artifact_path(self, artifact_id: str, scope_name: str) -> Path:
        """Get file path for an artifact id in one scope."""
        return self.storage_path / artifact_id[:2] / f"{_quote(artifact_id)}@{_quote(scope_name)}.json"

    def _record_files(self, artifact_id: str, scope_name: str | None) -> list[Path]:
        """Get existing record files for an id, in every scope unless one is named."""
        if not _is_safe_id(artifact_id):
            return []

        if scope_name is not None:
            file_path = self._artifact_path(artifact_id, scope_name)
            return [file_path] if file_path.is_file() else []

        shard = self.storage_path / artifact_id[:2]
        if not shard.is_dir():
            return []
        # Quoted names contain no glob metacharacters
        return sorted(shard.glob(f"{_quote(artifact_id)}@*.json"))

    def _iter_artifact_files(self) -> Iterator[Path]:
        """Yield every record file, shard by shard."""
        if not self.storage_path.is_dir():
            return

        for shard in sorted(self.storage_path.iterdir()):
            if not shard.is_dir():
                continue
            yield from sorted(shard.glob("*.json"))

    def _read_record(self, file_path: Path) -> Artifact:
        try:
            return Artifact.model_validate_json(file_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise CorruptRecordError("unreadable artifact record", str(file_path), e) from e

    async def list(self) -> list[Artifact]:
        artifacts = []

        for file_path in self._iter_artifact_files():
            try:
                artifacts.append(self._read_record(file_path))
            except CorruptRecordError as e:
                logger.warning("Skipping corrupt artifact record: %s", e.message, extra={"path": e.path})

        return artifacts
