"""
Memory Scopes for CCA Memory

A scope is a named partition of artifacts. All four kinds share one
contract (store, retrieve, clear, stats) and differ only in which artifacts
they admit:

- repository: artifacts whose metadata.scope is "repository"
- submodule: artifacts whose metadata.submodule matches the bound submodule
- session: artifacts whose metadata.scope is "session"
- task: artifacts whose metadata.task_id matches the bound task id

Scope names follow "repository", "submodule:<name>", "session", "task:<id>".
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from ..errors import AdmissionError
from ..schemas.artifact import Artifact, ScopeType, TaskContext, estimate_tokens

logger = logging.getLogger(__name__)

# Returns a rejection reason, or None when the artifact is admitted
AdmissionRule = Callable[[Artifact], Optional[str]]


class ScopeKind(str, Enum):
    """Kinds of memory scope."""
    REPOSITORY = "repository"
    SUBMODULE = "submodule"
    SESSION = "session"
    TASK = "task"


@dataclass(frozen=True)
class ScopeConfig:
    """Immutable construction parameters of a scope."""
    kind: ScopeKind
    token_budget: float
    repository: str | None = None
    submodule: str | None = None
    session_id: str | None = None
    task_id: str | None = None
    task_context: TaskContext | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "kind": self.kind.value,
            "token_budget": self.token_budget,
        }
        if self.repository is not None:
            data["repository"] = self.repository
        if self.submodule is not None:
            data["submodule"] = self.submodule
        if self.session_id is not None:
            data["session_id"] = self.session_id
        if self.task_id is not None:
            data["task_id"] = self.task_id
        if self.task_context is not None:
            data["task_context"] = self.task_context.model_dump()
        return data


@dataclass
class ScopeStats:
    """Statistics for one scope."""
    artifacts: int = 0
    tokens: int = 0
    size: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"artifacts": self.artifacts, "tokens": self.tokens, "size": self.size}


def scope_name_for(kind: ScopeKind, key: str | None = None) -> str:
    """Build a scope name such as "submodule:sdk" or "task:bd-1"."""
    if kind in (ScopeKind.SUBMODULE, ScopeKind.TASK):
        return f"{kind.value}:{key}"
    return kind.value


class Scope:
    """
    A named, keyed collection of artifacts with an admission rule.

    The index is guarded by an asyncio.Lock held only while it is mutated.
    """

    def __init__(self, name: str, config: ScopeConfig, admission: AdmissionRule):
        self.name = name
        self.config = config
        self._admission = admission
        self._artifacts: dict[str, Artifact] = {}
        self._lock = asyncio.Lock()

    @property
    def kind(self) -> ScopeKind:
        return self.config.kind

    def __len__(self) -> int:
        return len(self._artifacts)

    def __contains__(self, artifact_id: object) -> bool:
        return artifact_id in self._artifacts

    def check_admission(self, artifact: Artifact) -> None:
        """Raise AdmissionError if the artifact does not belong here."""
        reason = self._admission(artifact)
        if reason is not None:
            raise AdmissionError(reason, scope_name=self.name, artifact_id=artifact.id)

    async def store(self, artifact: Artifact) -> None:
        """Store (upsert by id) an admissible artifact."""
        self.check_admission(artifact)

        async with self._lock:
            self._artifacts[artifact.id] = artifact

        logger.debug("Indexed artifact", extra={"scope_name": self.name, "artifact_id": artifact.id})

    async def retrieve(self, query: str) -> list[Artifact]:
        """Get every artifact whose content or tags contain the query. Unranked."""
        return [artifact for artifact in list(self._artifacts.values()) if artifact.matches(query)]

    def get(self, artifact_id: str) -> Artifact | None:
        return self._artifacts.get(artifact_id)

    async def clear(self) -> None:
        async with self._lock:
            self._artifacts.clear()

    async def get_stats(self) -> ScopeStats:
        artifacts = list(self._artifacts.values())
        return ScopeStats(
            artifacts=len(artifacts),
            tokens=sum(estimate_tokens(a.content) for a in artifacts),
            size=sum(len(a.content) for a in artifacts),
        )

    def get_config(self) -> ScopeConfig:
        return self.config

    def __repr__(self) -> str:
        return f"Scope(name={self.name!r}, artifacts={len(self._artifacts)})"


# =============================================================================
# Scope factories
# =============================================================================


def create_repository_scope(repository: str, token_budget: float = 0.1) -> Scope:
    """Create the repository-wide scope."""
    def admit(artifact: Artifact) -> str | None:
        if artifact.metadata.scope != ScopeType.REPOSITORY.value:
            return f"Artifact has scope {artifact.metadata.scope}, not repository"
        return None

    config = ScopeConfig(kind=ScopeKind.REPOSITORY, token_budget=token_budget, repository=repository)
    return Scope(scope_name_for(ScopeKind.REPOSITORY), config, admit)


def create_submodule_scope(submodule: str, repository: str, token_budget: float = 0.3) -> Scope:
    """Create a scope bound to one submodule."""
    def admit(artifact: Artifact) -> str | None:
        if artifact.metadata.submodule != submodule:
            return f"Artifact belongs to submodule {artifact.metadata.submodule}, not {submodule}"
        return None

    config = ScopeConfig(
        kind=ScopeKind.SUBMODULE,
        token_budget=token_budget,
        repository=repository,
        submodule=submodule,
    )
    return Scope(scope_name_for(ScopeKind.SUBMODULE, submodule), config, admit)


def create_session_scope(session_id: str | None = None, token_budget: float = 0.3) -> Scope:
    """Create the session scope, generating a session id if none is given."""
    def admit(artifact: Artifact) -> str | None:
        if artifact.metadata.scope != ScopeType.SESSION.value:
            return f"Artifact has scope {artifact.metadata.scope}, not session"
        return None

    config = ScopeConfig(
        kind=ScopeKind.SESSION,
        token_budget=token_budget,
        session_id=session_id or str(uuid.uuid4()),
    )
    return Scope(scope_name_for(ScopeKind.SESSION), config, admit)


def create_task_scope(task_id: str, task_context: TaskContext, token_budget: float = 0.3) -> Scope:
    """Create a scope bound to one task."""
    def admit(artifact: Artifact) -> str | None:
        if artifact.metadata.task_id != task_id:
            return f"Artifact belongs to task {artifact.metadata.task_id}, not {task_id}"
        return None

    config = ScopeConfig(
        kind=ScopeKind.TASK,
        token_budget=token_budget,
        task_id=task_id,
        task_context=task_context,
    )
    return Scope(scope_name_for(ScopeKind.TASK, task_id), config, admit)
