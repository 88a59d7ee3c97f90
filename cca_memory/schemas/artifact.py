"""
Artifact Schemas for CCA Memory

This module defines the Pydantic schemas for remembered context:
- Artifact: An immutable unit of remembered text plus metadata
- ArtifactMetadata: Scope routing, tags and confidence for an artifact
- TaskContext: The payload a task scope is created with
"""

import math
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Enumerations
# =============================================================================


class ArtifactType(str, Enum):
    """Known artifact types. Unknown type strings are still accepted."""
    CODE_DIFF = "code_diff"
    ERROR_MESSAGE = "error_message"
    DESIGN_DECISION = "design_decision"
    BUILD_LOG = "build_log"
    TEST_RESULT = "test_result"
    CONVERSATION = "conversation"
    PATTERN = "pattern"
    # Reserved for trajectory learning
    SUCCESSFUL_TRAJECTORY = "successful_trajectory"
    FAILED_TRAJECTORY = "failed_trajectory"
    KNOWLEDGE_STATE = "knowledge_state"


class ScopeType(str, Enum):
    """Scope levels an artifact can be routed to."""
    REPOSITORY = "repository"
    SUBMODULE = "submodule"
    SESSION = "session"
    TASK = "task"


class Outcome(str, Enum):
    """Outcome of the task a trajectory artifact describes."""
    SUCCESS = "success"
    FAILURE = "failure"


def estimate_tokens(text: str) -> int:
    """Estimate token count for text (~4 characters per token)."""
    return math.ceil(len(text) / 4)


# =============================================================================
# Artifact Schemas
# =============================================================================


class ArtifactMetadata(BaseModel):
    """Routing and retrieval metadata attached to an artifact."""
    model_config = ConfigDict(frozen=True)

    # Kept as a plain string so an unrecognized scope can reach the memory
    # router and be rejected there.
    scope: str = Field(description="Target scope: repository, submodule, session or task")
    submodule: str | None = Field(default=None, description="Submodule name when scope is submodule")
    task_id: str | None = Field(default=None, description="Task id when scope is task")
    file: str | None = Field(default=None, description="File path the artifact refers to")
    language: str | None = Field(default=None, description="Language or technology")
    tags: tuple[str, ...] = Field(default=(), description="Tags for keyword retrieval")
    confidence: float | None = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="Confidence score for learned patterns",
    )
    related: tuple[str, ...] = Field(default=(), description="Related artifact ids")
    outcome: Outcome | None = None
    trajectory: str | None = None


class Artifact(BaseModel):
    """A unit of remembered context."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Globally unique identifier")
    type: str = Field(description="Artifact type, usually an ArtifactType value")
    content: str = Field(description="Artifact text")
    metadata: ArtifactMetadata
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("id")
    @classmethod
    def _check_id(cls, value: str) -> str:
        if not value:
            raise ValueError("artifact id must not be empty")
        if value.startswith("."):
            raise ValueError(f"artifact id must not start with '.': {value!r}")
        if "/" in value or "\\" in value:
            raise ValueError(f"artifact id must not contain a path separator: {value!r}")
        return value

    @classmethod
    def create(
        cls,
        artifact_type: ArtifactType | str,
        content: str,
        scope: ScopeType | str,
        **metadata: Any,
    ) -> "Artifact":
        """Create an artifact with a generated id and the current timestamp."""
        type_value = artifact_type.value if isinstance(artifact_type, ArtifactType) else artifact_type
        scope_value = scope.value if isinstance(scope, ScopeType) else scope
        return cls(
            id=uuid.uuid4().hex,
            type=type_value,
            content=content,
            metadata=ArtifactMetadata(scope=scope_value, **metadata),
        )

    @property
    def token_estimate(self) -> int:
        return estimate_tokens(self.content)

    @property
    def confidence(self) -> float:
        """Confidence used for ranking; missing confidence counts as 0.5."""
        if self.metadata.confidence is None:
            return 0.5
        return self.metadata.confidence

    @property
    def scope_name(self) -> str:
        """Owning scope name: "task:<id>", "submodule:<name>" or the bare scope."""
        metadata = self.metadata
        if metadata.scope == ScopeType.TASK.value and metadata.task_id:
            return f"{ScopeType.TASK.value}:{metadata.task_id}"
        if metadata.scope == ScopeType.SUBMODULE.value and metadata.submodule:
            return f"{ScopeType.SUBMODULE.value}:{metadata.submodule}"
        return metadata.scope

    def matches(self, query: str) -> bool:
        """Case-insensitive substring match against content and joined tags."""
        query_lower = query.lower()
        tags = " ".join(self.metadata.tags).lower()
        return query_lower in self.content.lower() or query_lower in tags

    def for_task(self, task_id: str) -> "Artifact":
        """Copy of this artifact re-homed into the given task scope."""
        metadata = self.metadata.model_copy(
            update={"scope": ScopeType.TASK.value, "task_id": task_id}
        )
        return self.model_copy(update={"metadata": metadata})


# =============================================================================
# Task Context
# =============================================================================


class TaskContext(BaseModel):
    """Context a task scope is created with (title, description, labels, ...)."""
    model_config = ConfigDict(extra="allow")

    title: str = Field(description="Task title")
    description: str = Field(description="Task description")
    labels: list[str] = Field(default_factory=list)

    def build_query(self, max_length: int = 500) -> str:
        """Build the context-injection query from title and description."""
        return f"{self.title} {self.description}"[:max_length]
