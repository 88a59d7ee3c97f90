"""
Schemas for CCA Memory

Pydantic models shared by the memory engine, the durable store and the
issue-tracker feed.
"""

from .artifact import (
    ArtifactType,
    ScopeType,
    Outcome,
    ArtifactMetadata,
    Artifact,
    TaskContext,
    estimate_tokens,
)

__all__ = [
    "ArtifactType",
    "ScopeType",
    "Outcome",
    "ArtifactMetadata",
    "Artifact",
    "TaskContext",
    "estimate_tokens",
]
