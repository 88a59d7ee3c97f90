"""
Context Compression Engine for CCA Memory

Selects an importance-ordered subset of pooled artifacts that fits a token
budget. Selection is a greedy 0/1 knapsack: artifacts are ranked by
confidence (missing counts as 0.5), then by recency, and taken in that order
while they fit. An artifact larger than the remaining budget is skipped, not
truncated.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from ..config.settings import CompressionSettings
from ..schemas.artifact import Artifact, estimate_tokens

logger = logging.getLogger(__name__)


@dataclass
class CompressionOptions:
    """Options for a single compression call."""
    target_tokens: int
    active_scope: str | None = None
    preserve_critical: bool = False  # advisory


@dataclass
class CompressionResult:
    """Result of compressing a set of artifacts."""
    artifacts: list[Artifact] = field(default_factory=list)
    ratio: float = 0.0
    total_tokens: int = 0
    original_tokens: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "artifact_ids": [artifact.id for artifact in self.artifacts],
            "ratio": self.ratio,
            "total_tokens": self.total_tokens,
            "original_tokens": self.original_tokens,
        }


class ContextCompressionEngine:
    """Compress context while preserving the most important artifacts."""

    def __init__(self, settings: CompressionSettings | None = None):
        self.settings = settings or CompressionSettings()

    async def compress(
        self,
        artifacts: list[Artifact],
        options: CompressionOptions,
    ) -> CompressionResult:
        """
        Compress artifacts to fit within the target token budget.

        Args:
            artifacts: Pooled candidate artifacts
            options: Target budget and advisory hints

        Returns:
            CompressionResult with the selected artifacts in importance order
            (or input order when everything fits)
        """
        if not artifacts:
            return CompressionResult()

        original_tokens = self.count_tokens(artifacts)

        if original_tokens <= options.target_tokens:
            return CompressionResult(
                artifacts=list(artifacts),
                ratio=1.0,
                total_tokens=original_tokens,
                original_tokens=original_tokens,
            )

        selected = []
        total_tokens = 0

        for artifact in self.sort_by_importance(artifacts):
            tokens = estimate_tokens(artifact.content)
            if total_tokens + tokens <= options.target_tokens:
                selected.append(artifact)
                total_tokens += tokens

            if total_tokens >= options.target_tokens:
                break

        ratio = len(selected) / len(artifacts)

        logger.debug(
            "Compressed %d artifacts to %d (%d/%d tokens, level=%s, active_scope=%s, preserve_critical=%s)",
            len(artifacts),
            len(selected),
            total_tokens,
            options.target_tokens,
            self.settings.compression_level,
            options.active_scope,
            options.preserve_critical,
        )

        return CompressionResult(
            artifacts=selected,
            ratio=ratio,
            total_tokens=total_tokens,
            original_tokens=original_tokens,
        )

    def sort_by_importance(self, artifacts: list[Artifact]) -> list[Artifact]:
        """Sort by confidence, then timestamp, both descending."""
        return sorted(
            artifacts,
            key=lambda a: (a.confidence, a.timestamp.timestamp()),
            reverse=True,
        )

    def count_tokens(self, artifacts: list[Artifact]) -> int:
        """Count total estimated tokens in artifacts."""
        return sum(estimate_tokens(artifact.content) for artifact in artifacts)
