"""
Feeds for CCA Memory

Sources that turn external events into artifacts.
"""

from .beads import (
    BeadsIssue,
    BeadsIntegration,
    parse_issues,
    extract_patterns,
)

__all__ = [
    "BeadsIssue",
    "BeadsIntegration",
    "parse_issues",
    "extract_patterns",
]
