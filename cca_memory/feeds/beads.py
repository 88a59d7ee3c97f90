"""
Beads Integration for CCA Memory

Feeds the memory engine from the Beads (``bd``) issue tracker:
- Reads issues through the ``bd`` CLI's JSON output
- Turns resolved issues into learned-pattern notes in the repository scope
- Creates task scopes for issues that are ready to work on
- Polls for newly closed issues in the background
"""

import asyncio
import inspect
import json
import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterable, Optional, Union

from ..config.settings import BeadsSettings
from ..errors import BeadsError
from ..memory.hierarchical import HierarchicalMemory
from ..memory.scopes import ScopeKind, scope_name_for
from ..schemas.artifact import Artifact, ArtifactMetadata, ArtifactType, ScopeType, TaskContext

logger = logging.getLogger(__name__)

NOTE_TAGS = ("learned-pattern", "beads-resolution")
NOTE_CONFIDENCE = 0.8

ResolutionCallback = Callable[[str, str], Optional[Awaitable[None]]]

_PATTERN_REGEXES = [
    re.compile(r"\bfix[:\s]+(.+)$", re.IGNORECASE | re.MULTILINE),
    re.compile(r"\bsolution[:\s]+(.+)$", re.IGNORECASE | re.MULTILINE),
    re.compile(r"\bresolved by[:\s]+(.+)$", re.IGNORECASE | re.MULTILINE),
    re.compile(r"\bapproach[:\s]+(.+)$", re.IGNORECASE | re.MULTILINE),
    re.compile(r"\bimplementation[:\s]+(.+)$", re.IGNORECASE | re.MULTILINE),
]

_PROBLEM_REGEXES = [
    re.compile(r"\berror[:\s]+(.+)$", re.IGNORECASE | re.MULTILINE),
    re.compile(r"\bproblem[:\s]+(.+)$", re.IGNORECASE | re.MULTILINE),
    re.compile(r"\bissue[:\s]+(.+)$", re.IGNORECASE | re.MULTILINE),
    re.compile(r"\bbug[:\s]+(.+)$", re.IGNORECASE | re.MULTILINE),
]

_IMPLEMENTATION_REGEXES = [
    re.compile(r"\bimplementation[:\s]+(.+)$", re.IGNORECASE | re.MULTILINE),
    re.compile(r"\bcode[:\s]+(.+)$", re.IGNORECASE | re.MULTILINE),
    re.compile(r"\bchanges[:\s]+(.+)$", re.IGNORECASE | re.MULTILINE),
]

_SOLUTION_HEADER = re.compile(r"^(solution|fix|approach|resolution)[:\s]", re.IGNORECASE)
_NUMBERED_STEP = re.compile(r"^\d+\.")


@dataclass
class BeadsIssue:
    """An issue as reported by ``bd ... --json``."""
    id: str
    title: str
    description: str = ""
    status: str = "open"
    priority: int = 0
    issue_type: str = "task"
    created_at: str | None = None
    updated_at: str | None = None
    closed_at: str | None = None
    labels: list[str] = field(default_factory=list)
    dependencies: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BeadsIssue":
        return cls(
            id=str(data["id"]),
            title=str(data["title"]),
            description=data.get("description") or "",
            status=data.get("status") or "open",
            priority=data.get("priority") or 0,
            issue_type=data.get("issue_type") or "task",
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
            closed_at=data.get("closed_at"),
            labels=list(data.get("labels") or []),
            dependencies=list(data.get("dependencies") or []),
        )

    def to_task_context(self) -> TaskContext:
        return TaskContext(
            title=self.title,
            description=self.description,
            labels=self.labels,
            status=self.status,
            priority=self.priority,
        )


def _is_issue_record(entry: Any) -> bool:
    return isinstance(entry, dict) and bool(entry.get("id")) and bool(entry.get("title"))


def parse_issues(output: str) -> list[BeadsIssue]:
    """
    Parse ``bd`` JSON output.

    Accepts a single JSON array (or object) or one JSON object per line.
    Entries without an id and a title are dropped, as are unparseable lines.
    """
    output = output.strip()
    if not output:
        return []

    try:
        data = json.loads(output)
    except json.JSONDecodeError:
        entries = []
        for line in output.splitlines():
            line = line.strip()
            if not line:
                continue
            try:
                entries.append(json.loads(line))
            except json.JSONDecodeError:
                logger.debug("Skipping unparseable bd output line: %s", line[:100])
    else:
        entries = data if isinstance(data, list) else [data]

    return [BeadsIssue.from_dict(entry) for entry in entries if _is_issue_record(entry)]


def extract_patterns(text: str) -> list[str]:
    """Extract the text following fix/solution/resolved by/approach/implementation markers."""
    patterns = []
    for regex in _PATTERN_REGEXES:
        for match in regex.finditer(text):
            value = match.group(1).strip()
            if value:
                patterns.append(value)
    return patterns


def _first_match(regexes: list[re.Pattern], text: str) -> str | None:
    for regex in regexes:
        match = regex.search(text)
        if match and match.group(1).strip():
            return match.group(1).strip()
    return None


class BeadsIntegration:
    """
    Integration with the Beads issue tracker.

    All queries shell out to ``bd`` in the configured database directory.
    """

    def __init__(self, settings: BeadsSettings, repository_name: str):
        self.settings = settings
        self.repository_name = repository_name
        self._known_closed: set[str] = set()
        self._primed = False

    async def _run_bd(self, *args: str) -> str:
        """Run a ``bd`` command and return its stdout."""
        command = ["bd", *args]

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                cwd=self.settings.database_path,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise BeadsError(f"Failed to run bd: {e}", command=command) from e

        stdout, stderr = await process.communicate()

        if process.returncode != 0:
            raise BeadsError(
                f"bd {' '.join(args)} exited with {process.returncode}: {stderr.decode().strip()}",
                command=command,
            )

        return stdout.decode()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def get_issue(self, issue_id: str) -> BeadsIssue:
        """Get one issue by id."""
        issues = parse_issues(await self._run_bd("show", issue_id, "--json"))
        if not issues:
            raise BeadsError(f"Issue not found: {issue_id}", command=["bd", "show", issue_id, "--json"])
        return issues[0]

    async def list_issues(self) -> list[BeadsIssue]:
        return parse_issues(await self._run_bd("list", "--json"))

    async def get_ready_issues(self) -> list[BeadsIssue]:
        """Get issues with no open blockers."""
        return parse_issues(await self._run_bd("ready", "--json"))

    async def search_issues(self, query: str) -> list[BeadsIssue]:
        """Case-insensitive search over title, description and labels."""
        query_lower = query.lower()
        return [
            issue for issue in await self.list_issues()
            if query_lower in issue.title.lower()
            or query_lower in issue.description.lower()
            or query_lower in " ".join(issue.labels).lower()
        ]

    async def get_issues_by_label(self, label: str) -> list[BeadsIssue]:
        return [issue for issue in await self.list_issues() if label in issue.labels]

    async def get_stats(self) -> dict[str, int]:
        issues = await self.list_issues()
        return {
            "total": len(issues),
            "open": sum(1 for i in issues if i.status == "open"),
            "closed": sum(1 for i in issues if i.status == "closed"),
            "in_progress": sum(1 for i in issues if i.status == "in_progress"),
            "blocked": sum(1 for i in issues if i.status == "blocked"),
        }

    # -------------------------------------------------------------------------
    # Notes
    # -------------------------------------------------------------------------

    async def generate_note_from_issue(self, issue_id: str) -> str:
        """Generate a markdown learned-pattern note from an issue."""
        issue = await self.get_issue(issue_id)
        patterns = extract_patterns(issue.description)

        related = "\n".join(
            f"- {dep.get('id')}: {dep.get('title')}" for dep in issue.dependencies
        ) or "None"

        return (
            f"# Note: {issue.title}\n"
            f"\n"
            f"**Issue:** {issue.id}\n"
            f"**Repository:** {self.repository_name}\n"
            f"**Generated:** {datetime.now(timezone.utc).isoformat()}\n"
            f"**Patterns found:** {len(patterns)}\n"
            f"\n"
            f"## Problem Pattern\n"
            f"{self._problem_section(issue)}\n"
            f"\n"
            f"## Solution Strategy\n"
            f"{self._solution_section(issue)}\n"
            f"\n"
            f"## Implementation Details\n"
            f"{self._implementation_section(issue)}\n"
            f"\n"
            f"## Related Issues\n"
            f"{related}\n"
            f"\n"
            f"## Tags\n"
            f"{', '.join(issue.labels)}\n"
        )

    @staticmethod
    def _problem_section(issue: BeadsIssue) -> str:
        problem = _first_match(_PROBLEM_REGEXES, issue.description)
        return f"- {problem}" if problem else "- See issue description for details"

    @staticmethod
    def _solution_section(issue: BeadsIssue) -> str:
        # Bullets or numbered steps following a "Solution:"-style header line
        strategies = []
        in_solution = False

        for line in issue.description.splitlines():
            stripped = line.strip()

            if _SOLUTION_HEADER.match(stripped):
                in_solution = True
                continue
            if not in_solution:
                continue
            if stripped.startswith("-") or _NUMBERED_STEP.match(stripped):
                strategies.append(stripped)
            elif not stripped:
                break

        return "\n".join(strategies) if strategies else "1. Implemented solution per issue description"

    @staticmethod
    def _implementation_section(issue: BeadsIssue) -> str:
        detail = _first_match(_IMPLEMENTATION_REGEXES, issue.description)
        return f"- {detail}" if detail else "- See issue description for implementation details"

    async def create_note(
        self,
        issue_id: str,
        note: str,
        memory: HierarchicalMemory | None = None,
    ) -> Artifact:
        """
        Build a repository-scope pattern artifact from a note.

        The artifact is stored in memory when one is given.
        """
        artifact = Artifact(
            id=f"note-{issue_id}-{int(time.time() * 1000)}",
            type=ArtifactType.PATTERN.value,
            content=note,
            metadata=ArtifactMetadata(
                scope=ScopeType.REPOSITORY.value,
                task_id=issue_id,
                tags=NOTE_TAGS,
                confidence=NOTE_CONFIDENCE,
            ),
        )

        if memory is not None:
            await memory.store(artifact)

        logger.info("Created note for issue", extra={"issue_id": issue_id, "artifact_id": artifact.id})
        return artifact

    # -------------------------------------------------------------------------
    # Resolution polling
    # -------------------------------------------------------------------------

    async def prime(self) -> int:
        """Record currently closed issues so only later closures are reported."""
        issues = await self.list_issues()
        self._known_closed = {issue.id for issue in issues if issue.status == "closed"}
        self._primed = True
        return len(self._known_closed)

    def mark_reported(self, issue_ids: Iterable[str]) -> None:
        """Treat the given issues as already reported and skip the priming scan."""
        self._known_closed.update(issue_ids)
        self._primed = True

    async def poll_resolutions(self) -> list[tuple[str, str]]:
        """
        Get (issue_id, note) pairs for issues closed since the last poll.

        The first call only primes the known-closed set.
        """
        if not self._primed:
            await self.prime()
            return []

        resolved = []
        for issue in await self.list_issues():
            if issue.status != "closed" or issue.id in self._known_closed:
                continue
            note = await self.generate_note_from_issue(issue.id)
            self._known_closed.add(issue.id)
            resolved.append((issue.id, note))

        return resolved

    async def sync_resolutions(self, memory: HierarchicalMemory) -> list[Artifact]:
        """Store notes for newly resolved issues when note generation is enabled."""
        if not self.settings.auto_generate_notes:
            return []

        return [
            await self.create_note(issue_id, note, memory)
            for issue_id, note in await self.poll_resolutions()
        ]

    async def create_ready_task_scopes(self, memory: HierarchicalMemory) -> list[str]:
        """Create task scopes for ready issues when enabled. Existing scopes are skipped."""
        if not self.settings.auto_create_task_scopes:
            return []

        created = []
        for issue in await self.get_ready_issues():
            if scope_name_for(ScopeKind.TASK, issue.id) in memory.scopes:
                continue
            await memory.create_task_scope(issue.id, issue.to_task_context())
            created.append(issue.id)

        return created

    def watch_resolutions(
        self,
        callback: ResolutionCallback,
        interval: Union[int, float, None] = None,
    ) -> asyncio.Task:
        """
        Poll for resolved issues in the background.

        Args:
            callback: Called with (issue_id, note); may be a coroutine function
            interval: Seconds between polls (defaults to poll_interval_seconds)

        Returns:
            The polling task; cancel it to stop watching
        """
        interval = interval if interval is not None else self.settings.poll_interval_seconds

        async def _watch() -> None:
            try:
                await self.prime()
            except BeadsError as e:
                logger.warning("Initial Beads scan failed: %s", e.message)

            while True:
                await asyncio.sleep(interval)
                try:
                    for issue_id, note in await self.poll_resolutions():
                        result = callback(issue_id, note)
                        if inspect.isawaitable(result):
                            await result
                except Exception:
                    logger.exception("Error checking for resolutions")

        return asyncio.create_task(_watch())
