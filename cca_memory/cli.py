"""
CLI for CCA Memory

This module provides a command-line interface to the hierarchical memory.
Settings come from the environment (CCA_REPO, CCA_SUBMODULES, ...).
"""

import argparse
import asyncio
import json
import sys
from typing import Any, Awaitable, Callable

from pydantic import ValidationError
from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .config.settings import MemorySettings, get_settings
from .errors import MemorySystemError
from .feeds.beads import BeadsIntegration
from .logging_config import setup_logging
from .memory.hierarchical import HierarchicalMemory
from .schemas.artifact import Artifact, ArtifactType, ScopeType, TaskContext

console = Console()


def _load_settings() -> MemorySettings:
    settings = get_settings()
    errors = settings.validate()
    if errors:
        for error in errors:
            console.print(f"[red]Configuration error: {escape(error)}[/red]")
        sys.exit(1)
    return settings


def _run(operation: Callable[[HierarchicalMemory, MemorySettings], Awaitable[None]]) -> None:
    """Load memory from storage, run an operation and report taxonomy errors."""
    settings = _load_settings()
    setup_logging(settings.logging)

    async def run_operation():
        memory = HierarchicalMemory(settings)
        await memory.load()
        await operation(memory, settings)

    try:
        asyncio.run(run_operation())
    except (MemorySystemError, ValidationError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)


def _print_json(data: Any) -> None:
    console.print_json(json.dumps(data))


def _artifact_table(title: str, artifacts: list[Artifact]) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="cyan")
    table.add_column("Type")
    table.add_column("Scope")
    table.add_column("Confidence", justify="right")
    table.add_column("Tokens", justify="right")
    table.add_column("Content")

    for artifact in artifacts:
        preview = artifact.content.replace("\n", " ")
        if len(preview) > 60:
            preview = preview[:57] + "..."
        table.add_row(
            artifact.id,
            artifact.type,
            HierarchicalMemory.resolve_scope_name(artifact),
            f"{artifact.confidence:.2f}",
            str(artifact.token_estimate),
            escape(preview),
        )

    return table


def store_command(args):
    """Store an artifact."""
    metadata: dict[str, Any] = {"tags": [t.strip() for t in args.tags.split(",") if t.strip()]}
    for key in ("submodule", "task_id", "file", "language", "confidence"):
        value = getattr(args, key)
        if value is not None:
            metadata[key] = value

    async def operation(memory: HierarchicalMemory, settings: MemorySettings):
        artifact = Artifact.create(args.type, args.content, args.scope, **metadata)
        await memory.store(artifact)

        if args.json:
            _print_json(artifact.model_dump(mode="json"))
        else:
            console.print(
                f"[green]Stored {artifact.id} in {HierarchicalMemory.resolve_scope_name(artifact)}[/green]"
            )

    _run(operation)


def retrieve_command(args):
    """Retrieve compressed context for a query."""
    async def operation(memory: HierarchicalMemory, settings: MemorySettings):
        context = await memory.retrieve(args.query, args.active_scope)

        if args.json:
            _print_json(context.to_dict())
            return

        console.print(_artifact_table(f"Results for '{args.query}'", context.artifacts))
        console.print(
            f"[dim]Tokens: {context.total_tokens} "
            f"(compression ratio {context.compression_ratio:.2f})[/dim]"
        )
        for name, entry in context.scopes.items():
            console.print(f"[dim]  {name}: {entry.artifacts} artifacts, {entry.tokens} tokens[/dim]")

    _run(operation)


def create_task_command(args):
    """Create a task scope seeded with relevant context."""
    task_context = TaskContext(
        title=args.title,
        description=args.description,
        labels=[label.strip() for label in args.labels.split(",") if label.strip()],
    )

    async def operation(memory: HierarchicalMemory, settings: MemorySettings):
        injected = await memory.create_task_scope(args.task_id, task_context)

        if args.json:
            _print_json({"scope": f"task:{args.task_id}", "injected": injected})
        else:
            console.print(f"[green]Created task:{args.task_id} with {injected} injected artifacts[/green]")

    _run(operation)


def search_scope_command(args):
    """Search a single scope without compression."""
    async def operation(memory: HierarchicalMemory, settings: MemorySettings):
        artifacts = await memory.search_scope(args.query, args.scope)

        if args.json:
            _print_json([artifact.model_dump(mode="json") for artifact in artifacts])
        else:
            console.print(_artifact_table(f"{args.scope}: '{args.query}'", artifacts))

    _run(operation)


def stats_command(args):
    """Show memory statistics."""
    async def operation(memory: HierarchicalMemory, settings: MemorySettings):
        stats = await memory.get_stats()

        if args.json:
            _print_json(stats.to_dict())
            return

        table = Table(title=f"Memory: {settings.repository_name}")
        table.add_column("Scope", style="cyan")
        table.add_column("Artifacts", justify="right")
        table.add_column("Tokens", justify="right")

        for name, scope in memory.scopes.items():
            scope_stats = await scope.get_stats()
            table.add_row(name, str(scope_stats.artifacts), str(scope_stats.tokens))

        table.add_row("[bold]Total[/bold]", str(stats.artifacts), str(stats.total_tokens))
        console.print(table)

    _run(operation)


def clear_command(args):
    """Clear all scopes and persisted artifacts."""
    if not args.yes:
        console.print("[yellow]Refusing to clear memory without --yes[/yellow]")
        sys.exit(1)

    async def operation(memory: HierarchicalMemory, settings: MemorySettings):
        await memory.clear(include_storage=True)
        console.print("[green]Memory cleared[/green]")

    _run(operation)


def issue_note_command(args):
    """Generate a learned-pattern note from a Beads issue."""
    async def operation(memory: HierarchicalMemory, settings: MemorySettings):
        beads = BeadsIntegration(settings.beads, settings.repository_name)
        note = await beads.generate_note_from_issue(args.issue_id)

        artifact = None
        if args.store:
            artifact = await beads.create_note(args.issue_id, note, memory)

        if args.json:
            _print_json({"issue_id": args.issue_id, "note": note, "artifact_id": artifact.id if artifact else None})
            return

        console.print(Panel(
            Markdown(note),
            title=f"[bold green]{args.issue_id}[/bold green]",
            border_style="green",
        ))
        if artifact:
            console.print(f"[green]Stored {artifact.id}[/green]")

    _run(operation)


def sync_issues_command(args):
    """Store notes for newly resolved issues and create scopes for ready ones."""
    async def operation(memory: HierarchicalMemory, settings: MemorySettings):
        beads = BeadsIntegration(settings.beads, settings.repository_name)
        # Each run is a fresh process: every closed issue without a stored note is new
        beads.mark_reported(
            artifact.metadata.task_id
            for artifact in await memory.search_scope("beads-resolution", "repository")
            if artifact.metadata.task_id
        )
        notes = await beads.sync_resolutions(memory)
        scopes = await beads.create_ready_task_scopes(memory)

        if args.json:
            _print_json({"notes": [a.id for a in notes], "task_scopes": scopes})
        else:
            console.print(f"[green]Stored {len(notes)} notes, created {len(scopes)} task scopes[/green]")

    _run(operation)


def version_command(args):
    """Show the CCA Memory version."""
    from . import __version__
    console.print(f"CCA Memory version {__version__}")


def main(argv: list[str] | None = None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="cca-memory",
        description="CCA Memory: hierarchical context memory for coding assistants",
    )
    parser.add_argument("--json", action="store_true", help="Print machine-readable JSON")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Store command
    store_parser = subparsers.add_parser("store", help="Store an artifact")
    store_parser.add_argument("content", help="Artifact text")
    store_parser.add_argument(
        "-t", "--type",
        default=ArtifactType.CONVERSATION.value,
        help="Artifact type (code_diff, error_message, pattern, ...)",
    )
    store_parser.add_argument(
        "-s", "--scope",
        default=ScopeType.SESSION.value,
        help="Target scope: repository, submodule, session or task",
    )
    store_parser.add_argument("--submodule", help="Submodule name for submodule scope")
    store_parser.add_argument("--task-id", dest="task_id", help="Task id for task scope")
    store_parser.add_argument("--tags", default="", help="Comma-separated tags")
    store_parser.add_argument("--confidence", type=float, help="Confidence between 0 and 1")
    store_parser.add_argument("--file", help="File the artifact refers to")
    store_parser.add_argument("--language", help="Language or technology")
    store_parser.set_defaults(func=store_command)

    # Retrieve command
    retrieve_parser = subparsers.add_parser("retrieve", help="Retrieve context for a query")
    retrieve_parser.add_argument("query", help="Keyword query")
    retrieve_parser.add_argument("--active-scope", dest="active_scope", help="Active task scope, e.g. task:bd-12")
    retrieve_parser.set_defaults(func=retrieve_command)

    # Create task command
    task_parser = subparsers.add_parser("create-task", help="Create a task scope")
    task_parser.add_argument("task_id", help="Task id")
    task_parser.add_argument("--title", required=True, help="Task title")
    task_parser.add_argument("--description", default="", help="Task description")
    task_parser.add_argument("--labels", default="", help="Comma-separated labels")
    task_parser.set_defaults(func=create_task_command)

    # Search scope command
    search_parser = subparsers.add_parser("search-scope", help="Search one scope")
    search_parser.add_argument("scope", help="Scope name, e.g. repository or submodule:sdk")
    search_parser.add_argument("query", help="Keyword query")
    search_parser.set_defaults(func=search_scope_command)

    # Stats command
    stats_parser = subparsers.add_parser("stats", help="Show memory statistics")
    stats_parser.set_defaults(func=stats_command)

    # Clear command
    clear_parser = subparsers.add_parser("clear", help="Clear all memory")
    clear_parser.add_argument("--yes", action="store_true", help="Confirm clearing memory")
    clear_parser.set_defaults(func=clear_command)

    # Issue note command
    note_parser = subparsers.add_parser("issue-note", help="Generate a note from a Beads issue")
    note_parser.add_argument("issue_id", help="Beads issue id")
    note_parser.add_argument("--store", action="store_true", help="Store the note in repository memory")
    note_parser.set_defaults(func=issue_note_command)

    # Sync issues command
    sync_parser = subparsers.add_parser("sync-issues", help="Sync resolved and ready Beads issues")
    sync_parser.set_defaults(func=sync_issues_command)

    # Version command
    version_parser = subparsers.add_parser("version", help="Show version")
    version_parser.set_defaults(func=version_command)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    args.func(args)


if __name__ == "__main__":
    main()
