"""Unit tests for the Beads issue tracker integration."""

import asyncio
import json

import pytest
from unittest.mock import AsyncMock

from cca_memory.config.settings import BeadsSettings, MemorySettings, StorageSettings
from cca_memory.errors import BeadsError
from cca_memory.feeds.beads import (
    BeadsIntegration,
    BeadsIssue,
    extract_patterns,
    parse_issues,
)
from cca_memory.memory.hierarchical import HierarchicalMemory


ISSUE_DESCRIPTION = """Error: audio dropouts when buffer size is 64
Solution:
- Increase ring buffer headroom
- Move allocation off the audio thread

Implementation: preallocate in prepareToPlay
"""


def issue_dict(issue_id, title="Audio dropouts", status="open", **extra):
    data = {
        "id": issue_id,
        "title": title,
        "description": ISSUE_DESCRIPTION,
        "status": status,
        "priority": 1,
        "issue_type": "bug",
        "labels": ["audio", "dsp"],
    }
    data.update(extra)
    return data


@pytest.fixture
def beads():
    """Create a Beads integration with auto features enabled."""
    settings = BeadsSettings(
        database_path=".",
        auto_create_task_scopes=True,
        auto_generate_notes=True,
    )
    return BeadsIntegration(settings, repository_name="white_room")


@pytest.fixture
def memory(tmp_path):
    """Create a hierarchical memory."""
    settings = MemorySettings(
        repository=str(tmp_path),
        storage=StorageSettings(path=str(tmp_path / "memory")),
    )
    return HierarchicalMemory(settings)


class TestParseIssues:
    """Tests for parsing bd JSON output."""

    def test_json_array(self):
        """Test parsing a JSON array."""
        output = json.dumps([issue_dict("bd-1"), issue_dict("bd-2")])
        assert [i.id for i in parse_issues(output)] == ["bd-1", "bd-2"]

    def test_json_lines(self):
        """Test parsing one JSON object per line, skipping bad lines."""
        output = "\n".join([
            json.dumps(issue_dict("bd-1")),
            "not json",
            "",
            json.dumps(issue_dict("bd-2")),
        ])
        assert [i.id for i in parse_issues(output)] == ["bd-1", "bd-2"]

    def test_drops_entries_without_id_or_title(self):
        """Test that incomplete entries are dropped."""
        output = json.dumps([issue_dict("bd-1"), {"id": "bd-2"}, {"title": "x"}, None])
        assert [i.id for i in parse_issues(output)] == ["bd-1"]

    def test_empty_output(self):
        """Test parsing empty output."""
        assert parse_issues("  \n") == []

    def test_from_dict_defaults(self):
        """Test defaults for missing optional fields."""
        issue = BeadsIssue.from_dict({"id": "bd-1", "title": "T", "labels": None})

        assert issue.description == ""
        assert issue.status == "open"
        assert issue.labels == []


class TestExtractPatterns:
    """Tests for pattern extraction."""

    def test_extracts_marked_lines(self):
        """Test extracting text after known markers."""
        text = "Fix: guard null pointer\nResolved by: bumping timeout\nnothing here"
        assert extract_patterns(text) == ["guard null pointer", "bumping timeout"]

    def test_no_patterns(self):
        """Test text without markers."""
        assert extract_patterns("just a description") == []


class TestQueries:
    """Tests for issue queries."""

    @pytest.mark.asyncio
    async def test_get_issue(self, beads):
        """Test fetching one issue."""
        beads._run_bd = AsyncMock(return_value=json.dumps([issue_dict("bd-1")]))

        issue = await beads.get_issue("bd-1")

        assert issue.title == "Audio dropouts"
        beads._run_bd.assert_awaited_once_with("show", "bd-1", "--json")

    @pytest.mark.asyncio
    async def test_get_issue_not_found(self, beads):
        """Test that an empty result raises."""
        beads._run_bd = AsyncMock(return_value="[]")

        with pytest.raises(BeadsError):
            await beads.get_issue("bd-404")

    @pytest.mark.asyncio
    async def test_search_and_label(self, beads):
        """Test keyword and label filters."""
        beads._run_bd = AsyncMock(return_value=json.dumps([
            issue_dict("bd-1"),
            issue_dict("bd-2", title="Docs", description="Write docs", labels=["docs"]),
        ]))

        assert [i.id for i in await beads.search_issues("DROPOUTS")] == ["bd-1"]
        assert [i.id for i in await beads.search_issues("docs")] == ["bd-2"]
        assert [i.id for i in await beads.get_issues_by_label("dsp")] == ["bd-1"]

    @pytest.mark.asyncio
    async def test_stats(self, beads):
        """Test issue statistics."""
        beads._run_bd = AsyncMock(return_value=json.dumps([
            issue_dict("bd-1", status="open"),
            issue_dict("bd-2", status="closed"),
            issue_dict("bd-3", status="closed"),
            issue_dict("bd-4", status="blocked"),
        ]))

        stats = await beads.get_stats()

        assert stats == {"total": 4, "open": 1, "closed": 2, "in_progress": 0, "blocked": 1}

    @pytest.mark.asyncio
    async def test_missing_bd_binary(self, tmp_path):
        """Test that a missing bd executable raises BeadsError."""
        beads = BeadsIntegration(BeadsSettings(database_path=str(tmp_path / "missing")), "repo")

        with pytest.raises(BeadsError):
            await beads.list_issues()


class TestNotes:
    """Tests for note generation and storage."""

    @pytest.mark.asyncio
    async def test_generate_note(self, beads):
        """Test the sections of a generated note."""
        beads._run_bd = AsyncMock(return_value=json.dumps([issue_dict(
            "bd-1",
            dependencies=[{"id": "bd-0", "title": "Ring buffer", "status": "closed"}],
        )]))

        note = await beads.generate_note_from_issue("bd-1")

        assert note.startswith("# Note: Audio dropouts")
        assert "**Repository:** white_room" in note
        assert "- audio dropouts when buffer size is 64" in note
        assert "- Increase ring buffer headroom\n- Move allocation off the audio thread" in note
        assert "- preallocate in prepareToPlay" in note
        assert "- bd-0: Ring buffer" in note
        assert "audio, dsp" in note

    @pytest.mark.asyncio
    async def test_generate_note_fallbacks(self, beads):
        """Test placeholder sections when the description has no markers."""
        beads._run_bd = AsyncMock(return_value=json.dumps([issue_dict("bd-1", description="plain")]))

        note = await beads.generate_note_from_issue("bd-1")

        assert "- See issue description for details" in note
        assert "1. Implemented solution per issue description" in note
        assert "## Related Issues\nNone" in note

    @pytest.mark.asyncio
    async def test_create_note_stores_pattern(self, beads, memory):
        """Test that a note becomes a repository pattern artifact."""
        artifact = await beads.create_note("bd-1", "# Note: fix", memory)

        assert artifact.id.startswith("note-bd-1-")
        assert artifact.type == "pattern"
        assert artifact.metadata.scope == "repository"
        assert artifact.metadata.task_id == "bd-1"
        assert artifact.metadata.tags == ("learned-pattern", "beads-resolution")
        assert artifact.metadata.confidence == 0.8
        assert artifact.id in memory.get_scope("repository")


class TestResolutionPolling:
    """Tests for polling newly resolved issues."""

    @pytest.mark.asyncio
    async def test_first_poll_primes(self, beads):
        """Test that already closed issues are not reported."""
        beads._run_bd = AsyncMock(return_value=json.dumps([issue_dict("bd-1", status="closed")]))

        assert await beads.poll_resolutions() == []
        assert await beads.poll_resolutions() == []

    @pytest.mark.asyncio
    async def test_reports_new_closures_once(self, beads):
        """Test that an issue closed after priming is reported once."""
        open_list = json.dumps([issue_dict("bd-1", status="open")])
        closed_list = json.dumps([issue_dict("bd-1", status="closed")])
        closed_show = json.dumps([issue_dict("bd-1", status="closed")])

        beads._run_bd = AsyncMock(side_effect=[open_list, closed_list, closed_show, closed_list])

        await beads.prime()
        first = await beads.poll_resolutions()
        second = await beads.poll_resolutions()

        assert [issue_id for issue_id, _ in first] == ["bd-1"]
        assert first[0][1].startswith("# Note: Audio dropouts")
        assert second == []

    @pytest.mark.asyncio
    async def test_sync_resolutions_stores_notes(self, beads, memory):
        """Test syncing notes into memory."""
        beads.mark_reported([])
        listing = json.dumps([issue_dict("bd-5", status="closed")])
        beads._run_bd = AsyncMock(side_effect=[listing, listing])

        notes = await beads.sync_resolutions(memory)

        assert len(notes) == 1
        assert notes[0].metadata.task_id == "bd-5"
        assert len(await memory.search_scope("beads-resolution", "repository")) == 1

    @pytest.mark.asyncio
    async def test_sync_disabled(self, memory):
        """Test that syncing does nothing when note generation is off."""
        beads = BeadsIntegration(BeadsSettings(auto_generate_notes=False), "repo")
        beads._run_bd = AsyncMock()

        assert await beads.sync_resolutions(memory) == []
        beads._run_bd.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_create_ready_task_scopes(self, beads, memory):
        """Test that ready issues get task scopes, skipping existing ones."""
        ready = json.dumps([issue_dict("bd-1"), issue_dict("bd-2")])
        beads._run_bd = AsyncMock(return_value=ready)
        await memory.create_task_scope("bd-1", {"title": "t", "description": "d"})

        created = await beads.create_ready_task_scopes(memory)

        assert created == ["bd-2"]
        config = memory.get_scope("task:bd-2").get_config()
        assert config.task_context.title == "Audio dropouts"
        assert config.task_context.labels == ["audio", "dsp"]

    @pytest.mark.asyncio
    async def test_watch_resolutions(self, beads):
        """Test that the watcher reports closures and survives errors."""
        open_list = json.dumps([issue_dict("bd-1", status="open")])
        closed_list = json.dumps([issue_dict("bd-1", status="closed")])

        responses = [open_list, BeadsError("bd unavailable"), closed_list, closed_list]

        async def run_bd(*args):
            response = responses.pop(0) if responses else closed_list
            if isinstance(response, Exception):
                raise response
            return response

        beads._run_bd = run_bd
        reported = []

        task = beads.watch_resolutions(lambda issue_id, note: reported.append(issue_id), interval=0.01)
        try:
            for _ in range(100):
                if reported:
                    break
                await asyncio.sleep(0.01)
        finally:
            task.cancel()

        assert reported == ["bd-1"]
