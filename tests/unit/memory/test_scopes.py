"""Unit tests for memory scopes."""

import pytest

from cca_memory.errors import AdmissionError
from cca_memory.memory.scopes import (
    ScopeKind,
    ScopeStats,
    scope_name_for,
    create_repository_scope,
    create_submodule_scope,
    create_session_scope,
    create_task_scope,
)
from cca_memory.schemas.artifact import Artifact, ArtifactMetadata, TaskContext


def make_artifact(artifact_id, content="some content", **metadata):
    metadata.setdefault("scope", "repository")
    return Artifact(
        id=artifact_id,
        type="code_diff",
        content=content,
        metadata=ArtifactMetadata(**metadata),
    )


class TestScopeNames:
    """Tests for scope naming."""

    def test_fixed_names(self):
        """Test names of the singleton scopes."""
        assert scope_name_for(ScopeKind.REPOSITORY) == "repository"
        assert scope_name_for(ScopeKind.SESSION) == "session"

    def test_keyed_names(self):
        """Test names of keyed scopes."""
        assert scope_name_for(ScopeKind.SUBMODULE, "sdk") == "submodule:sdk"
        assert scope_name_for(ScopeKind.TASK, "bd-12") == "task:bd-12"


class TestScopeAdmission:
    """Tests for per-kind admission rules."""

    @pytest.mark.asyncio
    async def test_repository_admits_repository_scope(self):
        """Test that the repository scope admits repository artifacts."""
        scope = create_repository_scope("white_room")
        await scope.store(make_artifact("a1"))

        assert "a1" in scope
        assert scope.name == "repository"
        assert scope.kind == ScopeKind.REPOSITORY

    @pytest.mark.asyncio
    async def test_repository_rejects_session_scope(self):
        """Test that the repository scope rejects other scopes."""
        scope = create_repository_scope("white_room")

        with pytest.raises(AdmissionError) as exc_info:
            await scope.store(make_artifact("a1", scope="session"))

        assert exc_info.value.scope_name == "repository"
        assert exc_info.value.artifact_id == "a1"
        assert len(scope) == 0

    @pytest.mark.asyncio
    async def test_submodule_matches_name(self):
        """Test that a submodule scope admits only its own submodule."""
        scope = create_submodule_scope("sdk", "white_room")
        await scope.store(make_artifact("a1", scope="submodule", submodule="sdk"))

        with pytest.raises(AdmissionError):
            await scope.store(make_artifact("a2", scope="submodule", submodule="juce"))

        assert scope.name == "submodule:sdk"
        assert len(scope) == 1

    @pytest.mark.asyncio
    async def test_session_admits_session_scope(self):
        """Test that the session scope admits session artifacts only."""
        scope = create_session_scope("s-1")
        await scope.store(make_artifact("a1", scope="session"))

        with pytest.raises(AdmissionError):
            await scope.store(make_artifact("a2", scope="repository"))

        assert scope.get_config().session_id == "s-1"

    def test_session_id_generated(self):
        """Test that a session id is generated when omitted."""
        scope = create_session_scope()
        assert scope.get_config().session_id

    @pytest.mark.asyncio
    async def test_task_matches_task_id(self):
        """Test that a task scope admits only its own task id."""
        context = TaskContext(title="Fix crash", description="Crash on load")
        scope = create_task_scope("bd-1", context)
        await scope.store(make_artifact("a1", scope="task", task_id="bd-1"))

        with pytest.raises(AdmissionError):
            await scope.store(make_artifact("a2", scope="task", task_id="bd-2"))

        assert scope.get_config().task_context.title == "Fix crash"


class TestScopeOperations:
    """Tests for store, retrieve, clear and stats."""

    @pytest.fixture
    def scope(self):
        """Create a repository scope."""
        return create_repository_scope("white_room")

    @pytest.mark.asyncio
    async def test_store_is_upsert(self, scope):
        """Test that storing an existing id replaces it."""
        await scope.store(make_artifact("a1", content="first"))
        await scope.store(make_artifact("a1", content="second"))

        assert len(scope) == 1
        assert scope.get("a1").content == "second"

    @pytest.mark.asyncio
    async def test_retrieve_matches_content_case_insensitive(self, scope):
        """Test keyword match against content."""
        await scope.store(make_artifact("a1", content="Fixed NullPointer in Parser"))
        await scope.store(make_artifact("a2", content="Unrelated"))

        results = await scope.retrieve("nullpointer")

        assert [a.id for a in results] == ["a1"]

    @pytest.mark.asyncio
    async def test_retrieve_matches_tags(self, scope):
        """Test keyword match against joined tags."""
        await scope.store(make_artifact("a1", content="body", tags=["audio", "dsp"]))

        assert len(await scope.retrieve("DSP")) == 1
        assert len(await scope.retrieve("audio dsp")) == 1
        assert await scope.retrieve("video") == []

    @pytest.mark.asyncio
    async def test_clear_empties_scope(self, scope):
        """Test that clear removes all artifacts."""
        await scope.store(make_artifact("a1"))
        await scope.clear()

        assert len(scope) == 0
        assert await scope.retrieve("content") == []

    @pytest.mark.asyncio
    async def test_stats(self, scope):
        """Test scope statistics."""
        await scope.store(make_artifact("a1", content="x" * 100))
        await scope.store(make_artifact("a2", content="y" * 10))

        stats = await scope.get_stats()

        assert isinstance(stats, ScopeStats)
        assert stats.artifacts == 2
        assert stats.tokens == 25 + 3
        assert stats.size == 110

    def test_config_to_dict(self, scope):
        """Test converting scope config to a dictionary."""
        data = scope.get_config().to_dict()

        assert data["kind"] == "repository"
        assert data["token_budget"] == 0.1
        assert data["repository"] == "white_room"
