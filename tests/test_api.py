"""
Tests for the owner-scoped MemoryService facade.
"""

from datetime import datetime

import pytest

from magis_memory import MemoryService
from magis_memory.classification.classifier import FallbackClassifier, LLMContentClassifier
from magis_memory.config import MagisConfig, StorageConfig
from magis_memory.encoding.embedder import QueryEmbedder
from magis_memory.models.base import Classification
from magis_memory.retrieval.router import MemoryHit, TaskHit
from magis_memory.retrieval.searcher import SearchQuery
from magis_memory.storage.base import MemoryNotFoundError, UnauthorizedError
from magis_memory.storage.memory import InMemoryMemoryStore, InMemoryTaskStore
from magis_memory.storage.sqlite import SQLiteStorage


@pytest.fixture
def service(memory_store, task_store, fake_embedder):
    return MemoryService(memory_store, fake_embedder, task_store=task_store)


@pytest.fixture
async def sarah_service(service, reference_time):
    """Service holding the meeting and the dinner with Sarah."""
    await service.ingest(
        "user_alice", "Meeting with Sarah next Friday at 2pm", reference_time=reference_time
    )
    await service.ingest(
        "user_alice",
        "Had dinner with my friend Sarah at Luigi's last night",
        reference_time=reference_time,
    )
    return service


class TestMemoryServiceInit:
    """Tests for service construction."""

    def test_wraps_base_embedder(self, service):
        """Test a raw embedder is wrapped with timeout and retry handling."""
        assert isinstance(service.embedder, QueryEmbedder)

    def test_without_embedder(self, memory_store):
        """Test a service can run without an embedding provider."""
        service = MemoryService(memory_store)
        assert service.embedder is None
        assert service.task_store is None

    def test_from_config(self, storage_config):
        """Test the production wiring."""
        service = MemoryService.from_config(MagisConfig(storage=storage_config))

        assert isinstance(service.store, SQLiteStorage)
        assert service.task_store is service.store
        assert isinstance(service.pipeline.classifier, FallbackClassifier)
        assert isinstance(service.pipeline.classifier.primary, LLMContentClassifier)

    @pytest.mark.asyncio
    async def test_context_manager(self, temp_directory):
        """Test the service connects and closes its stores."""
        config = MagisConfig(storage=StorageConfig(sqlite_path=temp_directory / "svc.db"))
        async with MemoryService.from_config(config) as service:
            assert await service.store.is_connected()
        assert not await service.store.is_connected()


class TestMemoryServiceIngest:
    """Tests for ingestion through the service."""

    @pytest.mark.asyncio
    async def test_ingest_experience(self, service, task_store, reference_time):
        """Test a future event is stored and mirrored as a task."""
        result = await service.ingest(
            "user_alice", "Dentist appointment next Tuesday", reference_time=reference_time
        )

        assert result.record.classification == Classification.EXPERIENCE
        assert result.task_id is not None
        stored = await service.get_memory("user_alice", result.memory_id)
        assert stored.resolved_dates[0].start == datetime(2024, 6, 18)
        assert stored.embedding_model == "nomic-embed-text"

    @pytest.mark.asyncio
    async def test_ingest_requires_owner(self, service, memory_store):
        """Test ingestion without an owner stores nothing."""
        with pytest.raises(UnauthorizedError):
            await service.ingest("", "Meeting with Sarah")
        assert memory_store.count() == 0


class TestMemoryServiceSearch:
    """Tests for search and hybrid routing."""

    @pytest.mark.asyncio
    async def test_meeting_query_answered_by_task(self, sarah_service):
        """Test the scheduling question is answered from the task store."""
        hits = await sarah_service.search_tasks_or_memories(
            "user_alice", "When is my meeting with Sarah?"
        )

        assert len(hits) == 1
        assert isinstance(hits[0], TaskHit)
        assert hits[0].task.due_date == datetime(2024, 6, 21)

    @pytest.mark.asyncio
    async def test_memory_search_disambiguates(self, sarah_service, reference_time):
        """Test plain search ranks the meeting above the dinner."""
        results = await sarah_service.search(
            "user_alice", "When is my meeting with Sarah?", reference_time
        )

        assert len(results) == 2
        assert results.semantic_available is True
        assert results.results[0].content.startswith("Meeting with Sarah")

    @pytest.mark.asyncio
    async def test_non_task_query_returns_memories(self, sarah_service):
        """Test other questions are answered from memories."""
        hits = await sarah_service.search_tasks_or_memories(
            "user_alice", "Where did I eat with Sarah?"
        )

        assert hits
        assert all(isinstance(hit, MemoryHit) for hit in hits)

    @pytest.mark.asyncio
    async def test_other_owner_sees_nothing(self, sarah_service):
        """Test another owner's search never returns Alice's memories."""
        results = await sarah_service.search("user_bob", SearchQuery(text="Sarah", threshold=0.0))
        hits = await sarah_service.search_tasks_or_memories("user_bob", "When is my meeting with Sarah?")

        assert results.results == []
        assert hits == []

    @pytest.mark.asyncio
    async def test_missing_owner(self, service):
        """Test every read requires an owner."""
        with pytest.raises(UnauthorizedError):
            await service.search("", "Sarah")
        with pytest.raises(UnauthorizedError):
            await service.search_tasks_or_memories(None, "meeting")
        with pytest.raises(UnauthorizedError):
            await service.get_memory("", "x")

    @pytest.mark.asyncio
    async def test_string_query_uses_configured_defaults(self, memory_store):
        """Test string queries pick up the configured limit."""
        config = MagisConfig()
        config.search.default_limit = 1
        config.search.default_threshold = 0.0
        service = MemoryService(memory_store, config=config)
        for text in ("first note", "second note", "third note"):
            await service.ingest("user_alice", text)

        results = await service.search("user_alice", "note")

        assert len(results) == 1


class TestMemoryServiceUpdate:
    """Tests for importance updates and forgetting."""

    @pytest.mark.asyncio
    async def test_importance_clamped(self, service):
        """Test out-of-range importance values are clamped to 1..10."""
        result = await service.ingest("user_alice", "Picked up groceries")

        high = await service.update_memory("user_alice", result.memory_id, importance=15)
        assert high.importance == 10

        low = await service.update_memory("user_alice", result.memory_id, importance=0)
        assert low.importance == 1

    @pytest.mark.asyncio
    async def test_cross_owner_update_rejected(self, service):
        """Test one owner cannot change another owner's memory."""
        result = await service.ingest("user_alice", "Picked up groceries")

        with pytest.raises(UnauthorizedError):
            await service.update_memory("user_bob", result.memory_id, importance=1)

        unchanged = await service.get_memory("user_alice", result.memory_id)
        assert unchanged.importance == result.record.importance

    @pytest.mark.asyncio
    async def test_update_missing(self, service):
        """Test updating an unknown memory raises MemoryNotFoundError."""
        with pytest.raises(MemoryNotFoundError):
            await service.update_memory("user_alice", "missing", importance=3)

    @pytest.mark.asyncio
    async def test_forget(self, service):
        """Test forgotten memories drop out of search."""
        result = await service.ingest("user_alice", "Old address on Elm Street")

        forgotten = await service.forget("user_alice", result.memory_id)
        results = await service.search("user_alice", SearchQuery(text="address", threshold=0.0))

        assert forgotten.is_active is False
        assert results.results == []

    @pytest.mark.asyncio
    async def test_works_with_sqlite(self, sqlite_storage, fake_embedder, reference_time):
        """Test the full flow against SQLite for both stores."""
        service = MemoryService(sqlite_storage, fake_embedder, task_store=sqlite_storage)

        await service.ingest(
            "user_alice", "Meeting with Sarah next Friday at 2pm", reference_time=reference_time
        )
        hits = await service.search_tasks_or_memories("user_alice", "When is my meeting with Sarah?")

        assert isinstance(hits[0], TaskHit)


class TestMemoryServiceWiring:
    """Tests that configuration reaches the components."""

    @pytest.mark.asyncio
    async def test_router_tags_from_config(self, fake_embedder, reference_time):
        """Test custom task tags are used by the router."""
        config = MagisConfig()
        config.router.task_tags = ["travel"]
        service = MemoryService(
            InMemoryMemoryStore(), fake_embedder, task_store=InMemoryTaskStore(), config=config
        )
        await service.ingest(
            "user_alice", "Meeting with Sarah next Friday at 2pm", reference_time=reference_time
        )

        hits = await service.search_tasks_or_memories("user_alice", "When is my meeting with Sarah?")

        assert all(isinstance(hit, MemoryHit) for hit in hits)
