"""
Tests for task-intent detection and hybrid routing.
"""

from datetime import datetime

import pytest
from pydantic import TypeAdapter

from magis_memory.models.task import Task
from magis_memory.retrieval.intent import QueryIntent, TaskIntentDetector
from magis_memory.retrieval.router import HybridResult, MemoryHit, QueryRouter, TaskHit
from magis_memory.retrieval.searcher import MemorySearcher, SearchQuery
from magis_memory.storage.base import UnauthorizedError


@pytest.fixture
def detector():
    return TaskIntentDetector()


@pytest.fixture
def router(memory_store, task_store):
    return QueryRouter(MemorySearcher(memory_store), task_store)


class TestTaskIntentDetector:
    """Tests for TaskIntentDetector."""

    @pytest.mark.parametrize(
        "query",
        [
            "When is my meeting with Sarah?",
            "dentist appointment details",
            "when is my flight",
        ],
    )
    def test_task_queries(self, detector, query):
        """Test trigger phrases mark a query as task-like."""
        assert detector.classify(query).intent == QueryIntent.TASK

    def test_memory_query(self, detector):
        """Test other queries go to memory search."""
        classified = detector.classify("What did Sarah say about the wedding?")
        assert classified.intent == QueryIntent.MEMORY
        assert classified.participant is None

    def test_participant_extracted(self, detector):
        """Test the name after 'with' is extracted."""
        classified = detector.classify("When is my meeting with Sarah?")
        assert classified.participant == "Sarah"
        assert "meeting" in classified.matched_phrases
        assert "when is my" in classified.matched_phrases

    def test_participant_possessive_stripped(self, detector):
        """Test a possessive suffix is removed."""
        assert detector.extract_participant("meeting with Tom's team") == "Tom"

    def test_participant_skips_pronouns(self, detector):
        """Test 'with my' does not produce a participant."""
        assert detector.extract_participant("meeting with my boss") is None

    def test_no_participant(self, detector):
        """Test queries without 'with' have no participant."""
        assert detector.extract_participant("dentist appointment") is None


class TestQueryRouter:
    """Tests for QueryRouter."""

    @pytest.mark.asyncio
    async def test_task_answers_meeting_query(self, router, task_store, memory_store, sarah_memories):
        """Test a matching task is returned instead of scored memories."""
        for memory in sarah_memories:
            await memory_store.insert_memory(memory)
        task = Task(
            owner_id="user_alice",
            title="Meeting with Sarah",
            description="Discuss wedding plans",
            tags=["meeting"],
            due_date=datetime(2024, 6, 21, 14, 0),
        )
        await task_store.insert_task(task)

        hits = await router.search_tasks_or_memories(
            "user_alice", SearchQuery(text="When is my meeting with Sarah?")
        )

        assert len(hits) == 1
        assert isinstance(hits[0], TaskHit)
        assert hits[0].type == "task"
        assert hits[0].task.id == task.id

    @pytest.mark.asyncio
    async def test_falls_back_to_memories(self, router, memory_store, sarah_memories, reference_time):
        """Test without a matching task the meeting memory ranks first."""
        meeting, dinner = sarah_memories
        await memory_store.insert_memory(dinner)
        await memory_store.insert_memory(meeting)

        hits = await router.search_tasks_or_memories(
            "user_alice", SearchQuery(text="When is my meeting with Sarah?")
        )

        assert hits
        assert all(isinstance(hit, MemoryHit) for hit in hits)
        assert hits[0].type == "memory"
        assert hits[0].result.id == meeting.id

    @pytest.mark.asyncio
    async def test_task_needs_required_tag(self, router, task_store, memory_store, make_memory):
        """Test a task without a meeting/appointment tag is ignored."""
        await task_store.insert_task(
            Task(owner_id="user_alice", title="Lunch with Sarah", tags=["lunch"])
        )
        await memory_store.insert_memory(make_memory("Meeting with Sarah on Friday", people=["Sarah"]))

        hits = await router.search_tasks_or_memories(
            "user_alice", SearchQuery(text="meeting with Sarah")
        )

        assert all(isinstance(hit, MemoryHit) for hit in hits)

    @pytest.mark.asyncio
    async def test_participant_must_match(self, router, task_store):
        """Test a task for a different participant does not answer."""
        await task_store.insert_task(
            Task(owner_id="user_alice", title="Meeting with Bob", tags=["meeting"])
        )

        hits = await router.search_tasks_or_memories(
            "user_alice", SearchQuery(text="When is my meeting with Sarah?")
        )

        assert hits == []

    @pytest.mark.asyncio
    async def test_completed_tasks_ignored(self, router, task_store):
        """Test completed tasks never answer a query."""
        await task_store.insert_task(
            Task(owner_id="user_alice", title="Dentist", tags=["appointment"], completed=True)
        )

        hits = await router.search_tasks_or_memories(
            "user_alice", SearchQuery(text="dentist appointment")
        )

        assert hits == []

    @pytest.mark.asyncio
    async def test_tasks_scoped_by_owner(self, router, task_store):
        """Test another owner's tasks are never returned."""
        await task_store.insert_task(
            Task(owner_id="user_bob", title="Meeting with Sarah", tags=["meeting"])
        )

        hits = await router.search_tasks_or_memories(
            "user_alice", SearchQuery(text="meeting with Sarah")
        )

        assert hits == []

    @pytest.mark.asyncio
    async def test_task_results_limited(self, router, task_store):
        """Test task hits are truncated to the query limit."""
        for i in range(5):
            await task_store.insert_task(
                Task(owner_id="user_alice", title=f"Dentist visit {i}", tags=["appointment"])
            )

        hits = await router.search_tasks_or_memories(
            "user_alice", SearchQuery(text="dentist appointment", limit=2)
        )

        assert len(hits) == 2
        assert all(isinstance(hit, TaskHit) for hit in hits)

    @pytest.mark.asyncio
    async def test_non_task_query_skips_task_store(self, router, task_store, memory_store, make_memory):
        """Test memory queries never consult tasks."""
        await task_store.insert_task(
            Task(owner_id="user_alice", title="Sarah wedding", tags=["meeting"])
        )
        await memory_store.insert_memory(make_memory("Sarah loves tulips", people=["Sarah"]))

        hits = await router.search_tasks_or_memories(
            "user_alice", SearchQuery(text="what flowers does Sarah like")
        )

        assert len(hits) == 1
        assert isinstance(hits[0], MemoryHit)

    @pytest.mark.asyncio
    async def test_without_task_store(self, memory_store, make_memory):
        """Test routing works with no task store configured."""
        router = QueryRouter(MemorySearcher(memory_store))
        await memory_store.insert_memory(make_memory("Meeting with Sarah", people=["Sarah"]))

        hits = await router.search_tasks_or_memories(
            "user_alice", SearchQuery(text="meeting with Sarah")
        )

        assert isinstance(hits[0], MemoryHit)

    @pytest.mark.asyncio
    async def test_missing_owner(self, router):
        """Test routing without an owner fails closed."""
        with pytest.raises(UnauthorizedError):
            await router.search_tasks_or_memories("", SearchQuery(text="meeting"))


class TestHybridResult:
    """Tests for the tagged result union."""

    def test_discriminated_union(self):
        """Test the type tag selects the variant."""
        adapter = TypeAdapter(HybridResult)
        hit = adapter.validate_python({
            "type": "task",
            "task": {"owner_id": "u1", "title": "Meeting", "tags": ["meeting"]},
        })
        assert isinstance(hit, TaskHit)
        assert hit.task.title == "Meeting"
