"""
Pytest configuration and shared fixtures.
"""

import asyncio
import tempfile
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from magis_memory.classification.classifier import BaseLLMClient
from magis_memory.config import EmbeddingConfig, StorageConfig
from magis_memory.encoding.embedder import BaseEmbedder, EmbeddingError, QueryEmbedder
from magis_memory.models.base import (
    Classification,
    EntityRef,
    ExtractedEntities,
    MemoryRecord,
    ResolvedDate,
)
from magis_memory.storage.memory import InMemoryMemoryStore, InMemoryTaskStore
from magis_memory.storage.sqlite import SQLiteStorage


# Friday, 14 June 2024, noon
REFERENCE_TIME = datetime(2024, 6, 14, 12, 0, 0)


class FakeEmbedder(BaseEmbedder):
    """
    Embedder returning canned vectors.

    Texts listed in ``vectors`` get their vector; everything else gets
    ``default``. ``failures`` makes the first N calls raise.
    """

    def __init__(
        self,
        vectors: dict[str, list[float]] | None = None,
        default: list[float] | None = None,
        failures: int = 0,
        delay: float = 0.0,
        config: EmbeddingConfig | None = None,
    ):
        super().__init__(config or EmbeddingConfig(model="fake-embed", timeout_seconds=0.2, retries=1))
        self.vectors = vectors or {}
        self.default = default if default is not None else [1.0, 0.0, 0.0]
        self.failures = failures
        self.delay = delay
        self.calls = 0

    async def embed(self, text: str) -> list[float]:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.calls <= self.failures:
            raise EmbeddingError("embedding service down")
        return self.vectors.get(text, self.default)


class FakeLLMClient(BaseLLMClient):
    """LLM client returning a fixed response (or raising)."""

    def __init__(self, response: str = "", error: Exception | None = None):
        self.response = response
        self.error = error
        self.prompts: list[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def reference_time():
    """Fixed clock for date-dependent tests."""
    return REFERENCE_TIME


@pytest.fixture
def temp_directory():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_owner_id():
    """Provide a sample owner ID."""
    return "user_alice"


@pytest.fixture
def other_owner_id():
    """Provide a second owner ID."""
    return "user_bob"


@pytest.fixture
def memory_store():
    """Empty in-memory memory store."""
    return InMemoryMemoryStore()


@pytest.fixture
def task_store():
    """Empty in-memory task store."""
    return InMemoryTaskStore()


@pytest.fixture
def fake_embedder():
    """Embedder that always returns the same unit vector."""
    return FakeEmbedder()


@pytest.fixture
def query_embedder(fake_embedder):
    """Timeout/retry wrapper around the fake embedder."""
    return QueryEmbedder(fake_embedder)


@pytest.fixture
def storage_config(temp_directory):
    """Storage config pointing at a temp database."""
    return StorageConfig(sqlite_path=temp_directory / "test_magis.db")


@pytest.fixture
async def sqlite_storage(storage_config):
    """Create and connect a SQLite storage instance."""
    storage = SQLiteStorage(storage_config)
    await storage.connect()
    yield storage
    await storage.disconnect()


@pytest.fixture
def make_memory(reference_time):
    """Factory for memory records with sensible defaults."""

    def _make(
        content: str,
        owner_id: str = "user_alice",
        people: list[str] | None = None,
        keywords: list[str] | None = None,
        embedding: list[float] | None = None,
        dated: bool = False,
        importance: int = 5,
        age_days: float = 0.0,
        context: str = "personal",
        classification: Classification = Classification.MEMORY,
    ) -> MemoryRecord:
        created = reference_time - timedelta(days=age_days)
        return MemoryRecord(
            owner_id=owner_id,
            content=content,
            context=context,
            embedding=embedding or [],
            classification=classification,
            extracted_entities=ExtractedEntities(
                people=[EntityRef(name=name) for name in people or []]
            ),
            keywords=keywords or [],
            resolved_dates=[ResolvedDate(start=created, phrase="today")] if dated else [],
            importance=importance,
            created_at=created,
            updated_at=created,
        )

    return _make


@pytest.fixture
def sarah_memories(make_memory):
    """The two Sarah memories used for disambiguation."""
    meeting = make_memory(
        "Meeting with Sarah next Friday at 2pm to discuss the wedding plans",
        people=["Sarah"],
        keywords=["meeting", "friday", "wedding"],
        dated=True,
        age_days=1,
    )
    dinner = make_memory(
        "Had dinner with my friend Sarah at Luigi's last night",
        people=["Sarah"],
        keywords=["dinner", "luigi's"],
        dated=True,
        age_days=0,
    )
    return meeting, dinner


@pytest.fixture
def make_embedder():
    """Factory for fake embedders with custom vectors or failures."""
    return FakeEmbedder


@pytest.fixture
def make_llm_client():
    """Factory for fake LLM clients."""
    return FakeLLMClient
