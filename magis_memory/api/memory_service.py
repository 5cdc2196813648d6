"""
Owner-scoped service facade.

The only entry point callers need: search, hybrid task/memory search,
importance updates and ingestion. Every call requires an owner identity and
fails closed before any store is touched.
"""

import logging
from datetime import datetime

from magis_memory.classification.classifier import (
    BaseLLMClient,
    ContentClassifier,
    FallbackClassifier,
    LLMContentClassifier,
    OllamaLLMClient,
)
from magis_memory.config import MagisConfig
from magis_memory.encoding.embedder import BaseEmbedder, QueryEmbedder, create_embedder
from magis_memory.ingestion.annotator import DateResolver, MetadataAnnotator
from magis_memory.ingestion.duplicates import DuplicateDetector
from magis_memory.ingestion.pipeline import IngestionPipeline, IngestionResult
from magis_memory.models.base import MemoryRecord
from magis_memory.retrieval.intent import TaskIntentDetector
from magis_memory.retrieval.ranker import ResultRanker
from magis_memory.retrieval.router import MemoryHit, QueryRouter, TaskHit
from magis_memory.retrieval.scorer import MemoryScorer
from magis_memory.retrieval.searcher import MemorySearcher, SearchQuery, SearchResults
from magis_memory.storage.base import MemoryStore, TaskStore, require_owner
from magis_memory.storage.sqlite import SQLiteStorage

logger = logging.getLogger(__name__)

MIN_IMPORTANCE = 1
MAX_IMPORTANCE = 10


class MemoryService:
    """
    Facade over search, routing, updates and ingestion.

    Usage:
        service = MemoryService(InMemoryMemoryStore(), embedder)
        await service.ingest("user_1", "Meeting with Sarah next Friday")
        results = await service.search("user_1", SearchQuery(text="when is my meeting with Sarah?"))
    """

    def __init__(
        self,
        store: MemoryStore,
        embedder: QueryEmbedder | BaseEmbedder | None = None,
        task_store: TaskStore | None = None,
        config: MagisConfig | None = None,
        classifier: ContentClassifier | None = None,
        annotator: MetadataAnnotator | None = None,
    ):
        self.config = config or MagisConfig()
        self.store = store
        self.task_store = task_store

        if isinstance(embedder, BaseEmbedder):
            embedder = QueryEmbedder(embedder, self.config.embedding)
        self.embedder = embedder

        scorer = MemoryScorer(
            weights=self.config.weights,
            temporal=self.config.temporal,
            search=self.config.search,
        )
        self.searcher = MemorySearcher(
            store,
            embedder=self.embedder,
            scorer=scorer,
            ranker=ResultRanker(self.config.search),
            config=self.config.search,
        )
        self.router = QueryRouter(
            self.searcher,
            task_store=task_store,
            config=self.config.router,
            detector=TaskIntentDetector(self.config.router),
        )
        self.pipeline = IngestionPipeline(
            store,
            embedder=self.embedder,
            classifier=classifier or FallbackClassifier(config=self.config.classifier),
            annotator=annotator,
            date_resolver=DateResolver(),
            duplicate_detector=DuplicateDetector(self.config.duplicates),
            task_store=task_store,
        )
        self._owned: list[BaseLLMClient] = []

    @classmethod
    def from_config(cls, config: MagisConfig | None = None) -> "MemoryService":
        """
        Build a service wired to SQLite, the configured embedding provider
        and an Ollama-backed classifier. Call ``connect()`` before use.
        """
        config = config or MagisConfig()
        storage = SQLiteStorage(config.storage)
        llm_client = OllamaLLMClient(config.llm)
        service = cls(
            storage,
            embedder=create_embedder(config.embedding),
            task_store=storage,
            config=config,
            classifier=FallbackClassifier(
                primary=LLMContentClassifier(llm_client),
                config=config.classifier,
            ),
        )
        service._owned.append(llm_client)
        return service

    async def connect(self) -> None:
        """Connect the underlying stores."""
        await self.store.connect()
        if self.task_store is not None and self.task_store is not self.store:
            await self.task_store.connect()

    async def close(self) -> None:
        """Clean up resources."""
        if self.embedder is not None:
            await self.embedder.close()
        for resource in self._owned:
            await resource.close()
        if self.task_store is not None and self.task_store is not self.store:
            await self.task_store.disconnect()
        await self.store.disconnect()

    async def __aenter__(self) -> "MemoryService":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _as_query(self, query: SearchQuery | str) -> SearchQuery:
        if isinstance(query, SearchQuery):
            return query
        return SearchQuery(
            text=query,
            limit=self.config.search.default_limit,
            threshold=self.config.search.default_threshold,
        )

    async def search(
        self,
        owner_id: str,
        query: SearchQuery | str,
        reference_time: datetime | None = None,
    ) -> SearchResults:
        """
        Rank an owner's memories against a query.

        Raises:
            UnauthorizedError: If owner_id is missing
        """
        require_owner(owner_id)
        return await self.searcher.search(owner_id, self._as_query(query), reference_time)

    async def search_tasks_or_memories(
        self,
        owner_id: str,
        query: SearchQuery | str,
    ) -> list[TaskHit | MemoryHit]:
        """
        Answer scheduling questions from tasks, everything else from memories.

        Raises:
            UnauthorizedError: If owner_id is missing
        """
        require_owner(owner_id)
        return await self.router.search_tasks_or_memories(owner_id, self._as_query(query))

    async def update_memory(
        self,
        owner_id: str,
        memory_id: str,
        importance: int | None = None,
        is_active: bool | None = None,
    ) -> MemoryRecord:
        """
        Update a memory's importance and/or active flag.

        Importance is clamped to 1..10.

        Raises:
            UnauthorizedError: If owner_id is missing or the memory is not theirs
            MemoryNotFoundError: If the memory does not exist
        """
        require_owner(owner_id)
        if importance is not None:
            importance = max(MIN_IMPORTANCE, min(MAX_IMPORTANCE, int(importance)))

        record = await self.store.patch_memory(
            owner_id, memory_id, importance=importance, is_active=is_active
        )
        logger.info(f"Updated memory {memory_id} for owner {owner_id}")
        return record

    async def forget(self, owner_id: str, memory_id: str) -> MemoryRecord:
        """Soft-delete a memory; it stops appearing in searches."""
        return await self.update_memory(owner_id, memory_id, is_active=False)

    async def get_memory(self, owner_id: str, memory_id: str) -> MemoryRecord | None:
        require_owner(owner_id)
        return await self.store.get_memory(owner_id, memory_id)

    async def ingest(
        self,
        owner_id: str,
        content: str,
        context: str = "personal",
        reference_time: datetime | None = None,
    ) -> IngestionResult:
        """
        Classify, annotate, embed and store content.

        Raises:
            UnauthorizedError: If owner_id is missing
        """
        require_owner(owner_id)
        return await self.pipeline.ingest(owner_id, content, context, reference_time)
