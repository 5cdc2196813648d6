"""
Memory search orchestration.

Embeds the query once, scores every active memory of the owner and ranks
the result. If the embedding service is unavailable the search still runs,
with the semantic dimension forced to 0 and `semantic_available` set to False.
"""

import logging
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from magis_memory.config import SearchConfig
from magis_memory.encoding.embedder import EmbeddingUnavailableError, QueryEmbedder
from magis_memory.retrieval.ranker import ResultRanker
from magis_memory.retrieval.scorer import MemoryScorer, ScoredResult
from magis_memory.storage.base import MemoryStore, require_owner

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    """Get current UTC time (naive, for compatibility with models)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SearchQuery(BaseModel):
    """A search request."""

    text: str
    context: str | None = Field(default=None, description="Optional scope filter")
    limit: int = Field(default=10, ge=1)
    threshold: float = Field(default=0.1, ge=0.0, le=1.0)


class SearchResults(BaseModel):
    """Collection of ranked search results."""

    query: SearchQuery
    results: list[ScoredResult] = Field(default_factory=list)

    total_candidates: int = 0
    semantic_available: bool = True
    search_time_ms: float = 0.0
    searched_at: datetime = Field(default_factory=_utcnow)

    def top(self, n: int = 5) -> list[ScoredResult]:
        """Get top N results."""
        return self.results[:n]

    def __len__(self) -> int:
        return len(self.results)


class MemorySearcher:
    """
    Searches one owner's memories.

    Usage:
        searcher = MemorySearcher(store, QueryEmbedder(create_embedder()))
        results = await searcher.search("user_1", SearchQuery(text="..."))
    """

    def __init__(
        self,
        store: MemoryStore,
        embedder: QueryEmbedder | None = None,
        scorer: MemoryScorer | None = None,
        ranker: ResultRanker | None = None,
        config: SearchConfig | None = None,
    ):
        self.store = store
        self.embedder = embedder
        self.config = config or SearchConfig()
        self.scorer = scorer or MemoryScorer(search=self.config)
        self.ranker = ranker or ResultRanker(self.config)

    async def search(
        self,
        owner_id: str,
        query: SearchQuery,
        reference_time: datetime | None = None,
    ) -> SearchResults:
        """
        Search memories for an owner.

        Args:
            owner_id: Owner whose memories are searched
            query: Search request
            reference_time: Clock used for recency (default: now)

        Returns:
            SearchResults with per-dimension score breakdowns

        Raises:
            UnauthorizedError: If owner_id is missing
            StorageError: If the store fails
        """
        require_owner(owner_id)
        start_time = _utcnow()

        memories = await self.store.list_active_memories(owner_id, query.context)
        if not memories:
            return SearchResults(query=query)

        embedding, semantic_available = await self._embed_query(query.text)

        prepared = self.scorer.prepare_query(query.text, embedding)
        scored = self.scorer.score_all(prepared, memories, reference_time)
        ranked = self.ranker.rank(scored, query.threshold, query.limit)

        search_time = (_utcnow() - start_time).total_seconds() * 1000
        logger.debug(
            f"Search for owner {owner_id}: {len(ranked)}/{len(memories)} results "
            f"in {search_time:.1f}ms"
        )

        return SearchResults(
            query=query,
            results=ranked,
            total_candidates=len(memories),
            semantic_available=semantic_available,
            search_time_ms=search_time,
        )

    async def _embed_query(self, text: str) -> tuple[list[float] | None, bool]:
        if self.embedder is None:
            return None, False
        try:
            return await self.embedder.embed_query(text), True
        except EmbeddingUnavailableError as e:
            logger.warning(f"Semantic scoring disabled for this search: {e}")
            return None, False
