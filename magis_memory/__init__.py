"""
MAGIS Memory - Multi-dimensional memory retrieval and disambiguation

Ranks a user's stored memories against a natural-language query by combining:
- Semantic similarity of embeddings
- Entity overlap (people, organizations, locations)
- Temporal relevance of resolved dates
- Keyword overlap
scaled by each memory's importance, and routes scheduling questions to
structured task records first.

Quick Start:
    from magis_memory import MemoryService, SearchQuery
    from magis_memory.storage import InMemoryMemoryStore, InMemoryTaskStore

    service = MemoryService(InMemoryMemoryStore(), task_store=InMemoryTaskStore())
    await service.ingest("user_1", "Meeting with Sarah next Friday at 2pm")
    results = await service.search("user_1", SearchQuery(text="When is my meeting with Sarah?"))
    for result in results.results:
        print(result.final_score, result.content)
"""

from magis_memory.config import MagisConfig, ScoringWeights
from magis_memory.models.base import (
    Classification,
    EntityRef,
    ExtractedEntities,
    MemoryRecord,
    ResolvedDate,
)
from magis_memory.models.task import Task
from magis_memory.retrieval.scorer import MemoryScorer, ScoredResult, SearchScores
from magis_memory.retrieval.searcher import SearchQuery, SearchResults
from magis_memory.retrieval.router import HybridResult, MemoryHit, TaskHit
from magis_memory.storage.base import (
    MemoryNotFoundError,
    StorageError,
    StoreUnavailableError,
    UnauthorizedError,
)
from magis_memory.api.memory_service import MemoryService

__version__ = "0.1.0"

__all__ = [
    # Main entry point
    "MemoryService",
    # Configuration
    "MagisConfig",
    "ScoringWeights",
    # Models
    "Classification",
    "EntityRef",
    "ExtractedEntities",
    "MemoryRecord",
    "ResolvedDate",
    "Task",
    # Search
    "MemoryScorer",
    "ScoredResult",
    "SearchScores",
    "SearchQuery",
    "SearchResults",
    "HybridResult",
    "MemoryHit",
    "TaskHit",
    # Errors
    "MemoryNotFoundError",
    "StorageError",
    "StoreUnavailableError",
    "UnauthorizedError",
]
