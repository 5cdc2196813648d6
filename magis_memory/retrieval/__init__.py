"""
Retrieval module for multi-dimensional memory search.

Provides:
- Cosine similarity primitive
- Four-dimension scoring (semantic, entity, temporal, keyword)
- Threshold / limit ranking
- Task-intent detection and hybrid routing
"""

from magis_memory.retrieval.similarity import cosine_similarity
from magis_memory.retrieval.scorer import (
    MemoryScorer,
    PreparedQuery,
    ScoredResult,
    SearchScores,
)
from magis_memory.retrieval.ranker import ResultRanker
from magis_memory.retrieval.intent import (
    ClassifiedQuery,
    IntentSignal,
    QueryIntent,
    TaskIntentDetector,
)
from magis_memory.retrieval.searcher import MemorySearcher, SearchQuery, SearchResults
from magis_memory.retrieval.router import HybridResult, MemoryHit, QueryRouter, TaskHit

__all__ = [
    # Similarity
    "cosine_similarity",
    # Scorer
    "MemoryScorer",
    "PreparedQuery",
    "ScoredResult",
    "SearchScores",
    # Ranker
    "ResultRanker",
    # Intent
    "ClassifiedQuery",
    "IntentSignal",
    "QueryIntent",
    "TaskIntentDetector",
    # Searcher
    "MemorySearcher",
    "SearchQuery",
    "SearchResults",
    # Router
    "HybridResult",
    "MemoryHit",
    "QueryRouter",
    "TaskHit",
]
