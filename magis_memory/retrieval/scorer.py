"""
Multi-dimensional memory scoring.

Scores a memory against a query on four independent dimensions:
- Semantic: cosine similarity of embeddings
- Entity: share of the memory's entities mentioned in the query
- Temporal: heuristic boost for dated memories on "when"-style queries
- Keyword: share of query keywords found in the memory's text

The weighted sum is scaled by an importance multiplier in [0.5, 1.0], so a
low-importance memory is dampened but never zeroed out.
"""

import re
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from magis_memory.config import ScoringWeights, SearchConfig, TemporalConfig
from magis_memory.models.base import MemoryRecord, naive_utc
from magis_memory.retrieval.similarity import cosine_similarity

_STRIP_CHARS = ".,!?;:'\"()[]{}"
_WORD_RE = re.compile(r"[a-z0-9']+")


def _utcnow() -> datetime:
    """Get current UTC time (naive, for compatibility with models)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


class SearchScores(BaseModel):
    """Per-dimension score breakdown."""

    semantic: float = Field(default=0.0, ge=0.0, le=1.0)
    entity: float = Field(default=0.0, ge=0.0, le=1.0)
    temporal: float = Field(default=0.0, ge=0.0, le=1.0)
    keyword: float = Field(default=0.0, ge=0.0, le=1.0)
    importance: float = Field(
        default=1.0,
        description="Importance multiplier applied to the weighted sum",
        ge=0.5,
        le=1.0,
    )


class ScoredResult(BaseModel):
    """A memory with its score breakdown and combined score."""

    memory: MemoryRecord
    scores: SearchScores
    final_score: float = Field(ge=0.0, le=1.0)

    @property
    def id(self) -> str:
        return self.memory.id

    @property
    def content(self) -> str:
        return self.memory.content


class PreparedQuery(BaseModel):
    """A query tokenized once and reused across all candidates."""

    text: str
    text_lower: str
    keywords: list[str] = Field(default_factory=list)
    words: set[str] = Field(default_factory=set)
    embedding: list[float] | None = None


class MemoryScorer:
    """
    Scores memories against a query.

    Pure: no I/O and no mutation of the memories it scores.

    Usage:
        scorer = MemoryScorer()
        query = scorer.prepare_query("When is my meeting with Sarah?", embedding)
        results = scorer.score_all(query, memories)
    """

    def __init__(
        self,
        weights: ScoringWeights | None = None,
        temporal: TemporalConfig | None = None,
        search: SearchConfig | None = None,
    ):
        self.weights = weights or ScoringWeights()
        self.temporal_config = temporal or TemporalConfig()
        self.min_keyword_length = (search or SearchConfig()).min_keyword_length

    def prepare_query(
        self,
        text: str,
        embedding: list[float] | None = None,
    ) -> PreparedQuery:
        """Lowercase and tokenize the query."""
        text_lower = text.lower()
        tokens = [t.strip(_STRIP_CHARS) for t in text_lower.split()]
        keywords = [t for t in tokens if len(t) >= self.min_keyword_length]

        return PreparedQuery(
            text=text,
            text_lower=text_lower,
            keywords=keywords,
            words=set(_WORD_RE.findall(text_lower)),
            embedding=embedding,
        )

    def score(
        self,
        query: PreparedQuery,
        memory: MemoryRecord,
        reference_time: datetime | None = None,
    ) -> ScoredResult:
        """Score a single memory."""
        scores = SearchScores(
            semantic=self.semantic_score(query, memory),
            entity=self.entity_score(query, memory),
            temporal=self.temporal_score(query, memory, reference_time),
            keyword=self.keyword_score(query, memory),
            importance=self.importance_multiplier(memory.importance),
        )

        weighted = (
            scores.semantic * self.weights.semantic
            + scores.entity * self.weights.entity
            + scores.temporal * self.weights.temporal
            + scores.keyword * self.weights.keyword
        )

        return ScoredResult(
            memory=memory,
            scores=scores,
            final_score=_clamp01(weighted * scores.importance),
        )

    def score_all(
        self,
        query: PreparedQuery,
        memories: list[MemoryRecord],
        reference_time: datetime | None = None,
    ) -> list[ScoredResult]:
        """Score every candidate, preserving input order."""
        now = naive_utc(reference_time) if reference_time else _utcnow()
        return [self.score(query, memory, now) for memory in memories]

    def semantic_score(self, query: PreparedQuery, memory: MemoryRecord) -> float:
        """Cosine similarity clamped to [0, 1]; 0 when either side is missing."""
        if not query.embedding or not memory.embedding:
            return 0.0
        return _clamp01(cosine_similarity(query.embedding, memory.embedding))

    def entity_score(self, query: PreparedQuery, memory: MemoryRecord) -> float:
        """Fraction of the memory's entities whose name or relationship the query mentions."""
        entities = memory.extracted_entities.flatten()
        if not entities:
            return 0.0

        matched = 0
        for entity in entities:
            name = entity.name.strip().lower()
            relationship = (entity.relationship or "").strip().lower()
            if (name and name in query.text_lower) or (
                relationship and relationship in query.text_lower
            ):
                matched += 1

        return matched / len(entities)

    def temporal_score(
        self,
        query: PreparedQuery,
        memory: MemoryRecord,
        reference_time: datetime | None = None,
    ) -> float:
        """
        Heuristic temporal relevance.

        Applies only when the query carries a trigger word and the memory has
        at least one resolved date. Recency words additionally boost young
        memories toward 1.0, never below the base score.
        """
        config = self.temporal_config
        if not memory.resolved_dates:
            return 0.0
        if not query.words & set(config.trigger_words):
            return 0.0

        score = config.base_score
        if query.words & set(config.recency_words):
            age_days = memory.age_days(reference_time)
            recency = 1.0 - age_days / config.decay_horizon_days
            score = max(config.base_score, recency)

        return _clamp01(score)

    def keyword_score(self, query: PreparedQuery, memory: MemoryRecord) -> float:
        """Fraction of query keywords contained in the memory's searchable text."""
        if not query.keywords:
            return 0.0

        haystack = memory.search_text()
        hits = sum(1 for keyword in query.keywords if keyword in haystack)
        return hits / len(query.keywords)

    @staticmethod
    def importance_multiplier(importance: int | float) -> float:
        """Map importance 0..10 to a multiplier in [0.5, 1.0]."""
        clamped = max(0.0, min(10.0, float(importance)))
        return 0.5 + 0.5 * clamped / 10
