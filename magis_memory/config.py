"""
Configuration management for the MAGIS memory engine.

Provides centralized configuration for:
- Scoring weights and temporal heuristics
- Search defaults (limit, threshold)
- Hybrid task routing
- Duplicate detection and content classification
- Embedding, LLM and storage backends
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, model_validator


class ScoringWeights(BaseModel):
    """Weights for the four scoring dimensions.

    The defaults are the semantic-dominant configuration (60/20/15/5).
    Weights must sum to 1.0 so the weighted sum stays in [0, 1] before the
    importance multiplier is applied.
    """

    semantic: float = Field(default=0.6, ge=0.0, le=1.0)
    entity: float = Field(default=0.2, ge=0.0, le=1.0)
    temporal: float = Field(default=0.15, ge=0.0, le=1.0)
    keyword: float = Field(default=0.05, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_sum(self) -> "ScoringWeights":
        total = self.semantic + self.entity + self.temporal + self.keyword
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"Scoring weights must sum to 1.0, got {total:.4f}")
        return self


class TemporalConfig(BaseModel):
    """Configuration for the temporal scoring heuristic."""

    base_score: float = Field(
        default=0.8,
        description="Score given to dated memories for temporal queries",
        ge=0.0,
        le=1.0,
    )
    decay_horizon_days: float = Field(
        default=365.0,
        description="Age at which the recency boost reaches the base score",
        gt=0.0,
    )
    trigger_words: list[str] = Field(
        default_factory=lambda: ["when", "last", "recent", "ago", "time"],
        description="Query words that make the temporal dimension apply",
    )
    recency_words: list[str] = Field(
        default_factory=lambda: ["last", "recent"],
        description="Query words that enable age-based decay toward 1.0",
    )


class SearchConfig(BaseModel):
    """Configuration for search behavior."""

    default_limit: int = Field(default=10, ge=1)
    max_limit: int = Field(default=50, ge=1)
    default_threshold: float = Field(default=0.1, ge=0.0, le=1.0)
    min_keyword_length: int = Field(
        default=3,
        description="Query tokens shorter than this are ignored for keyword scoring",
        ge=1,
    )


class RouterConfig(BaseModel):
    """Configuration for the hybrid task-vs-memory router."""

    trigger_phrases: list[str] = Field(
        default_factory=lambda: ["meeting", "appointment", "when is my"],
    )
    task_tags: list[str] = Field(
        default_factory=lambda: ["meeting", "appointment"],
        description="A task must carry one of these tags to answer a routed query",
    )


class DuplicateConfig(BaseModel):
    """Configuration for experience duplicate detection."""

    similarity_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    lookback_days: int = Field(default=30, ge=1)


class ClassifierConfig(BaseModel):
    """Configuration for content classification."""

    min_confidence: float = Field(
        default=0.5,
        description="Primary results below this confidence fall back to keyword voting",
        ge=0.0,
        le=1.0,
    )
    fallback_confidence: float = Field(default=0.7, ge=0.0, le=1.0)


class EmbeddingConfig(BaseModel):
    """Configuration for embedding generation."""

    provider: Literal["ollama", "openai", "voyage"] = Field(
        default="ollama",
        description="Embedding provider (ollama, openai or voyage)",
    )
    model: str = Field(
        default="nomic-embed-text",
        description="Embedding model name",
    )
    dimensions: int = Field(default=768, ge=1)
    batch_size: int = Field(default=100, ge=1)

    timeout_seconds: float = Field(
        default=10.0,
        description="Upper bound for a single query embedding call",
        gt=0.0,
    )
    retries: int = Field(
        default=1,
        description="Extra attempts before semantic scoring is disabled for a search",
        ge=0,
    )

    ollama_base_url: str = Field(default="http://localhost:11434")
    voyage_base_url: str = Field(default="https://api.voyageai.com/v1")
    api_key: str | None = Field(default=None, description="API key for hosted providers")


class LLMConfig(BaseModel):
    """Configuration for the LLM used by the primary classifier."""

    provider: Literal["ollama"] = Field(default="ollama")
    model: str = Field(default="llama3.2")
    temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    max_tokens: int = Field(default=300, ge=1)
    ollama_base_url: str = Field(default="http://localhost:11434")


class StorageConfig(BaseModel):
    """Configuration for storage backends."""

    sqlite_path: Path = Field(
        default=Path("./data/magis_memory.db"),
        description="Path to SQLite database file",
    )


class MagisConfig(BaseModel):
    """Master configuration for the memory engine."""

    weights: ScoringWeights = Field(default_factory=ScoringWeights)
    temporal: TemporalConfig = Field(default_factory=TemporalConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    router: RouterConfig = Field(default_factory=RouterConfig)
    duplicates: DuplicateConfig = Field(default_factory=DuplicateConfig)
    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    @classmethod
    def from_file(cls, path: Path) -> "MagisConfig":
        """Load configuration from a JSON file."""
        import json

        if path.suffix == ".json":
            with open(path) as f:
                data = json.load(f)
            return cls.model_validate(data)
        else:
            raise ValueError(f"Unsupported config file format: {path.suffix}")

    def to_file(self, path: Path) -> None:
        """Save configuration to a JSON file."""
        import json

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(), f, indent=2, default=str)
