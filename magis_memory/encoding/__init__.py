"""
Encoding module: embedding providers for memory content and queries.
"""

from magis_memory.encoding.embedder import (
    BaseEmbedder,
    EmbeddingError,
    EmbeddingResult,
    EmbeddingUnavailableError,
    OllamaEmbedder,
    OpenAIEmbedder,
    QueryEmbedder,
    VoyageEmbedder,
    create_embedder,
)

__all__ = [
    "BaseEmbedder",
    "EmbeddingError",
    "EmbeddingResult",
    "EmbeddingUnavailableError",
    "OllamaEmbedder",
    "OpenAIEmbedder",
    "QueryEmbedder",
    "VoyageEmbedder",
    "create_embedder",
]
