"""
Embedding generation for memory content and queries.

Supports multiple providers:
- Ollama (local, default)
- OpenAI
- Voyage AI

`QueryEmbedder` bounds each query embedding call with a timeout and a retry
budget, and reports failure as `EmbeddingUnavailableError` so the searcher can
decide to continue without the semantic dimension.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx
from pydantic import BaseModel

from magis_memory.config import EmbeddingConfig

logger = logging.getLogger(__name__)


class EmbeddingError(Exception):
    """Raised when an embedding provider fails."""

    pass


class EmbeddingUnavailableError(EmbeddingError):
    """Raised when no embedding could be produced within the retry budget."""

    pass


class EmbeddingResult(BaseModel):
    """Result of an embedding operation."""

    text: str
    embedding: list[float]
    model: str
    dimensions: int


class BaseEmbedder(ABC):
    """Abstract base class for embedding providers."""

    def __init__(self, config: EmbeddingConfig):
        self.config = config

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        pass

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts."""
        results = []
        batch_size = self.config.batch_size

        for i in range(0, len(texts), batch_size):
            batch = texts[i : i + batch_size]
            results.extend(await asyncio.gather(*(self.embed(t) for t in batch)))

        return results

    async def embed_with_metadata(self, text: str) -> EmbeddingResult:
        """Generate embedding with metadata."""
        embedding = await self.embed(text)
        return EmbeddingResult(
            text=text,
            embedding=embedding,
            model=self.config.model,
            dimensions=len(embedding),
        )

    async def close(self) -> None:
        """Release provider resources."""


class _HTTPEmbedder(BaseEmbedder):
    """Shared httpx client handling for HTTP providers."""

    def __init__(self, config: EmbeddingConfig):
        super().__init__(config)
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=60.0)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "_HTTPEmbedder":
        await self._get_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class OllamaEmbedder(_HTTPEmbedder):
    """
    Ollama-based embedder for local embedding generation.

    Uses Ollama's embedding API with models like:
    - nomic-embed-text (768 dimensions)
    - mxbai-embed-large (1024 dimensions)
    """

    def __init__(self, config: EmbeddingConfig):
        super().__init__(config)
        self.base_url = config.ollama_base_url.rstrip("/")

    async def embed(self, text: str) -> list[float]:
        """Generate embedding using Ollama."""
        client = await self._get_client()

        try:
            response = await client.post(
                f"{self.base_url}/api/embeddings",
                json={"model": self.config.model, "prompt": text},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise EmbeddingError(f"Ollama embedding failed: {e}") from e

        try:
            return response.json()["embedding"]
        except (KeyError, TypeError, ValueError) as e:
            raise EmbeddingError(f"Unexpected Ollama embedding response: {e}") from e


class VoyageEmbedder(_HTTPEmbedder):
    """
    Voyage AI embedder.

    Uses the hosted `/embeddings` endpoint with models like voyage-3 (1024).
    """

    def __init__(self, config: EmbeddingConfig):
        super().__init__(config)
        self.base_url = config.voyage_base_url.rstrip("/")

    async def embed(self, text: str) -> list[float]:
        """Generate embedding using Voyage AI."""
        return (await self.embed_batch([text]))[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Voyage accepts batches natively."""
        if not self.config.api_key:
            raise EmbeddingError("Voyage embeddings require an API key")

        client = await self._get_client()
        results: list[list[float]] = []

        for i in range(0, len(texts), self.config.batch_size):
            batch = texts[i : i + self.config.batch_size]
            try:
                response = await client.post(
                    f"{self.base_url}/embeddings",
                    headers={"Authorization": f"Bearer {self.config.api_key}"},
                    json={"model": self.config.model, "input": batch},
                )
                response.raise_for_status()
            except httpx.HTTPError as e:
                raise EmbeddingError(f"Voyage embedding failed: {e}") from e

            try:
                data = sorted(response.json()["data"], key=lambda item: item["index"])
                results.extend(item["embedding"] for item in data)
            except (KeyError, TypeError, ValueError) as e:
                raise EmbeddingError(f"Unexpected Voyage embedding response: {e}") from e

        return results


class OpenAIEmbedder(BaseEmbedder):
    """
    OpenAI-based embedder.

    Uses OpenAI's embedding API with models like:
    - text-embedding-3-small (1536 dimensions)
    - text-embedding-ada-002 (1536 dimensions)
    """

    def __init__(self, config: EmbeddingConfig):
        super().__init__(config)
        self._client: Any = None

    def _get_client(self) -> Any:
        """Get or create OpenAI client."""
        if self._client is None:
            try:
                from openai import AsyncOpenAI
            except ImportError:
                raise ImportError(
                    "openai package required for OpenAI embeddings. "
                    "Install with: pip install magis-memory[openai]"
                )
            self._client = AsyncOpenAI(api_key=self.config.api_key)
        return self._client

    async def embed(self, text: str) -> list[float]:
        """Generate embedding using OpenAI."""
        client = self._get_client()
        from openai import OpenAIError

        try:
            response = await client.embeddings.create(
                model=self.config.model,
                input=text,
            )
        except OpenAIError as e:
            raise EmbeddingError(f"OpenAI embedding failed: {e}") from e

        return response.data[0].embedding


def create_embedder(config: EmbeddingConfig | None = None) -> BaseEmbedder:
    """
    Factory function to create the appropriate embedder.

    Args:
        config: Embedding configuration. Uses defaults if None.

    Returns:
        Configured embedder instance.
    """
    if config is None:
        config = EmbeddingConfig()

    providers = {
        "ollama": OllamaEmbedder,
        "openai": OpenAIEmbedder,
        "voyage": VoyageEmbedder,
    }

    embedder_class = providers.get(config.provider)
    if embedder_class is None:
        raise ValueError(f"Unknown embedding provider: {config.provider}")

    return embedder_class(config)


class QueryEmbedder:
    """
    Embeds search queries with a bounded latency.

    One call per query; each attempt is limited by ``timeout_seconds`` and
    retried ``retries`` times before giving up.
    """

    def __init__(self, embedder: BaseEmbedder, config: EmbeddingConfig | None = None):
        self._embedder = embedder
        self.config = config or embedder.config

    async def embed_query(self, text: str) -> list[float]:
        """
        Embed a query.

        Raises:
            EmbeddingUnavailableError: If every attempt failed or timed out
        """
        attempts = self.config.retries + 1
        last_error: Exception | None = None

        for attempt in range(1, attempts + 1):
            try:
                return await asyncio.wait_for(
                    self._embedder.embed(text),
                    timeout=self.config.timeout_seconds,
                )
            except asyncio.TimeoutError as e:
                last_error = e
                logger.warning(
                    f"Query embedding timed out after {self.config.timeout_seconds}s "
                    f"(attempt {attempt}/{attempts})"
                )
            except (EmbeddingError, httpx.HTTPError, OSError) as e:
                last_error = e
                logger.warning(f"Query embedding failed (attempt {attempt}/{attempts}): {e}")

        raise EmbeddingUnavailableError(
            f"Embedding service unavailable after {attempts} attempts"
        ) from last_error

    async def embed_content(self, text: str) -> list[float]:
        """Embed stored content; same bounds as queries."""
        return await self.embed_query(text)

    @property
    def model(self) -> str:
        return self.config.model

    async def close(self) -> None:
        await self._embedder.close()
