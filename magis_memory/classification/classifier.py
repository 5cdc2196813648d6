"""
Content classification into PROFILE / MEMORY / EXPERIENCE.

Strategies:
- LLMContentClassifier: prompt an LLM and parse its JSON answer
- KeywordFallbackClassifier: indicator-word voting, no network
- FallbackClassifier: primary strategy with keyword voting as a safety net
"""

import json
import logging
from abc import ABC, abstractmethod

import httpx
from pydantic import BaseModel, Field

from magis_memory.config import ClassifierConfig, LLMConfig
from magis_memory.models.base import Classification

logger = logging.getLogger(__name__)


class ClassificationError(Exception):
    """Raised when a classifier cannot produce a valid label."""

    pass


class ClassificationResult(BaseModel):
    """Outcome of classifying a piece of content."""

    classification: Classification
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    reasoning: str = ""
    sub_type: str | None = Field(
        default=None,
        description="Profile sub-type: work_info, personal_info, family_info, preferences, service_providers",
    )


CLASSIFY_PROMPT = """You classify user content for a personal assistant.

Categories:
1. PROFILE - who the user is: job, address, family, preferences, service providers
2. MEMORY - things that already happened: past meetings, dinners, trips
3. EXPERIENCE - things that will happen: scheduled meetings, appointments, deadlines

Examples:
- "I work at Microsoft" -> PROFILE (work_info)
- "Dr. Smith is my dentist" -> PROFILE (service_providers)
- "Had dinner at Luigi's last night" -> MEMORY
- "The meeting with Bob went well yesterday" -> MEMORY
- "Meeting with Sarah next Friday at 2pm" -> EXPERIENCE
- "Dentist appointment tomorrow" -> EXPERIENCE

Context: {context}
Content: "{content}"

Respond with JSON only:
{{"classification": "PROFILE|MEMORY|EXPERIENCE", "confidence": 0.0-1.0, "reasoning": "...", "subType": "..."}}"""


class BaseLLMClient(ABC):
    """Minimal text-generation interface used by the LLM classifier."""

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """Generate text from a prompt."""
        pass

    async def close(self) -> None:
        """Release any held resources."""
        pass


class OllamaLLMClient(BaseLLMClient):
    """Ollama text generation over its /api/generate endpoint."""

    def __init__(self, config: LLMConfig | None = None):
        self.config = config or LLMConfig()
        self.base_url = self.config.ollama_base_url.rstrip("/")
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=60.0)
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def generate(self, prompt: str) -> str:
        client = await self._get_client()

        response = await client.post(
            f"{self.base_url}/api/generate",
            json={
                "model": self.config.model,
                "prompt": prompt,
                "stream": False,
                "format": "json",
                "options": {
                    "temperature": self.config.temperature,
                    "num_predict": self.config.max_tokens,
                },
            },
        )
        response.raise_for_status()

        data = response.json()
        return data["response"].strip()


class ContentClassifier(ABC):
    """Abstract base class for content classifiers."""

    @abstractmethod
    async def classify(self, content: str, context: str = "personal") -> ClassificationResult:
        """
        Classify content.

        Args:
            content: Text to classify
            context: Scope tag (work, personal, family)

        Returns:
            ClassificationResult

        Raises:
            ClassificationError: If no valid label can be produced
        """
        pass


PROFILE_INDICATORS = [
    "i work at", "i am", "i'm", "my name is", "i live", "my birthday",
    "my wife", "my husband", "my doctor", "my dentist", "i prefer",
    "started working at", "new job", "just joined",
]

EXPERIENCE_INDICATORS = [
    "next", "tomorrow", "will", "going to", "have to", "need to",
    "appointment", "meeting with", "scheduled", "planning to",
    "remind me", "don't forget",
]

MEMORY_INDICATORS = [
    "yesterday", "last", "went", "had", "was", "did", "visited",
    "met with", "finished", "completed", "ate at", "saw",
]


class KeywordFallbackClassifier(ContentClassifier):
    """
    Rule-based classifier counting indicator phrases.

    PROFILE needs a strict majority over both other counts; otherwise
    EXPERIENCE wins when it beats MEMORY, and MEMORY is the default.
    """

    def __init__(self, config: ClassifierConfig | None = None):
        self.config = config or ClassifierConfig()

    async def classify(self, content: str, context: str = "personal") -> ClassificationResult:
        return self.classify_sync(content)

    def classify_sync(self, content: str) -> ClassificationResult:
        """Synchronous voting, usable outside an event loop."""
        text = content.lower()
        profile = sum(1 for phrase in PROFILE_INDICATORS if phrase in text)
        experience = sum(1 for phrase in EXPERIENCE_INDICATORS if phrase in text)
        memory = sum(1 for phrase in MEMORY_INDICATORS if phrase in text)

        if profile > experience and profile > memory:
            label = Classification.PROFILE
            reasoning = "Rule-based: contains profile indicators"
        elif experience > memory:
            label = Classification.EXPERIENCE
            reasoning = "Rule-based: contains future event indicators"
        else:
            label = Classification.MEMORY
            reasoning = "Rule-based: default to memory"

        return ClassificationResult(
            classification=label,
            confidence=self.config.fallback_confidence,
            reasoning=reasoning,
        )


class LLMContentClassifier(ContentClassifier):
    """Classifies content by prompting an LLM for a JSON verdict."""

    def __init__(self, llm_client: BaseLLMClient):
        self.llm_client = llm_client

    async def classify(self, content: str, context: str = "personal") -> ClassificationResult:
        prompt = CLASSIFY_PROMPT.format(context=context, content=content)
        try:
            response = await self.llm_client.generate(prompt)
        except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
            # ValueError covers non-JSON bodies from response.json()
            raise ClassificationError(f"LLM request failed: {e}") from e

        return self.parse_response(response)

    @staticmethod
    def parse_response(response: str) -> ClassificationResult:
        """Parse an LLM answer, tolerating markdown code fences."""
        text = response.strip()
        if text.startswith("```"):
            text = text.strip("`")
            if text.lower().startswith("json"):
                text = text[4:]
            text = text.strip()

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ClassificationError(f"Unparseable classifier output: {response[:100]!r}") from e

        if not isinstance(data, dict):
            raise ClassificationError(f"Classifier output is not an object: {response[:100]!r}")

        label = str(data.get("classification", "")).upper()
        if label not in Classification.__members__:
            raise ClassificationError(f"Invalid classification: {label!r}")

        confidence = data.get("confidence")
        try:
            confidence = float(confidence) if confidence is not None else 0.8
        except (TypeError, ValueError):
            confidence = 0.8

        return ClassificationResult(
            classification=Classification[label],
            confidence=min(1.0, max(0.0, confidence)),
            reasoning=data.get("reasoning") or "LLM classification",
            sub_type=data.get("subType") or data.get("sub_type"),
        )


class FallbackClassifier(ContentClassifier):
    """
    Uses a primary classifier and falls back to keyword voting.

    The fallback applies when there is no primary, when it raises
    ClassificationError, or when its confidence is below the minimum.
    """

    def __init__(
        self,
        primary: ContentClassifier | None = None,
        fallback: ContentClassifier | None = None,
        config: ClassifierConfig | None = None,
    ):
        self.config = config or ClassifierConfig()
        self.primary = primary
        self.fallback = fallback or KeywordFallbackClassifier(self.config)

    async def classify(self, content: str, context: str = "personal") -> ClassificationResult:
        if self.primary is None:
            return await self.fallback.classify(content, context)

        try:
            result = await self.primary.classify(content, context)
        except ClassificationError as e:
            logger.warning(f"Primary classifier failed, using fallback: {e}")
            return await self.fallback.classify(content, context)

        if result.confidence < self.config.min_confidence:
            logger.warning(
                f"Primary classifier confidence {result.confidence:.2f} below "
                f"{self.config.min_confidence:.2f}, using fallback"
            )
            return await self.fallback.classify(content, context)

        return result
