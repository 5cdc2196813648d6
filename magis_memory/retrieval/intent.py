"""
Query intent detection for hybrid routing.

Decides whether a query asks about a scheduled task ("When is my meeting
with Sarah?") so the router can consult the task store before scoring
free-form memories.
"""

import re
from enum import Enum

from pydantic import BaseModel, Field

from magis_memory.config import RouterConfig


class QueryIntent(str, Enum):
    """Types of query intents."""

    TASK = "task"  # "When is my meeting...", "my dentist appointment"
    MEMORY = "memory"  # Everything else


class IntentSignal(BaseModel):
    """A signal that indicates a particular intent."""

    keywords: list[str] = Field(default_factory=list)


class ClassifiedQuery(BaseModel):
    """Result of intent detection."""

    intent: QueryIntent
    matched_phrases: list[str] = Field(default_factory=list)
    participant: str | None = Field(
        default=None,
        description="Person named in a 'with X' phrase",
    )


_PARTICIPANT_RE = re.compile(r"\bwith\s+([A-Za-z][A-Za-z'\-]*)", re.IGNORECASE)
_PARTICIPANT_STOPWORDS = {"my", "the", "a", "an", "our", "your", "his", "her", "their", "me", "us"}


class TaskIntentDetector:
    """
    Detects task-like queries by trigger phrases.

    Uses plain phrase containment; the phrase list comes from RouterConfig.
    """

    def __init__(self, config: RouterConfig | None = None):
        self.config = config or RouterConfig()
        self._signal = IntentSignal(keywords=[p.lower() for p in self.config.trigger_phrases])

    def classify(self, query: str) -> ClassifiedQuery:
        """
        Classify a query as task-like or not.

        Args:
            query: The search query

        Returns:
            ClassifiedQuery with the matched trigger phrases and participant
        """
        query_lower = query.lower()
        matched = [phrase for phrase in self._signal.keywords if phrase in query_lower]

        if not matched:
            return ClassifiedQuery(intent=QueryIntent.MEMORY)

        return ClassifiedQuery(
            intent=QueryIntent.TASK,
            matched_phrases=matched,
            participant=self.extract_participant(query),
        )

    @staticmethod
    def extract_participant(query: str) -> str | None:
        """Extract the name following 'with', if any."""
        match = _PARTICIPANT_RE.search(query)
        if not match:
            return None

        name = match.group(1)
        if name.lower().endswith("'s"):
            name = name[:-2]
        name = name.strip("'-")
        if not name or name.lower() in _PARTICIPANT_STOPWORDS:
            return None
        return name
