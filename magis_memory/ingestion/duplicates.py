"""
Experience detection and duplicate guarding.

Future events tend to be mentioned more than once ("dentist next week",
"don't forget the dentist next week"). Before an EXPERIENCE memory is
stored it is compared against the owner's recent experiences.
"""

import logging
from datetime import datetime, timedelta, timezone

from pydantic import BaseModel

from magis_memory.config import DuplicateConfig
from magis_memory.models.base import Classification, MemoryRecord, naive_utc

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ExperienceMatch(BaseModel):
    """A recognised kind of future event."""

    type: str
    title: str
    description: str
    importance: int
    timeframe: str = ""


EXPERIENCE_PATTERNS = [
    {
        "keywords": ["dentist", "dental"],
        "type": "dentist",
        "title": "Dentist appointment",
        "description": "Dental care appointment",
        "importance": 7,
    },
    {
        "keywords": ["doctor", "physician", "medical appointment"],
        "type": "doctor",
        "title": "Doctor appointment",
        "description": "Medical appointment",
        "importance": 8,
    },
    {
        "keywords": ["restaurant", "dinner", "lunch", "eating out"],
        "type": "restaurant",
        "title": "Restaurant visit",
        "description": "Dining experience",
        "importance": 5,
    },
    {
        "keywords": ["meeting", "conference", "call"],
        "type": "meeting",
        "title": "Work meeting",
        "description": "Professional meeting or call",
        "importance": 6,
    },
    {
        "keywords": ["travel", "trip", "vacation", "flight"],
        "type": "travel",
        "title": "Travel experience",
        "description": "Travel or vacation",
        "importance": 7,
    },
]

# Checked in order; the first hit wins
TIMEFRAMES = ["next month", "next week", "tomorrow", "today", "this week", "this month", "soon"]


def extract_timeframe(text: str) -> str:
    """Return the first timeframe phrase found in text, or ''."""
    text_lower = text.lower()
    for timeframe in TIMEFRAMES:
        if timeframe in text_lower:
            return timeframe
    return ""


def detect_experience(text: str) -> ExperienceMatch | None:
    """Match text against the experience pattern table."""
    text_lower = text.lower()
    for pattern in EXPERIENCE_PATTERNS:
        if any(keyword in text_lower for keyword in pattern["keywords"]):
            return ExperienceMatch(
                type=pattern["type"],
                title=pattern["title"],
                description=pattern["description"],
                importance=pattern["importance"],
                timeframe=extract_timeframe(text),
            )
    return None


def token_overlap_similarity(a: str, b: str) -> float:
    """Shared words divided by the larger word count."""
    words_a = a.lower().split()
    words_b = b.lower().split()
    total = max(len(words_a), len(words_b))
    if total == 0:
        return 0.0

    vocabulary_b = set(words_b)
    common = sum(1 for word in words_a if word in vocabulary_b)
    return min(1.0, common / total)


class DuplicateDetector:
    """
    Detects repeated mentions of the same future event.

    A candidate duplicates an existing experience when both are the same
    experience type in the same context and either their texts overlap
    above the similarity threshold or they name the same timeframe.
    """

    def __init__(self, config: DuplicateConfig | None = None):
        self.config = config or DuplicateConfig()

    def is_duplicate(
        self,
        candidate: MemoryRecord,
        existing: list[MemoryRecord],
        reference_time: datetime | None = None,
    ) -> bool:
        return self.find_duplicate(candidate, existing, reference_time) is not None

    def find_duplicate(
        self,
        candidate: MemoryRecord,
        existing: list[MemoryRecord],
        reference_time: datetime | None = None,
    ) -> MemoryRecord | None:
        """
        Find the first existing record the candidate duplicates.

        Args:
            candidate: Record about to be stored
            existing: Owner's records to compare against
            reference_time: Clock for the lookback window (default: now)

        Returns:
            The duplicated record, or None
        """
        if candidate.classification != Classification.EXPERIENCE:
            return None

        match = detect_experience(candidate.content)
        if match is None:
            return None

        now = naive_utc(reference_time) if reference_time else _utcnow()
        cutoff = now - timedelta(days=self.config.lookback_days)

        for record in existing:
            if record.classification != Classification.EXPERIENCE:
                continue
            if record.created_at < cutoff or record.context != candidate.context:
                continue

            other = detect_experience(record.content)
            if other is None or other.type != match.type:
                continue

            similarity = token_overlap_similarity(candidate.content, record.content)
            if similarity > self.config.similarity_threshold:
                logger.debug(f"Duplicate of {record.id}: similarity {similarity:.2f}")
                return record
            if match.timeframe and match.timeframe == other.timeframe:
                logger.debug(f"Duplicate of {record.id}: same timeframe '{match.timeframe}'")
                return record

        return None
