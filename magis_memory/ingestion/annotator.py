"""
Metadata annotation for incoming content.

The annotator fills the fields the scorer reads: entities, keywords, summary
and importance. DateResolver turns relative temporal phrases into concrete
dates so the temporal dimension has something to work with.
"""

import calendar
import re
from abc import ABC, abstractmethod
from datetime import datetime, time, timedelta, timezone

from pydantic import BaseModel, Field

from magis_memory.ingestion.duplicates import detect_experience, extract_timeframe
from magis_memory.models.base import EntityRef, ExtractedEntities, ResolvedDate


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Annotation(BaseModel):
    """Metadata produced for one piece of content."""

    entities: ExtractedEntities = Field(default_factory=ExtractedEntities)
    keywords: list[str] = Field(default_factory=list)
    summary: str | None = None
    importance: int = Field(default=5, ge=1, le=10)


class MetadataAnnotator(ABC):
    """Abstract base class for metadata annotators."""

    @abstractmethod
    async def annotate(self, content: str, context: str = "personal") -> Annotation:
        """
        Extract metadata from content.

        Args:
            content: Raw text
            context: Scope tag (work, personal, family)

        Returns:
            Annotation with entities, keywords, summary and importance
        """
        pass


class HeuristicAnnotator(MetadataAnnotator):
    """
    Rule-based annotator.

    Picks up capitalised names after "with", "and", "to" or a relationship
    word ("friend Sarah"), role words, known place words and activity keywords.
    """

    NAME_PATTERN = re.compile(r"\b(?:with|and|to)\s+([A-Z][a-z]+)\b")
    RELATION_PATTERN = re.compile(
        r"\b(friend|colleague|coworker|sister|brother|cousin|neighbor)\s+([A-Z][a-z]+)\b"
    )
    TITLE_PATTERN = re.compile(r"\b(Dr\.?\s+[A-Z][a-z]+)")
    PLACE_PATTERN = re.compile(r"\b(?:at|in)\s+([A-Z][a-z]+(?:'s)?(?:\s+[A-Z][a-z]+)*)")

    ROLES = ["dentist", "doctor", "boss", "manager", "wife", "husband", "mom", "dad"]
    PLACES = ["office", "restaurant", "gym", "home", "airport", "hospital", "clinic", "school"]
    ACTIVITIES = [
        "appointment", "checkup", "exam", "meeting", "dinner", "lunch",
        "breakfast", "call", "trip", "flight", "interview", "party", "birthday",
    ]

    STOP_NAMES = {
        "The", "This", "That", "My", "Our", "Your", "Me", "Us",
        "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday",
        "January", "February", "March", "April", "May", "June", "July",
        "August", "September", "October", "November", "December",
        "Today", "Tomorrow", "Yesterday", "Dr",
    }

    async def annotate(self, content: str, context: str = "personal") -> Annotation:
        return self.annotate_sync(content)

    def annotate_sync(self, content: str) -> Annotation:
        text_lower = content.lower()

        people: list[EntityRef] = []
        seen: set[str] = set()

        for match in self.TITLE_PATTERN.finditer(content):
            name = re.sub(r"\s+", " ", match.group(1))
            role = "dentist" if "dentist" in text_lower else "doctor"
            people.append(EntityRef(name=name, relationship=role))
            seen.add(name.lower())
            seen.add(name.split()[-1].lower())

        for match in self.RELATION_PATTERN.finditer(content):
            name = match.group(2)
            if name in self.STOP_NAMES or name.lower() in seen:
                continue
            people.append(EntityRef(name=name, relationship=match.group(1)))
            seen.add(name.lower())

        for match in self.NAME_PATTERN.finditer(content):
            name = match.group(1)
            if name in self.STOP_NAMES or name.lower() in seen:
                continue
            people.append(EntityRef(name=name))
            seen.add(name.lower())

        for role in self.ROLES:
            if re.search(rf"\b{role}\b", text_lower) and not any(
                p.relationship == role for p in people
            ):
                people.append(EntityRef(name=role, relationship=role))

        locations: list[EntityRef] = []
        for match in self.PLACE_PATTERN.finditer(content):
            name = match.group(1)
            if name.split()[0] in self.STOP_NAMES or name.lower() in seen:
                continue
            locations.append(EntityRef(name=name))
            seen.add(name.lower())
        for place in self.PLACES:
            if re.search(rf"\b{place}\b", text_lower):
                locations.append(EntityRef(name=place))

        activities = [a for a in self.ACTIVITIES if re.search(rf"\b{a}\b", text_lower)]
        timeframe = extract_timeframe(content)

        entities = ExtractedEntities(people=people, locations=locations)
        keywords = [*activities, *(p.name for p in people)]
        if timeframe:
            keywords.append(timeframe)

        experience = detect_experience(content)
        importance = experience.importance if experience else 5

        return Annotation(
            entities=entities,
            keywords=keywords,
            summary=self._summarize(content, people, activities, timeframe, locations),
            importance=importance,
        )

    @staticmethod
    def _summarize(
        content: str,
        people: list[EntityRef],
        activities: list[str],
        timeframe: str,
        locations: list[EntityRef],
    ) -> str:
        parts = []
        if people:
            parts.append(f"People: {', '.join(p.name for p in people)}")
        if activities:
            parts.append(f"Activities: {', '.join(activities)}")
        if timeframe:
            parts.append(f"Timing: {timeframe}")
        if locations:
            parts.append(f"Location: {', '.join(loc.name for loc in locations)}")

        if parts:
            return " | ".join(parts)
        return content if len(content) <= 100 else content[:100] + "..."


WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


class DateResolver:
    """
    Resolve relative temporal phrases into concrete dates.

    Handles:
    - today, tonight, tomorrow, yesterday, last night
    - next/last <weekday>
    - next/last week, next/last month
    - in N days, N days ago
    """

    PATTERN = re.compile(
        r"\b("
        r"last night|tonight|today|tomorrow|yesterday"
        r"|(?:next|last) (?:" + "|".join(WEEKDAYS) + r")"
        r"|(?:next|last) (?:week|month)"
        r"|in (\d+) days?"
        r"|(\d+) days? ago"
        r")\b",
        re.IGNORECASE,
    )

    def __init__(self, reference_time: datetime | None = None):
        self.reference_time = reference_time

    def resolve(self, text: str, reference_time: datetime | None = None) -> list[ResolvedDate]:
        """
        Find and resolve all temporal phrases in text.

        Returns:
            ResolvedDate per phrase, in order of appearance
        """
        now = reference_time or self.reference_time or _utcnow()
        resolved = []
        for match in self.PATTERN.finditer(text):
            phrase = match.group(1).lower()
            result = self._resolve_phrase(phrase, match, now)
            if result is not None:
                resolved.append(result)
        return resolved

    def _resolve_phrase(self, phrase: str, match: re.Match, now: datetime) -> ResolvedDate | None:
        today = now.date()

        if phrase == "today":
            return self._day(today, phrase)
        if phrase == "tomorrow":
            return self._day(today + timedelta(days=1), phrase)
        if phrase == "yesterday":
            return self._day(today - timedelta(days=1), phrase)
        if phrase == "tonight":
            return self._evening(today, phrase)
        if phrase == "last night":
            return self._evening(today - timedelta(days=1), phrase)

        if match.group(2):
            return self._day(today + timedelta(days=int(match.group(2))), phrase)
        if match.group(3):
            return self._day(today - timedelta(days=int(match.group(3))), phrase)

        direction, unit = phrase.split()
        forward = direction == "next"

        if unit in WEEKDAYS:
            target = WEEKDAYS.index(unit)
            if forward:
                delta = (target - today.weekday()) % 7 or 7
            else:
                delta = -((today.weekday() - target) % 7 or 7)
            return self._day(today + timedelta(days=delta), phrase, confidence=0.9)

        if unit == "week":
            monday = today - timedelta(days=today.weekday())
            start = monday + timedelta(weeks=1 if forward else -1)
            return ResolvedDate(
                start=datetime.combine(start, time.min),
                end=datetime.combine(start + timedelta(days=6), time.max),
                phrase=phrase,
                confidence=0.8,
            )

        if unit == "month":
            year, month = today.year, today.month + (1 if forward else -1)
            if month == 13:
                year, month = year + 1, 1
            elif month == 0:
                year, month = year - 1, 12
            last_day = calendar.monthrange(year, month)[1]
            return ResolvedDate(
                start=datetime(year, month, 1),
                end=datetime.combine(datetime(year, month, last_day).date(), time.max),
                phrase=phrase,
                confidence=0.8,
            )

        return None

    @staticmethod
    def _day(day, phrase: str, confidence: float = 1.0) -> ResolvedDate:
        return ResolvedDate(
            start=datetime.combine(day, time.min),
            end=datetime.combine(day, time.max),
            phrase=phrase,
            confidence=confidence,
        )

    @staticmethod
    def _evening(day, phrase: str) -> ResolvedDate:
        return ResolvedDate(
            start=datetime.combine(day, time(18, 0)),
            end=datetime.combine(day, time.max),
            phrase=phrase,
            confidence=0.9,
        )
