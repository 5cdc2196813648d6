"""
Memory record models.

Defines the single canonical shape every memory takes once it is stored,
plus the value types it carries (entities, resolved dates).
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, computed_field, field_validator
from ulid import ULID


def _utcnow() -> datetime:
    """Get current UTC time (naive, for compatibility with stored records)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class Classification(str, Enum):
    """What a piece of content describes."""

    PROFILE = "PROFILE"  # Who I am: job, family, preferences
    MEMORY = "MEMORY"  # What I did: past events
    EXPERIENCE = "EXPERIENCE"  # What I'll do: future events, plans


class EntityRef(BaseModel):
    """A named entity with an optional relationship/type tag."""

    name: str
    relationship: str | None = Field(
        default=None,
        description="Relationship or role, e.g. 'friend', 'dentist'",
    )


class ExtractedEntities(BaseModel):
    """Structured entities grouped by kind."""

    people: list[EntityRef] = Field(default_factory=list)
    organizations: list[EntityRef] = Field(default_factory=list)
    locations: list[EntityRef] = Field(default_factory=list)

    def flatten(self) -> list[EntityRef]:
        """All entities, people first."""
        return [*self.people, *self.organizations, *self.locations]

    def names(self) -> list[str]:
        return [e.name for e in self.flatten()]

    def is_empty(self) -> bool:
        return not (self.people or self.organizations or self.locations)


class ResolvedDate(BaseModel):
    """A concrete date (or range) resolved from a temporal phrase."""

    start: datetime
    end: datetime | None = None
    phrase: str = Field(default="", description="Source phrase, e.g. 'next friday'")
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)


class MemoryRecord(BaseModel):
    """
    A stored memory.

    Content is immutable once classified; only importance and the active flag
    change after creation, through an explicit update.
    """

    id: str = Field(
        default_factory=lambda: str(ULID()),
        description="Unique memory identifier (ULID for time-ordering)",
    )
    owner_id: str = Field(description="User who owns this memory")

    content: str
    summary: str | None = None
    context: str = Field(default="personal", description="work, personal or family")

    embedding: list[float] = Field(default_factory=list)
    embedding_model: str | None = None

    classification: Classification = Classification.MEMORY
    extracted_entities: ExtractedEntities = Field(default_factory=ExtractedEntities)
    keywords: list[str] = Field(default_factory=list)
    resolved_dates: list[ResolvedDate] = Field(default_factory=list)

    importance: int = Field(default=5, ge=0, le=10)

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    is_active: bool = True

    @field_validator("created_at", "updated_at")
    @classmethod
    def _normalize_timestamps(cls, value: datetime) -> datetime:
        return naive_utc(value)

    @field_validator("keywords")
    @classmethod
    def _normalize_keywords(cls, value: list[str]) -> list[str]:
        seen: dict[str, None] = {}
        for keyword in value:
            cleaned = keyword.strip().lower()
            if cleaned:
                seen.setdefault(cleaned, None)
        return list(seen)

    @computed_field
    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)

    def age_days(self, reference_time: datetime | None = None) -> float:
        """Age of the memory in days."""
        now = naive_utc(reference_time) if reference_time else _utcnow()
        return max(0.0, (now - self.created_at).total_seconds() / 86400)

    def search_text(self) -> str:
        """Lowercased text used for keyword matching."""
        parts = [
            self.content,
            *self.keywords,
            *self.extracted_entities.names(),
            self.summary or "",
        ]
        return " ".join(parts).lower()

    @classmethod
    def from_legacy(cls, data: dict[str, Any]) -> "MemoryRecord":
        """
        Normalize a legacy record into the canonical shape.

        Older records used camelCase keys, stored entities as a flat list of
        strings or as who/what/where groups, and kept timestamps in epoch
        milliseconds. This is a migration step; nothing at query time reads
        the legacy shapes.
        """
        owner_id = data.get("owner_id") or data.get("ownerId") or data.get("userId")
        if not owner_id:
            raise ValueError("Legacy record has no owner")

        entities = _normalize_legacy_entities(
            data.get("extracted_entities")
            or data.get("extractedEntities")
            or data.get("entities")
        )

        raw_classification = data.get("classification") or data.get("memoryType")
        try:
            classification = Classification(str(raw_classification).upper())
        except ValueError:
            classification = Classification.MEMORY

        dates = [
            ResolvedDate(
                start=_to_datetime(d.get("start") or d.get("date")),
                end=_to_datetime(d["end"]) if d.get("end") else None,
                phrase=d.get("phrase") or d.get("original") or "",
                confidence=d.get("confidence", 1.0),
            )
            for d in (data.get("resolved_dates") or data.get("resolvedDates") or [])
            if d.get("start") or d.get("date")
        ]

        importance = data.get("importance")
        if importance is None:
            importance = 5

        record = {
            "owner_id": str(owner_id),
            "content": data["content"],
            "summary": data.get("summary"),
            "context": data.get("context") or "personal",
            "embedding": data.get("embedding") or [],
            "classification": classification,
            "extracted_entities": entities,
            "keywords": data.get("keywords") or [],
            "resolved_dates": dates,
            "importance": max(0, min(10, int(importance))),
            "is_active": data.get("is_active", data.get("isActive", True)),
        }
        legacy_id = data.get("id") or data.get("_id")
        if legacy_id:
            record["id"] = str(legacy_id)
        created = data.get("created_at") or data.get("createdAt")
        if created is not None:
            record["created_at"] = _to_datetime(created)
        updated = data.get("updated_at") or data.get("updatedAt")
        if updated is not None:
            record["updated_at"] = _to_datetime(updated)

        return cls.model_validate(record)

    def __str__(self) -> str:
        return f"{self.classification.value}[{self.id[:8]}]: {self.content[:50]}"


def _to_datetime(value: Any) -> datetime:
    """Convert epoch milliseconds, ISO strings or datetimes to naive UTC."""
    if isinstance(value, datetime):
        return naive_utc(value)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc).replace(tzinfo=None)
    return _to_datetime(datetime.fromisoformat(str(value)))


def _normalize_legacy_entities(raw: Any) -> ExtractedEntities:
    if not raw:
        return ExtractedEntities()
    if isinstance(raw, ExtractedEntities):
        return raw
    if isinstance(raw, list):
        # Flat string lists carried no kind information; treat them as people
        return ExtractedEntities(
            people=[EntityRef(name=str(name)) for name in raw if str(name).strip()]
        )
    if isinstance(raw, dict):
        if {"people", "organizations", "locations"} & raw.keys():
            return ExtractedEntities.model_validate(
                {key: [_entity_ref(e) for e in raw.get(key, [])]
                 for key in ("people", "organizations", "locations")}
            )
        return ExtractedEntities(
            people=[_entity_ref(e) for e in raw.get("who", [])],
            locations=[_entity_ref(e) for e in raw.get("where", [])],
        )
    raise ValueError(f"Unsupported entity shape: {type(raw).__name__}")


def _entity_ref(value: Any) -> EntityRef:
    if isinstance(value, str):
        return EntityRef(name=value)
    return EntityRef(
        name=value["name"],
        relationship=value.get("relationship") or value.get("type"),
    )
