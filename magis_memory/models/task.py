"""
Task records.

Tasks are structured records created from detected future-event mentions.
The hybrid router prefers them over free-form memories for scheduling questions.
"""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator
from ulid import ULID

from magis_memory.models.base import _utcnow


class Task(BaseModel):
    """A scheduled task or appointment."""

    id: str = Field(default_factory=lambda: str(ULID()))
    owner_id: str

    title: str
    description: str | None = None
    tags: list[str] = Field(default_factory=list)
    context: str = "personal"

    due_date: datetime | None = None
    completed: bool = False
    created_at: datetime = Field(default_factory=_utcnow)

    @field_validator("tags")
    @classmethod
    def _lowercase_tags(cls, value: list[str]) -> list[str]:
        return [tag.strip().lower() for tag in value if tag.strip()]

    def search_text(self) -> str:
        """Lowercased text used for matching."""
        return " ".join([self.title, self.description or "", *self.tags]).lower()
