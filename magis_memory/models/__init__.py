"""
Memory models for the MAGIS memory engine.
"""

from magis_memory.models.base import (
    Classification,
    EntityRef,
    ExtractedEntities,
    MemoryRecord,
    ResolvedDate,
)
from magis_memory.models.task import Task

__all__ = [
    "Classification",
    "EntityRef",
    "ExtractedEntities",
    "MemoryRecord",
    "ResolvedDate",
    "Task",
]
