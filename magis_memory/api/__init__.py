"""
API module: the owner-scoped service facade.
"""

from magis_memory.api.memory_service import MemoryService

__all__ = [
    "MemoryService",
]
