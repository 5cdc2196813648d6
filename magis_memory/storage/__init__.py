"""
Storage backends for memories and tasks.
"""

from magis_memory.storage.base import (
    MemoryNotFoundError,
    MemoryStore,
    StorageError,
    StoreUnavailableError,
    TaskStore,
    UnauthorizedError,
    require_owner,
)
from magis_memory.storage.memory import InMemoryMemoryStore, InMemoryTaskStore
from magis_memory.storage.sqlite import SQLiteStorage

__all__ = [
    "MemoryStore",
    "TaskStore",
    "StorageError",
    "MemoryNotFoundError",
    "StoreUnavailableError",
    "UnauthorizedError",
    "require_owner",
    "InMemoryMemoryStore",
    "InMemoryTaskStore",
    "SQLiteStorage",
]
