"""
Abstract base classes for storage backends.

Defines the narrow interface the engine reads and writes through. Every
operation takes the owner identity as its first argument so scoping happens
where the query is built, never as a post-filter.
"""

from abc import ABC, abstractmethod

from magis_memory.models.base import Classification, MemoryRecord
from magis_memory.models.task import Task


# Custom exceptions
class StorageError(Exception):
    """Base exception for storage errors."""

    pass


class MemoryNotFoundError(StorageError):
    """Raised when a memory is not found."""

    pass


class StoreUnavailableError(StorageError):
    """Raised when the backing store cannot be reached."""

    pass


class UnauthorizedError(StorageError):
    """Raised when an operation has no owner or targets another owner's data."""

    pass


def require_owner(owner_id: str | None) -> str:
    """Fail closed when no owner identity is available."""
    if not owner_id or not str(owner_id).strip():
        raise UnauthorizedError("Not authenticated: owner identity is required")
    return owner_id


class MemoryStore(ABC):
    """
    Abstract memory store.

    Implementations must scope every read and write by ``owner_id``.
    """

    @abstractmethod
    async def list_active_memories(
        self,
        owner_id: str,
        context: str | None = None,
        classification: Classification | None = None,
    ) -> list[MemoryRecord]:
        """
        List active memories for an owner, most recent first.

        Args:
            owner_id: The owner whose memories are listed
            context: Optional context filter (work, personal, family)
            classification: Optional classification filter

        Returns:
            Active memories ordered by creation time, newest first
        """
        pass

    @abstractmethod
    async def insert_memory(self, record: MemoryRecord) -> str:
        """
        Insert a new memory.

        Returns:
            The ID of the created memory
        """
        pass

    @abstractmethod
    async def get_memory(self, owner_id: str, memory_id: str) -> MemoryRecord | None:
        """Read one memory, or None when it does not exist for this owner."""
        pass

    @abstractmethod
    async def patch_memory(
        self,
        owner_id: str,
        memory_id: str,
        importance: int | None = None,
        is_active: bool | None = None,
    ) -> MemoryRecord:
        """
        Update importance and/or the active flag.

        Raises:
            MemoryNotFoundError: If the memory does not exist
            UnauthorizedError: If the memory belongs to another owner
        """
        pass

    async def connect(self) -> None:
        """Initialize connection to the backend."""

    async def disconnect(self) -> None:
        """Close connection to the backend."""

    async def __aenter__(self) -> "MemoryStore":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()


class TaskStore(ABC):
    """Abstract task store used by the hybrid router."""

    @abstractmethod
    async def insert_task(self, task: Task) -> str:
        """Insert a task and return its ID."""
        pass

    @abstractmethod
    async def search_tasks(
        self,
        owner_id: str,
        query_text: str,
        tag_filters: list[str],
        participant: str | None = None,
    ) -> list[Task]:
        """
        Find open tasks for an owner.

        A task matches when it carries at least one of ``tag_filters`` and its
        title, description or tags mention ``participant`` (or, without a
        participant, any query keyword).
        """
        pass

    async def connect(self) -> None:
        """Initialize connection to the backend."""

    async def disconnect(self) -> None:
        """Close connection to the backend."""


def task_matches(
    task: Task,
    query_text: str,
    tag_filters: list[str],
    participant: str | None = None,
    min_keyword_length: int = 3,
) -> bool:
    """Shared matching rule for task stores that filter in process."""
    if task.completed:
        return False
    wanted = {tag.lower() for tag in tag_filters}
    if wanted and not wanted & set(task.tags):
        return False

    text = task.search_text()
    if participant:
        return participant.lower() in text

    words = [
        w.strip(".,!?;:'\"()").lower()
        for w in query_text.split()
    ]
    keywords = [w for w in words if len(w) >= min_keyword_length]
    return any(keyword in text for keyword in keywords)
