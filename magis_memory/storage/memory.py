"""
In-memory storage backends.

Used by tests and local development behind the same interface as the
production stores, so no code path needs an auth-skipping variant.
"""

from datetime import datetime, timezone

from magis_memory.models.base import Classification, MemoryRecord
from magis_memory.models.task import Task
from magis_memory.storage.base import (
    MemoryNotFoundError,
    MemoryStore,
    StorageError,
    TaskStore,
    UnauthorizedError,
    require_owner,
    task_matches,
)


def _utcnow() -> datetime:
    """Get current UTC time (naive, for compatibility with models)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class InMemoryMemoryStore(MemoryStore):
    """Dictionary-backed memory store, partitioned by owner."""

    def __init__(self):
        self._by_owner: dict[str, dict[str, MemoryRecord]] = {}

    async def list_active_memories(
        self,
        owner_id: str,
        context: str | None = None,
        classification: Classification | None = None,
    ) -> list[MemoryRecord]:
        require_owner(owner_id)
        records = [
            record.model_copy(deep=True)
            for record in self._by_owner.get(owner_id, {}).values()
            if record.is_active
            and (context is None or record.context == context)
            and (classification is None or record.classification == classification)
        ]
        # Stable newest-first order; ULIDs break created_at ties
        records.sort(key=lambda r: (r.created_at, r.id), reverse=True)
        return records

    async def insert_memory(self, record: MemoryRecord) -> str:
        require_owner(record.owner_id)
        for partition in self._by_owner.values():
            if record.id in partition:
                raise StorageError(f"Memory already exists: {record.id}")
        self._by_owner.setdefault(record.owner_id, {})[record.id] = record.model_copy(deep=True)
        return record.id

    async def get_memory(self, owner_id: str, memory_id: str) -> MemoryRecord | None:
        require_owner(owner_id)
        record = self._by_owner.get(owner_id, {}).get(memory_id)
        return record.model_copy(deep=True) if record else None

    async def patch_memory(
        self,
        owner_id: str,
        memory_id: str,
        importance: int | None = None,
        is_active: bool | None = None,
    ) -> MemoryRecord:
        require_owner(owner_id)
        record = self._by_owner.get(owner_id, {}).get(memory_id)
        if record is None:
            if any(memory_id in p for o, p in self._by_owner.items() if o != owner_id):
                raise UnauthorizedError("Not authorized")
            raise MemoryNotFoundError(f"Memory not found: {memory_id}")

        updates: dict = {"updated_at": _utcnow()}
        if importance is not None:
            updates["importance"] = importance
        if is_active is not None:
            updates["is_active"] = is_active

        patched = record.model_copy(update=updates)
        self._by_owner[owner_id][memory_id] = patched
        return patched.model_copy(deep=True)

    def count(self, owner_id: str | None = None) -> int:
        """Count stored memories, optionally for one owner."""
        if owner_id is not None:
            return len(self._by_owner.get(owner_id, {}))
        return sum(len(p) for p in self._by_owner.values())


class InMemoryTaskStore(TaskStore):
    """List-backed task store."""

    def __init__(self, min_keyword_length: int = 3):
        self._tasks: list[Task] = []
        self.min_keyword_length = min_keyword_length

    async def insert_task(self, task: Task) -> str:
        require_owner(task.owner_id)
        self._tasks.append(task.model_copy(deep=True))
        return task.id

    async def search_tasks(
        self,
        owner_id: str,
        query_text: str,
        tag_filters: list[str],
        participant: str | None = None,
    ) -> list[Task]:
        require_owner(owner_id)
        matches = [
            task.model_copy(deep=True)
            for task in self._tasks
            if task.owner_id == owner_id
            and task_matches(
                task, query_text, tag_filters, participant, self.min_keyword_length
            )
        ]
        # Soonest due first; undated tasks last
        matches.sort(key=lambda t: (t.due_date is None, t.due_date or datetime.max))
        return matches
