"""
SQLite storage backend for memories and tasks.

Uses aiosqlite for async operations. Owner scoping is part of every SQL
statement; rows belonging to other owners never leave the database.
"""

import json
from datetime import datetime, timezone
from typing import Any

import aiosqlite

from magis_memory.config import StorageConfig
from magis_memory.models.base import (
    Classification,
    ExtractedEntities,
    MemoryRecord,
    ResolvedDate,
)
from magis_memory.models.task import Task
from magis_memory.storage.base import (
    MemoryNotFoundError,
    MemoryStore,
    StorageError,
    StoreUnavailableError,
    TaskStore,
    UnauthorizedError,
    require_owner,
    task_matches,
)


# SQL Schema
SCHEMA = """
CREATE TABLE IF NOT EXISTS memories (
    id TEXT PRIMARY KEY,
    owner_id TEXT NOT NULL,
    content TEXT NOT NULL,
    summary TEXT,
    context TEXT NOT NULL,

    embedding_json TEXT,
    embedding_model TEXT,

    classification TEXT NOT NULL,
    entities_json TEXT,
    keywords_json TEXT,
    resolved_dates_json TEXT,

    importance INTEGER NOT NULL DEFAULT 5,

    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    is_active INTEGER DEFAULT 1
);

CREATE INDEX IF NOT EXISTS idx_memories_owner ON memories(owner_id, is_active);
CREATE INDEX IF NOT EXISTS idx_memories_owner_context ON memories(owner_id, context);

CREATE TABLE IF NOT EXISTS tasks (
    id TEXT PRIMARY KEY,
    owner_id TEXT NOT NULL,
    title TEXT NOT NULL,
    description TEXT,
    tags_json TEXT,
    context TEXT NOT NULL,
    due_date TEXT,
    completed INTEGER DEFAULT 0,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_tasks_owner ON tasks(owner_id, completed);
"""


def _utcnow() -> datetime:
    """Get current UTC time (naive, for compatibility with models)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _serialize_datetime(dt: datetime | None) -> str | None:
    """Serialize datetime to ISO format string."""
    return dt.isoformat() if dt else None


def _deserialize_datetime(s: str | None) -> datetime | None:
    """Deserialize datetime from ISO format string."""
    return datetime.fromisoformat(s) if s else None


class SQLiteStorage(MemoryStore, TaskStore):
    """
    SQLite-based storage for memories and tasks.

    Nested structures (entities, dates, embeddings) live in JSON columns.
    """

    def __init__(self, config: StorageConfig | None = None):
        """
        Initialize SQLite storage.

        Args:
            config: Storage configuration
        """
        self.config = config or StorageConfig()
        self.db_path = self.config.sqlite_path
        self._connection: aiosqlite.Connection | None = None
        self._connected = False

    async def connect(self) -> None:
        """Initialize connection and create schema."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

            self._connection = await aiosqlite.connect(str(self.db_path))
            self._connection.row_factory = aiosqlite.Row

            await self._connection.executescript(SCHEMA)
            await self._connection.commit()

            self._connected = True
        except (OSError, aiosqlite.Error) as e:
            raise StoreUnavailableError(f"Failed to connect to SQLite: {e}") from e

    async def disconnect(self) -> None:
        """Close the database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None
        self._connected = False

    async def is_connected(self) -> bool:
        """Check if storage is connected."""
        return self._connected and self._connection is not None

    def _ensure_connected(self) -> None:
        """Raise error if not connected."""
        if not self._connected:
            raise StoreUnavailableError("Not connected to database")

    def _memory_to_row(self, memory: MemoryRecord) -> dict[str, Any]:
        """Convert a memory record to a database row."""
        return {
            "id": memory.id,
            "owner_id": memory.owner_id,
            "content": memory.content,
            "summary": memory.summary,
            "context": memory.context,
            "embedding_json": json.dumps(memory.embedding),
            "embedding_model": memory.embedding_model,
            "classification": memory.classification.value,
            "entities_json": json.dumps(memory.extracted_entities.model_dump()),
            "keywords_json": json.dumps(memory.keywords),
            "resolved_dates_json": json.dumps(
                [d.model_dump(mode="json") for d in memory.resolved_dates]
            ),
            "importance": memory.importance,
            "created_at": _serialize_datetime(memory.created_at),
            "updated_at": _serialize_datetime(memory.updated_at),
            "is_active": 1 if memory.is_active else 0,
        }

    def _row_to_memory(self, row: aiosqlite.Row) -> MemoryRecord:
        """Convert a database row to a memory record."""
        entities = json.loads(row["entities_json"]) if row["entities_json"] else {}
        dates = json.loads(row["resolved_dates_json"]) if row["resolved_dates_json"] else []

        return MemoryRecord(
            id=row["id"],
            owner_id=row["owner_id"],
            content=row["content"],
            summary=row["summary"],
            context=row["context"],
            embedding=json.loads(row["embedding_json"]) if row["embedding_json"] else [],
            embedding_model=row["embedding_model"],
            classification=Classification(row["classification"]),
            extracted_entities=ExtractedEntities.model_validate(entities),
            keywords=json.loads(row["keywords_json"]) if row["keywords_json"] else [],
            resolved_dates=[ResolvedDate.model_validate(d) for d in dates],
            importance=row["importance"],
            created_at=_deserialize_datetime(row["created_at"]),
            updated_at=_deserialize_datetime(row["updated_at"]),
            is_active=bool(row["is_active"]),
        )

    # Memory operations
    async def list_active_memories(
        self,
        owner_id: str,
        context: str | None = None,
        classification: Classification | None = None,
    ) -> list[MemoryRecord]:
        """List active memories for one owner, newest first."""
        require_owner(owner_id)
        self._ensure_connected()

        query = "SELECT * FROM memories WHERE owner_id = ? AND is_active = 1"
        params: list[Any] = [owner_id]

        if context is not None:
            query += " AND context = ?"
            params.append(context)

        if classification is not None:
            query += " AND classification = ?"
            params.append(classification.value)

        query += " ORDER BY created_at DESC, id DESC"

        try:
            async with self._connection.execute(query, params) as cursor:
                rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise StorageError(f"Failed to list memories: {e}") from e

        return [self._row_to_memory(row) for row in rows]

    async def insert_memory(self, record: MemoryRecord) -> str:
        """Create a new memory in storage."""
        require_owner(record.owner_id)
        self._ensure_connected()

        row = self._memory_to_row(record)
        columns = ", ".join(row.keys())
        placeholders = ", ".join(["?" for _ in row])

        try:
            await self._connection.execute(
                f"INSERT INTO memories ({columns}) VALUES ({placeholders})",
                list(row.values()),
            )
            await self._connection.commit()
            return record.id
        except aiosqlite.Error as e:
            await self._connection.rollback()
            raise StorageError(f"Failed to create memory: {e}") from e

    async def get_memory(self, owner_id: str, memory_id: str) -> MemoryRecord | None:
        """Read a memory by ID for one owner."""
        require_owner(owner_id)
        self._ensure_connected()

        query = "SELECT * FROM memories WHERE id = ? AND owner_id = ?"
        try:
            async with self._connection.execute(query, (memory_id, owner_id)) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StorageError(f"Failed to get memory: {e}") from e

        if row is None:
            return None

        return self._row_to_memory(row)

    async def patch_memory(
        self,
        owner_id: str,
        memory_id: str,
        importance: int | None = None,
        is_active: bool | None = None,
    ) -> MemoryRecord:
        """Update importance and/or the active flag of an owned memory."""
        require_owner(owner_id)
        self._ensure_connected()

        try:
            async with self._connection.execute(
                "SELECT owner_id FROM memories WHERE id = ?", (memory_id,)
            ) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StorageError(f"Failed to load memory owner: {e}") from e

        if row is None:
            raise MemoryNotFoundError(f"Memory not found: {memory_id}")
        if row["owner_id"] != owner_id:
            raise UnauthorizedError("Not authorized")

        updates: dict[str, Any] = {"updated_at": _serialize_datetime(_utcnow())}
        if importance is not None:
            updates["importance"] = importance
        if is_active is not None:
            updates["is_active"] = 1 if is_active else 0

        set_clause = ", ".join(f"{k} = ?" for k in updates)
        try:
            await self._connection.execute(
                f"UPDATE memories SET {set_clause} WHERE id = ? AND owner_id = ?",
                [*updates.values(), memory_id, owner_id],
            )
            await self._connection.commit()
        except aiosqlite.Error as e:
            await self._connection.rollback()
            raise StorageError(f"Failed to update memory: {e}") from e

        return await self.get_memory(owner_id, memory_id)

    # Task operations
    async def insert_task(self, task: Task) -> str:
        """Create a new task."""
        require_owner(task.owner_id)
        self._ensure_connected()

        try:
            await self._connection.execute(
                "INSERT INTO tasks (id, owner_id, title, description, tags_json, "
                "context, due_date, completed, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    task.id,
                    task.owner_id,
                    task.title,
                    task.description,
                    json.dumps(task.tags),
                    task.context,
                    _serialize_datetime(task.due_date),
                    1 if task.completed else 0,
                    _serialize_datetime(task.created_at),
                ),
            )
            await self._connection.commit()
            return task.id
        except aiosqlite.Error as e:
            await self._connection.rollback()
            raise StorageError(f"Failed to create task: {e}") from e

    async def search_tasks(
        self,
        owner_id: str,
        query_text: str,
        tag_filters: list[str],
        participant: str | None = None,
    ) -> list[Task]:
        """Find open tasks for one owner matching the tag filters and query."""
        require_owner(owner_id)
        self._ensure_connected()

        query = (
            "SELECT * FROM tasks WHERE owner_id = ? AND completed = 0 "
            "ORDER BY due_date IS NULL, due_date ASC"
        )
        try:
            async with self._connection.execute(query, (owner_id,)) as cursor:
                rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise StorageError(f"Failed to search tasks: {e}") from e

        tasks = [
            Task(
                id=row["id"],
                owner_id=row["owner_id"],
                title=row["title"],
                description=row["description"],
                tags=json.loads(row["tags_json"]) if row["tags_json"] else [],
                context=row["context"],
                due_date=_deserialize_datetime(row["due_date"]),
                completed=bool(row["completed"]),
                created_at=_deserialize_datetime(row["created_at"]),
            )
            for row in rows
        ]
        return [t for t in tasks if task_matches(t, query_text, tag_filters, participant)]

    async def __aenter__(self) -> "SQLiteStorage":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()
