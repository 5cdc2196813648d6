"""
Hybrid task-vs-memory routing.

Scheduling questions are answered from structured task records when any
match; everything else (and scheduling questions without a matching task)
goes through memory scoring.
"""

import logging
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from magis_memory.config import RouterConfig
from magis_memory.models.task import Task
from magis_memory.retrieval.intent import QueryIntent, TaskIntentDetector
from magis_memory.retrieval.scorer import ScoredResult
from magis_memory.retrieval.searcher import MemorySearcher, SearchQuery
from magis_memory.storage.base import TaskStore, require_owner

logger = logging.getLogger(__name__)


class TaskHit(BaseModel):
    """A task answering a routed query."""

    type: Literal["task"] = "task"
    task: Task


class MemoryHit(BaseModel):
    """A scored memory answering a query."""

    type: Literal["memory"] = "memory"
    result: ScoredResult


HybridResult = Annotated[Union[TaskHit, MemoryHit], Field(discriminator="type")]


class QueryRouter:
    """
    Routes queries to the task store or the memory searcher.

    Usage:
        router = QueryRouter(searcher, task_store)
        hits = await router.search_tasks_or_memories("user_1", SearchQuery(text=...))
    """

    def __init__(
        self,
        searcher: MemorySearcher,
        task_store: TaskStore | None = None,
        config: RouterConfig | None = None,
        detector: TaskIntentDetector | None = None,
    ):
        self.searcher = searcher
        self.task_store = task_store
        self.config = config or RouterConfig()
        self.detector = detector or TaskIntentDetector(self.config)

    async def search_tasks_or_memories(
        self,
        owner_id: str,
        query: SearchQuery,
    ) -> list[TaskHit | MemoryHit]:
        """
        Answer a query from tasks first when it looks task-like.

        Returns:
            Task hits if the query is task-like and any task matched,
            otherwise memory hits from the scored search.
        """
        require_owner(owner_id)
        classified = self.detector.classify(query.text)

        if classified.intent == QueryIntent.TASK and self.task_store is not None:
            tasks = await self.task_store.search_tasks(
                owner_id,
                query.text,
                tag_filters=self.config.task_tags,
                participant=classified.participant,
            )
            if tasks:
                logger.debug(
                    f"Routed query to task store: {len(tasks)} task(s), "
                    f"participant={classified.participant!r}"
                )
                return [TaskHit(task=task) for task in tasks[: query.limit]]

            logger.debug("No matching task; falling back to memory search")

        results = await self.searcher.search(owner_id, query)
        return [MemoryHit(result=result) for result in results.results]
