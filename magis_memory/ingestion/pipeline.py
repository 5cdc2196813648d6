"""
The single ingestion path.

classify -> annotate -> resolve dates -> embed -> duplicate check -> store

Every step except the final insert degrades instead of failing: a broken
classifier, annotator or embedding service still results in a stored memory.
"""

import logging
from datetime import datetime, timezone

from pydantic import BaseModel

from magis_memory.classification.classifier import (
    ClassificationError,
    ClassificationResult,
    ContentClassifier,
    FallbackClassifier,
    KeywordFallbackClassifier,
)
from magis_memory.config import DuplicateConfig
from magis_memory.encoding.embedder import EmbeddingUnavailableError, QueryEmbedder
from magis_memory.ingestion.annotator import (
    Annotation,
    DateResolver,
    HeuristicAnnotator,
    MetadataAnnotator,
)
from magis_memory.ingestion.duplicates import DuplicateDetector, detect_experience
from magis_memory.models.base import Classification, MemoryRecord, naive_utc
from magis_memory.models.task import Task
from magis_memory.storage.base import MemoryStore, TaskStore, require_owner

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


# Experience types whose tasks the router treats as appointments
APPOINTMENT_TYPES = {"dentist", "doctor"}


class IngestionResult(BaseModel):
    """Outcome of ingesting one piece of content."""

    memory_id: str | None = None
    record: MemoryRecord
    classification: ClassificationResult
    skipped: bool = False
    duplicate_of: str | None = None
    task_id: str | None = None


class IngestionPipeline:
    """
    Turns raw content into a stored, fully annotated MemoryRecord.

    Usage:
        pipeline = IngestionPipeline(store, embedder=QueryEmbedder(create_embedder()))
        result = await pipeline.ingest("user_1", "Dentist appointment next Tuesday")
    """

    def __init__(
        self,
        store: MemoryStore,
        embedder: QueryEmbedder | None = None,
        classifier: ContentClassifier | None = None,
        annotator: MetadataAnnotator | None = None,
        date_resolver: DateResolver | None = None,
        duplicate_detector: DuplicateDetector | None = None,
        task_store: TaskStore | None = None,
        duplicate_config: DuplicateConfig | None = None,
    ):
        self.store = store
        self.embedder = embedder
        self.classifier = classifier or FallbackClassifier()
        self._fallback_classifier = KeywordFallbackClassifier()
        self.annotator = annotator or HeuristicAnnotator()
        self.date_resolver = date_resolver or DateResolver()
        self.duplicate_detector = duplicate_detector or DuplicateDetector(duplicate_config)
        self.task_store = task_store

    async def ingest(
        self,
        owner_id: str,
        content: str,
        context: str = "personal",
        reference_time: datetime | None = None,
    ) -> IngestionResult:
        """
        Ingest content for an owner.

        Args:
            owner_id: Owner of the new memory
            content: Raw text
            context: Scope tag (work, personal, family)
            reference_time: Clock for date resolution (default: now)

        Returns:
            IngestionResult; ``skipped`` is True for duplicate experiences

        Raises:
            UnauthorizedError: If owner_id is missing
            ValueError: If content is empty
            StorageError: If the insert fails
        """
        require_owner(owner_id)
        if not content or not content.strip():
            raise ValueError("Cannot ingest empty content")

        now = naive_utc(reference_time) if reference_time else _utcnow()

        classification = await self._classify(content, context)
        annotation = await self._annotate(content, context)
        resolved_dates = self.date_resolver.resolve(content, reference_time=now)
        embedding = await self._embed(content)

        record = MemoryRecord(
            owner_id=owner_id,
            content=content,
            summary=annotation.summary,
            context=context,
            embedding=embedding,
            embedding_model=self.embedder.model if embedding and self.embedder else None,
            classification=classification.classification,
            extracted_entities=annotation.entities,
            keywords=annotation.keywords,
            resolved_dates=resolved_dates,
            importance=annotation.importance,
            created_at=now,
            updated_at=now,
        )

        if record.classification == Classification.EXPERIENCE:
            recent = await self.store.list_active_memories(
                owner_id, context, classification=Classification.EXPERIENCE
            )
            duplicate = self.duplicate_detector.find_duplicate(record, recent, reference_time=now)
            if duplicate is not None:
                logger.info(f"Skipped duplicate experience for owner {owner_id} (matches {duplicate.id})")
                return IngestionResult(
                    record=record,
                    classification=classification,
                    skipped=True,
                    duplicate_of=duplicate.id,
                )

        memory_id = await self.store.insert_memory(record)
        logger.info(
            f"Stored {record.classification.value} memory {memory_id} for owner {owner_id}"
        )

        task_id = None
        if record.classification == Classification.EXPERIENCE:
            task_id = await self._create_task(record)

        return IngestionResult(
            memory_id=memory_id,
            record=record,
            classification=classification,
            task_id=task_id,
        )

    async def _classify(self, content: str, context: str) -> ClassificationResult:
        try:
            return await self.classifier.classify(content, context)
        except ClassificationError as e:
            logger.warning(f"Classification failed, using keyword voting: {e}")
            return await self._fallback_classifier.classify(content, context)

    async def _annotate(self, content: str, context: str) -> Annotation:
        try:
            return await self.annotator.annotate(content, context)
        except Exception as e:
            logger.warning(f"Annotation failed, storing without metadata: {e}", exc_info=True)
            return Annotation()

    async def _embed(self, content: str) -> list[float]:
        if self.embedder is None:
            return []
        try:
            return await self.embedder.embed_content(content)
        except EmbeddingUnavailableError as e:
            logger.warning(f"Storing memory without embedding: {e}")
            return []

    async def _create_task(self, record: MemoryRecord) -> str | None:
        """Record a detected future event in the task store."""
        if self.task_store is None:
            return None

        match = detect_experience(record.content)
        if match is None:
            return None

        tags = [match.type]
        if match.type in APPOINTMENT_TYPES:
            tags.append("appointment")

        task = Task(
            owner_id=record.owner_id,
            title=match.title,
            description=record.content,
            tags=tags,
            context=record.context,
            due_date=record.resolved_dates[0].start if record.resolved_dates else None,
        )
        task_id = await self.task_store.insert_task(task)
        logger.debug(f"Created task {task_id} from memory {record.id}")
        return task_id
