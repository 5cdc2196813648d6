"""
Ingestion module: annotation, date resolution, duplicate guarding and storage.
"""

from magis_memory.ingestion.duplicates import (
    DuplicateDetector,
    ExperienceMatch,
    detect_experience,
    extract_timeframe,
    token_overlap_similarity,
)
from magis_memory.ingestion.annotator import (
    Annotation,
    DateResolver,
    HeuristicAnnotator,
    MetadataAnnotator,
)
from magis_memory.ingestion.pipeline import IngestionPipeline, IngestionResult

__all__ = [
    # Duplicates
    "DuplicateDetector",
    "ExperienceMatch",
    "detect_experience",
    "extract_timeframe",
    "token_overlap_similarity",
    # Annotation
    "Annotation",
    "DateResolver",
    "HeuristicAnnotator",
    "MetadataAnnotator",
    # Pipeline
    "IngestionPipeline",
    "IngestionResult",
]
