"""
Classification module for incoming content.
"""

from magis_memory.classification.classifier import (
    BaseLLMClient,
    ClassificationError,
    ClassificationResult,
    ContentClassifier,
    FallbackClassifier,
    KeywordFallbackClassifier,
    LLMContentClassifier,
    OllamaLLMClient,
)

__all__ = [
    "BaseLLMClient",
    "ClassificationError",
    "ClassificationResult",
    "ContentClassifier",
    "FallbackClassifier",
    "KeywordFallbackClassifier",
    "LLMContentClassifier",
    "OllamaLLMClient",
]
