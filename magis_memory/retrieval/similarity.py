"""
Vector similarity primitive.
"""

from collections.abc import Sequence

import numpy as np


def cosine_similarity(
    vec1: Sequence[float] | None,
    vec2: Sequence[float] | None,
) -> float:
    """
    Cosine similarity between two vectors, in [-1, 1].

    Missing, empty, zero-norm or different-length vectors yield 0.0. Vectors
    of different lengths come from different embedding models and are not
    comparable.
    """
    if vec1 is None or vec2 is None:
        return 0.0
    if len(vec1) == 0 or len(vec1) != len(vec2):
        return 0.0

    a = np.asarray(vec1, dtype=np.float64)
    b = np.asarray(vec2, dtype=np.float64)

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0 or not np.isfinite(norm_a * norm_b):
        return 0.0

    similarity = float(np.dot(a, b) / (norm_a * norm_b))
    if not np.isfinite(similarity):
        return 0.0
    return max(-1.0, min(1.0, similarity))
