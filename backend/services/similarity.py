"""Cosine similarity between embedding vectors."""
from typing import Sequence
import numpy as np

from services.errors import DimensionMismatchError, ZeroVectorError


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors.

    Args:
        vec_a: First vector
        vec_b: Second vector

    Returns:
        dot(a, b) / (|a| * |b|), in [-1, 1]

    Raises:
        DimensionMismatchError: If the vectors differ in length
        ZeroVectorError: If either vector has zero norm, since the score is undefined
    """
    if len(vec_a) != len(vec_b):
        raise DimensionMismatchError(
            "Vectors must have same length",
            {"left": len(vec_a), "right": len(vec_b)}
        )

    a = np.asarray(vec_a, dtype=np.float64)
    b = np.asarray(vec_b, dtype=np.float64)

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0.0 or norm_b == 0.0:
        raise ZeroVectorError("Cosine similarity is undefined for a zero vector")

    similarity = float(np.dot(a, b) / (norm_a * norm_b))
    # Rounding can push parallel vectors just past the bounds
    return max(-1.0, min(1.0, similarity))
