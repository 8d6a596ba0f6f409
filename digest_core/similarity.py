"""
Similarity primitives over fixed-length embedding vectors.

Vectors of different length are never padded or truncated; comparing or
combining them raises DimensionMismatchError.
"""

from typing import Sequence

import numpy as np

from digest_core.exceptions import DimensionMismatchError, EmptyInputError


def as_vector(values: Sequence[float]) -> np.ndarray:
    """Convert a float sequence to a 1-D float64 array."""
    return np.asarray(values, dtype=np.float64).reshape(-1)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity dot(a, b) / (|a| |b|).

    Returns 0.0 when either vector has zero norm.

    Raises:
        DimensionMismatchError: If len(a) != len(b)
    """
    a = as_vector(a)
    b = as_vector(b)
    if a.shape[0] != b.shape[0]:
        raise DimensionMismatchError(expected=a.shape[0], actual=b.shape[0])

    denominator = np.linalg.norm(a) * np.linalg.norm(b)
    if denominator == 0:
        return 0.0
    return float(np.dot(a, b) / denominator)


def stack_vectors(vectors: Sequence[Sequence[float]]) -> np.ndarray:
    """
    Stack vectors into an (N x D) matrix, checking every length against the first.

    Raises:
        EmptyInputError: If vectors is empty
        DimensionMismatchError: If any vector differs in length from the first
    """
    if len(vectors) == 0:
        raise EmptyInputError("Cannot combine an empty set of vectors")

    rows = [as_vector(v) for v in vectors]
    dimension = rows[0].shape[0]
    for i, row in enumerate(rows[1:], start=1):
        if row.shape[0] != dimension:
            raise DimensionMismatchError(expected=dimension, actual=row.shape[0], index=i)
    return np.vstack(rows)


def centroid(vectors: Sequence[Sequence[float]]) -> np.ndarray:
    """Elementwise mean of the vectors."""
    return stack_vectors(vectors).mean(axis=0)
