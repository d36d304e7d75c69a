"""Vector similarity primitives used by clustering and the golden answer cache."""

from collections.abc import Sequence

import numpy as np

Vector = Sequence[float] | np.ndarray


def cosine_similarity(a: Vector, b: Vector) -> float:
    """Cosine similarity between two vectors. Zero-norm vectors score 0.0."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise ValueError(f"Vector dimension mismatch: {va.shape} vs {vb.shape}")

    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(va, vb) / (norm_a * norm_b))


def centroid(vectors: Sequence[Vector]) -> np.ndarray:
    """Arithmetic mean of a non-empty set of equal-length vectors."""
    if not vectors:
        raise ValueError("Cannot compute the centroid of zero vectors")
    return np.mean(np.asarray(vectors, dtype=np.float64), axis=0)
