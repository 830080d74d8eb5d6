"""
Cosine similarity over embedding vectors (numpy).
"""

from typing import Sequence

import numpy as np

from leadrank.common.exceptions import EmbeddingDimensionMismatch


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors, in [-1, 1].

    Returns 0.0 when either vector has zero norm.

    Raises:
        EmbeddingDimensionMismatch: Vectors differ in length
    """
    if len(a) != len(b):
        raise EmbeddingDimensionMismatch(len(a), len(b))
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    similarity = float(np.dot(va, vb) / (norm_a * norm_b))
    # Float error can push identical vectors just past 1
    return max(-1.0, min(1.0, similarity))


def cosine_similarity_matrix(vec: Sequence[float], matrix: Sequence[Sequence[float]]) -> np.ndarray:
    """
    Cosine similarity between a vector and each row of a matrix.

    Args:
        vec: Query vector (D,)
        matrix: Embedding rows (N, D)

    Returns:
        Similarities array (N,); rows with zero norm score 0.0

    Raises:
        EmbeddingDimensionMismatch: A row's length differs from the query's
    """
    query = np.asarray(vec, dtype=float)
    if len(matrix) == 0:
        return np.zeros(0)
    for row in matrix:
        if len(row) != query.shape[0]:
            raise EmbeddingDimensionMismatch(query.shape[0], len(row))
    rows = np.asarray(matrix, dtype=float)

    query_norm = np.linalg.norm(query)
    row_norms = np.linalg.norm(rows, axis=1)
    if query_norm == 0:
        return np.zeros(rows.shape[0])

    dots = rows @ query
    denom = row_norms * query_norm
    similarities = np.divide(dots, denom, out=np.zeros_like(dots), where=denom != 0)
    return np.clip(similarities, -1.0, 1.0)
