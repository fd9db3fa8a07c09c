"""Cosine similarity ranking over embedding vectors."""

from typing import Any, Hashable, Sequence, Tuple

import numpy as np

CorpusEntry = Tuple[Hashable, Sequence[float], Any]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors of equal length.

    A zero-magnitude vector has similarity 0.0 with everything.

    Raises:
        ValueError: If the vectors are empty or differ in length
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.ndim != 1 or va.size == 0 or va.shape != vb.shape:
        raise ValueError(f"Vectors must be non-empty and equal length ({va.shape} vs {vb.shape})")

    denom = np.linalg.norm(va) * np.linalg.norm(vb)
    if denom == 0:
        return 0.0
    return float(np.clip(np.dot(va, vb) / denom, -1.0, 1.0))


def rank(
    query: Sequence[float],
    corpus: Sequence[CorpusEntry],
    k: int,
) -> list[tuple[Any, float]]:
    """
    Rank corpus entries by cosine similarity to the query.

    Args:
        query: Query vector
        corpus: (id, vector, payload) entries; every vector must match the query length
        k: Number of results to return

    Returns:
        Top-k (payload, score) pairs, highest score first. Equal scores keep
        their corpus order.

    Raises:
        ValueError: If any vector length differs from the query's
    """
    if k <= 0 or not corpus:
        return []

    q = np.asarray(query, dtype=np.float64)
    if q.ndim != 1 or q.size == 0:
        raise ValueError("Query vector must be non-empty")

    vectors = [np.asarray(vector, dtype=np.float64) for _, vector, _ in corpus]
    for (entry_id, _, _), vector in zip(corpus, vectors, strict=True):
        if vector.shape != q.shape:
            raise ValueError(
                f"Corpus entry {entry_id!r} has dimension {vector.shape}, expected {q.shape}"
            )
    matrix = np.vstack(vectors)

    denom = np.linalg.norm(matrix, axis=1) * np.linalg.norm(q)
    scores = np.zeros(len(corpus), dtype=np.float64)
    np.divide(matrix @ q, denom, out=scores, where=denom > 0)
    np.clip(scores, -1.0, 1.0, out=scores)

    order = np.argsort(-scores, kind="stable")[:k]
    return [(corpus[i][2], float(scores[i])) for i in order]
