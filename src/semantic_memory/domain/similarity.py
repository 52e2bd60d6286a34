"""Cosine similarity ranking shared by the in-process and rescoring paths."""

from collections.abc import Sequence

import numpy as np

from semantic_memory.domain.models import MemoryRecord, SearchResult


def vector_norm(vector: Sequence[float]) -> float:
    """Euclidean norm of an embedding."""
    return float(np.linalg.norm(np.asarray(vector, dtype=np.float64)))


def cosine_similarity(
    vector_a: Sequence[float],
    vector_b: Sequence[float],
    norm_a: float | None = None,
    norm_b: float | None = None,
) -> float:
    """Cosine similarity, using precomputed norms when given.

    Mismatched lengths and zero vectors score 0.0.
    """
    if len(vector_a) == 0 or len(vector_a) != len(vector_b):
        return 0.0

    a = np.asarray(vector_a, dtype=np.float64)
    b = np.asarray(vector_b, dtype=np.float64)
    norm_a = float(np.linalg.norm(a)) if norm_a is None else norm_a
    norm_b = float(np.linalg.norm(b)) if norm_b is None else norm_b

    if norm_a == 0 or norm_b == 0:
        return 0.0

    return float(np.dot(a, b) / (norm_a * norm_b))


def order_results(results: list[SearchResult], limit: int) -> list[SearchResult]:
    """Descending similarity, ties broken by record id; first ``limit``."""
    return sorted(results, key=lambda r: (-r.similarity, r.record.id))[:limit]


def rank_records(
    records: Sequence[MemoryRecord],
    query_vector: Sequence[float],
    limit: int,
    threshold: float,
) -> list[SearchResult]:
    """Exhaustively score records against a query and keep the best matches.

    Records whose dimensions differ from the query are skipped. The threshold
    is inclusive.
    """
    query = np.asarray(query_vector, dtype=np.float64)
    query_norm = float(np.linalg.norm(query))
    candidates = [r for r in records if r.embedding_dimensions == query.shape[0]]
    if not candidates or query_norm == 0 or limit <= 0:
        return []

    matrix = np.asarray([r.embedding_vector for r in candidates], dtype=np.float64)
    norms = np.asarray([r.embedding_norm for r in candidates], dtype=np.float64)
    dots = matrix @ query
    denominators = norms * query_norm
    # Zero-norm rows score 0 instead of dividing by zero
    scores = np.divide(dots, denominators, out=np.zeros_like(dots), where=denominators != 0)

    results = [
        SearchResult(record=record, similarity=float(score))
        for record, score in zip(candidates, scores, strict=True)
        if score >= threshold
    ]
    return order_results(results, limit)
