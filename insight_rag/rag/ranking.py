from __future__ import annotations

"""Brute-force cosine similarity ranking over the in-memory corpus."""

import math
from typing import Iterable, Sequence

from insight_rag.rag.types import Chunk, ScoredChunk


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Compute cosine similarity between two vectors.

    A zero-norm vector has no direction, so any comparison with it scores 0.0.
    """
    if len(a) != len(b):
        raise ValueError(f"Vector dimension mismatch: {len(a)} != {len(b)}")
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (norm_a * norm_b)


def score_chunks(query: Sequence[float], chunks: Iterable[Chunk]) -> list[ScoredChunk]:
    """Score every chunk against the query, keeping corpus order."""
    return [
        ScoredChunk(chunk=chunk, score=cosine_similarity(query, chunk.embedding))
        for chunk in chunks
    ]


def rank(query: Sequence[float], chunks: Iterable[Chunk], k: int) -> list[ScoredChunk]:
    """Return the k highest scoring chunks in descending score order.

    Equal scores keep their corpus order since ``list.sort`` is stable even
    with ``reverse=True``.
    """
    if k <= 0:
        return []
    scored = score_chunks(query, chunks)
    scored.sort(key=lambda item: item.score, reverse=True)
    return scored[:k]
