"""Cosine similarity and top-K selection over plain float sequences."""

import math
from typing import Iterable

from .errors import DimensionMismatch
from .types import NoteVector, ScoredResult, Vector


def l2_norm(vector: Vector) -> float:
    """Euclidean length of a vector."""
    return math.sqrt(sum(value * value for value in vector))


def dot_prefix(a: Vector, b: Vector) -> float:
    """Dot product over the shared prefix of two vectors."""
    return sum(x * y for x, y in zip(a, b))


def cosine(a: Vector, b: Vector) -> float:
    """Strict cosine similarity; both vectors must have the same length.

    Returns 0.0 when either vector has zero magnitude.
    """
    if len(a) != len(b):
        raise DimensionMismatch(len(a), len(b))
    denominator = l2_norm(a) * l2_norm(b)
    if denominator == 0:
        return 0.0
    return dot_prefix(a, b) / denominator


def cosine_prefix(a: Vector, b: Vector) -> float:
    """Tolerant cosine similarity for vectors from heterogeneous sources.

    Only the first ``min(len(a), len(b))`` components take part; whatever
    the longer vector holds beyond that is ignored, so the score is only
    meaningful when both vectors come from the same model.
    """
    length = min(len(a), len(b))
    return cosine(a[:length], b[:length])


def _finite(score: float) -> float:
    return score if math.isfinite(score) else 0.0


def top_k(
    anchor: Vector,
    anchor_norm: float,
    pool: Iterable[NoteVector],
    k: int,
) -> list[ScoredResult]:
    """Rank pool entries against an anchor by cosine, best first.

    Uses the precomputed norms (a zero norm counts as 1) and the shared
    prefix of each pair. Ties keep pool order.
    """
    if k <= 0:
        return []

    anchor_denominator = anchor_norm or 1.0
    scored = [
        ScoredResult(
            path=entry.path,
            score=_finite(
                dot_prefix(anchor, entry.vector)
                / (anchor_denominator * (entry.norm or 1.0))
            ),
        )
        for entry in pool
    ]
    return sort_results(scored)[:k]


def sort_results(results: Iterable[ScoredResult]) -> list[ScoredResult]:
    """Stable descending sort by score."""
    return sorted(results, key=lambda result: -result.score)
