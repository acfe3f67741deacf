"""Typed contracts for the smart search pipeline."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Sequence

Vector = Sequence[float]


class Method(str, Enum):
    """Provider that produced a response."""

    PLUGIN = "plugin"
    CACHE = "cache"
    EMBED = "embed"
    LEXICAL = "lexical"


@dataclass(frozen=True)
class NoteVector:
    path: str
    vector: tuple[float, ...]
    norm: float
    model: str | None = None

    @property
    def dimension(self) -> int:
        return len(self.vector)


@dataclass(frozen=True)
class ScoredResult:
    path: str
    score: float
    preview: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"path": self.path, "score": self.score}
        if self.preview is not None:
            payload["preview"] = self.preview
        return payload


@dataclass(frozen=True)
class CacheSnapshot:
    expires_at: float
    vectors: tuple[NoteVector, ...]


@dataclass(frozen=True)
class Document:
    path: str
    text: str


@dataclass(frozen=True)
class RetrievalRequest:
    query: str = ""
    anchor_path: str | None = None
    limit: int = 10


@dataclass(frozen=True)
class RetrievalResponse:
    method: Method
    results: tuple[ScoredResult, ...]
    encoder_label: str
    dimension: int
    pool_size: int
    elapsed_ms: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "method": self.method.value,
            "results": [result.to_dict() for result in self.results],
            "encoder_label": self.encoder_label,
            "dimension": self.dimension,
            "pool_size": self.pool_size,
            "elapsed_ms": self.elapsed_ms,
        }
