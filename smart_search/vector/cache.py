"""TTL cache of note vectors loaded from the external vector store."""

import asyncio
import logging
import time
from typing import Callable, Protocol

from ..retrieval.similarity import l2_norm, top_k
from ..retrieval.types import CacheSnapshot, NoteVector, ScoredResult, Vector

log = logging.getLogger(__name__)


class VectorLoader(Protocol):
    def load_all(self) -> list[NoteVector]: ...


def find_note(vectors: tuple[NoteVector, ...], path: str) -> NoteVector | None:
    """Locate a note by exact vault path, else by path suffix."""
    wanted = path.replace("\\", "/").lstrip("/")
    if not wanted:
        return None
    for entry in vectors:
        if entry.path == wanted:
            return entry
    for entry in vectors:
        if entry.path.endswith("/" + wanted) or wanted.endswith("/" + entry.path):
            return entry
    return None


class VectorCache:
    """Snapshot of the vector store, refreshed after ``ttl_ms``.

    The snapshot is immutable and swapped by reference once a reload is fully
    assembled. One reload runs at a time: callers that arrive while it is in
    flight get the previous snapshot if there is one, otherwise they wait for
    the reload.
    """

    def __init__(
        self,
        loader: VectorLoader,
        *,
        ttl_ms: int = 60_000,
        max_items: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.loader = loader
        self.ttl_ms = ttl_ms
        self.max_items = max_items
        self._clock = clock
        self._snapshot: CacheSnapshot | None = None
        self._pending: asyncio.Future[CacheSnapshot] | None = None
        self._pending_generation = 0
        self._generation = 0

    @property
    def snapshot(self) -> CacheSnapshot | None:
        return self._snapshot

    def invalidate(self) -> None:
        """Drop the current snapshot; the next read reloads."""
        self._generation += 1
        self._snapshot = None
        log.debug("Vector cache invalidated")

    async def vectors(self) -> tuple[NoteVector, ...]:
        return (await self._current()).vectors

    async def query(self, anchor: Vector, k: int) -> list[ScoredResult]:
        """Rank the cached pool against an anchor vector."""
        pool = await self.vectors()
        return top_k(anchor, l2_norm(anchor), pool, k)

    async def _current(self) -> CacheSnapshot:
        snapshot = self._snapshot
        if snapshot is not None and self._clock() < snapshot.expires_at:
            log.debug("Vector cache hit")
            return snapshot

        # a reload started before invalidate() cannot serve the next read
        if self._pending is not None and self._pending_generation == self._generation:
            if snapshot is not None:
                return snapshot
            return await asyncio.shield(self._pending)

        self._pending = asyncio.ensure_future(self._reload())
        self._pending_generation = self._generation
        return await asyncio.shield(self._pending)

    async def _reload(self) -> CacheSnapshot:
        generation = self._generation
        try:
            started = self._clock()
            loaded = await asyncio.to_thread(self.loader.load_all)
            if self.max_items is not None:
                loaded = loaded[: self.max_items]

            vectors = tuple(
                entry if entry.norm else _with_norm(entry) for entry in loaded
            )
            if vectors and self.ttl_ms > 0:
                expires_at = started + self.ttl_ms / 1000
            else:
                # Nothing indexed yet or caching disabled: retry on next read.
                expires_at = started

            snapshot = CacheSnapshot(expires_at=expires_at, vectors=vectors)
            if generation == self._generation:
                self._snapshot = snapshot
            log.info(f"Vector cache reloaded: {len(vectors)} vectors")
            return snapshot
        finally:
            if self._pending is asyncio.current_task():
                self._pending = None


def _with_norm(entry: NoteVector) -> NoteVector:
    return NoteVector(
        path=entry.path,
        vector=entry.vector,
        norm=l2_norm(entry.vector),
        model=entry.model,
    )
