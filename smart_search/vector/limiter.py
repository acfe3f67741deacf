"""Bounded-concurrency, time-limited access to an embedding backend."""

import asyncio
from collections import deque
import logging
from typing import Callable, Protocol

from ..retrieval.errors import EmbedTimeout

log = logging.getLogger(__name__)

WARMUP_TEXT = "warmup"


class EmbeddingBackend(Protocol):
    model_name: str

    def embed(self, text: str) -> list[float]: ...


class LimitedEmbedder:
    """Serialize calls into a stateful embedding backend.

    At most ``max_concurrency`` calls run inside the backend; the rest wait
    in FIFO order and are handed a slot directly when one frees up. The
    backend is built lazily, once, by ``factory`` in a worker thread. Each
    call is bounded by ``timeout_ms``; nothing is retried here.

    An instance belongs to the event loop that first uses it.
    """

    def __init__(
        self,
        factory: Callable[[], EmbeddingBackend],
        *,
        max_concurrency: int = 1,
        timeout_ms: int = 20_000,
        label: str | None = None,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._factory = factory
        self.max_concurrency = max_concurrency
        self.timeout_ms = timeout_ms
        self._label = label
        self._active = 0
        self._waiters: deque[asyncio.Future[None]] = deque()
        self._backend: asyncio.Future[EmbeddingBackend] | None = None

    @property
    def active(self) -> int:
        return self._active

    @property
    def queued(self) -> int:
        return len(self._waiters)

    @property
    def model_name(self) -> str:
        if self._backend is not None and self._backend.done():
            if not self._backend.cancelled() and self._backend.exception() is None:
                return self._backend.result().model_name
        return self._label or "unknown"

    async def embed(self, text: str) -> list[float]:
        """Embed text, waiting for an admission slot first.

        Raises:
            EmbedTimeout: if the backend does not answer within ``timeout_ms``.
        """
        await self._acquire()
        try:
            backend = await self._get_backend()
            try:
                vector = await asyncio.wait_for(
                    asyncio.to_thread(backend.embed, text),
                    timeout=self.timeout_ms / 1000,
                )
            except asyncio.TimeoutError as e:
                raise EmbedTimeout(self.timeout_ms) from e
        finally:
            self._release()
        return list(vector)

    async def warm_up(self) -> None:
        """Pay model start-up cost early; failures are ignored."""
        try:
            await self.embed(WARMUP_TEXT)
        except Exception as e:
            log.debug(f"Embedding warm-up failed: {e}")

    async def _get_backend(self) -> EmbeddingBackend:
        if self._backend is None:
            self._backend = asyncio.ensure_future(asyncio.to_thread(self._factory))
            self._backend.add_done_callback(self._forget_failed_backend)
        return await asyncio.shield(self._backend)

    def _forget_failed_backend(self, future: asyncio.Future) -> None:
        if future.cancelled() or future.exception() is not None:
            if self._backend is future:
                self._backend = None

    async def _acquire(self) -> None:
        if self._active < self.max_concurrency and not self._waiters:
            self._active += 1
            return

        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # Slot was handed over just before cancellation; pass it on.
                self._release()
            elif waiter in self._waiters:
                self._waiters.remove(waiter)
            raise

    def _release(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return
        self._active -= 1
