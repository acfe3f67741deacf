"""Smart search orchestration: plugin -> vector cache -> query embedding -> TF-IDF.

Providers are consulted one at a time. A provider that is unavailable or
finds nothing hands over to the next one; the first non-empty result set is
returned as is. Scores from different providers are never mixed.
"""

import asyncio
from dataclasses import dataclass
import logging
import time
from typing import Awaitable, Callable, Protocol

from ..vector.cache import VectorCache, find_note
from ..vector.store import SmartEnvStore
from .config import DEFAULT_SEARCH_CONFIG, SearchConfig
from .corpus import CorpusSource, VaultCorpus
from .errors import EmbedTimeout, ProviderTransientFailure
from .lexical import TfIdfIndex
from .plugin import PluginSearchProvider
from .similarity import l2_norm, sort_results, top_k
from .tokenize import normalize_whitespace, to_posix
from .types import Method, RetrievalRequest, RetrievalResponse, ScoredResult

log = logging.getLogger(__name__)


class SearchPlugin(Protocol):
    async def search(self, query: str, limit: int) -> list[ScoredResult] | None: ...


class QueryEmbedder(Protocol):
    @property
    def model_name(self) -> str: ...

    async def embed(self, text: str) -> list[float]: ...

    async def warm_up(self) -> None: ...


@dataclass(frozen=True)
class _Outcome:
    method: Method
    results: list[ScoredResult]
    encoder_label: str
    dimension: int
    pool_size: int


@dataclass(frozen=True)
class _Query:
    text: str
    anchor_path: str | None
    limit: int


def _default_embedder(config: SearchConfig) -> QueryEmbedder:
    from ..vector.embedder import SentenceTransformerBackend
    from ..vector.limiter import LimitedEmbedder

    model = config.embed_model
    return LimitedEmbedder(
        lambda: SentenceTransformerBackend(model),
        max_concurrency=config.embed_max_concurrency,
        timeout_ms=config.embed_timeout_ms,
        label=model,
    )


class SmartSearch:
    """Find notes relevant to a query or to an anchor note."""

    def __init__(
        self,
        config: SearchConfig = DEFAULT_SEARCH_CONFIG,
        *,
        plugin: SearchPlugin | None = None,
        cache: VectorCache | None = None,
        embedder: QueryEmbedder | None = None,
        corpus: CorpusSource | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.config = config
        self.plugin = plugin
        self.cache = cache
        self.embedder = embedder
        self.corpus = corpus
        self._clock = clock
        self._steps: tuple[
            tuple[Method, Callable[[_Query], Awaitable[_Outcome | None]]], ...
        ] = (
            (Method.PLUGIN, self._try_plugin),
            (Method.CACHE, self._try_cache),
            (Method.EMBED, self._try_embed),
            (Method.LEXICAL, self._try_lexical),
        )

    @classmethod
    def from_config(cls, config: SearchConfig) -> "SmartSearch":
        """Wire the default providers described by the config."""
        cache = None
        if config.smart_env_dir is not None:
            cache = VectorCache(
                SmartEnvStore(config.smart_env_dir, config.preferred_model),
                ttl_ms=config.cache_ttl_ms,
                max_items=config.cache_max_items,
            )
        return cls(
            config,
            plugin=PluginSearchProvider.from_config(config),
            cache=cache,
            embedder=_default_embedder(config) if config.query_embedding_active else None,
            corpus=VaultCorpus(config.vault_path) if config.vault_path else None,
        )

    def invalidate(self) -> None:
        """Forget cached vectors, e.g. after the vault was re-indexed."""
        if self.cache is not None:
            self.cache.invalidate()

    async def warm_up(self) -> None:
        """Start the embedding backend ahead of the first query."""
        if self.embedder is not None:
            await self.embedder.warm_up()

    async def search(self, request: RetrievalRequest) -> RetrievalResponse:
        """Try each provider in order and return the first non-empty answer.

        Raises:
            ProviderTransientFailure: when the plugin exhausted its retries
                and the config says plugin failures are fatal.
        """
        started = self._clock()
        query = _Query(
            text=normalize_whitespace(request.query),
            anchor_path=to_posix(request.anchor_path.strip())
            if request.anchor_path and request.anchor_path.strip()
            else None,
            limit=self.config.clamp_limit(request.limit),
        )

        last_method = Method.LEXICAL
        last_outcome: _Outcome | None = None

        if query.text or query.anchor_path:
            for method, step in self._steps:
                if not self.config.allows(method.value):
                    continue
                # an exhausted chain reports the last provider consulted
                last_method = method
                outcome = await step(query)
                if outcome is None:
                    continue
                last_outcome = outcome
                if outcome.results:
                    log.info(
                        f"Smart search answered by {method.value} "
                        f"({len(outcome.results)} results)"
                    )
                    break
                log.debug(f"Smart search step {method.value} found nothing")

        if last_outcome is None or last_outcome.method is not last_method:
            return self._response(started, last_method, [], "none", 0, 0)
        return self._response(
            started,
            last_outcome.method,
            sort_results(last_outcome.results)[: query.limit],
            last_outcome.encoder_label,
            last_outcome.dimension,
            last_outcome.pool_size,
        )

    def _response(
        self,
        started: float,
        method: Method,
        results: list[ScoredResult],
        encoder_label: str,
        dimension: int,
        pool_size: int,
    ) -> RetrievalResponse:
        return RetrievalResponse(
            method=method,
            results=tuple(results),
            encoder_label=encoder_label,
            dimension=dimension,
            pool_size=pool_size,
            elapsed_ms=int((self._clock() - started) * 1000),
        )

    async def _try_plugin(self, query: _Query) -> _Outcome | None:
        if self.plugin is None or not query.text:
            return None
        try:
            results = await self.plugin.search(query.text, query.limit)
        except ProviderTransientFailure as e:
            if self.config.raise_plugin_failures:
                raise
            log.warning(f"Plugin unavailable, using fallback: {e}")
            return None
        if results is None:
            return None
        return _Outcome(
            method=Method.PLUGIN,
            results=results,
            encoder_label="plugin",
            dimension=0,
            pool_size=len(results),
        )

    async def _try_cache(self, query: _Query) -> _Outcome | None:
        if self.cache is None or query.anchor_path is None:
            return None
        pool = await self.cache.vectors()
        anchor = find_note(pool, query.anchor_path)
        if anchor is None:
            log.debug(f"No stored vector for {query.anchor_path}")
            return None
        others = [entry for entry in pool if entry is not anchor]
        return _Outcome(
            method=Method.CACHE,
            results=top_k(anchor.vector, anchor.norm, others, query.limit),
            encoder_label=anchor.model or "smart-env",
            dimension=anchor.dimension,
            pool_size=len(others),
        )

    async def _try_embed(self, query: _Query) -> _Outcome | None:
        if self.embedder is None or self.cache is None or not query.text:
            return None
        pool = await self.cache.vectors()
        if not pool:
            return None
        try:
            vector = await self.embedder.embed(query.text)
        except EmbedTimeout as e:
            log.warning(f"Query embedding skipped: {e}")
            return None
        except Exception as e:
            log.warning(f"Query embedding failed, using fallback: {e!r}")
            return None
        return _Outcome(
            method=Method.EMBED,
            results=top_k(vector, l2_norm(vector), pool, query.limit),
            encoder_label=self.embedder.model_name,
            dimension=len(vector),
            pool_size=len(pool),
        )

    async def _try_lexical(self, query: _Query) -> _Outcome | None:
        if self.corpus is None:
            return None
        documents = await asyncio.to_thread(self.corpus.documents)
        index = TfIdfIndex(documents)
        text = query.text or query.anchor_path or ""
        results = [
            result
            for result in index.search(text)
            if result.score > 0 and result.path != query.anchor_path
        ]
        return _Outcome(
            method=Method.LEXICAL,
            results=results,
            encoder_label="tfidf",
            dimension=index.vocabulary_size,
            pool_size=len(index),
        )
