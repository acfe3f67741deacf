"""Tests for the smart search fallback chain."""

import asyncio
import json

import httpx
import pytest

from smart_search.retrieval.aggregator import SmartSearch
from smart_search.retrieval.config import SearchConfig
from smart_search.retrieval.corpus import StaticCorpus
from smart_search.retrieval.errors import EmbedTimeout, ProviderTransientFailure
from smart_search.retrieval.plugin import PluginSearchProvider
from smart_search.retrieval.types import (
    Method,
    NoteVector,
    RetrievalRequest,
    ScoredResult,
)
from smart_search.vector.cache import VectorCache
from smart_search.vector.store import SmartEnvStore

CORPUS = StaticCorpus(
    {
        "garden.md": "Tomatoes and basil grow well in the summer garden",
        "mcp.md": "The MCP server exposes tools over stdio transport",
        "travel.md": "Packing list for a winter trip to the mountains",
    }
)


class _FakePlugin:
    def __init__(self, results=None, error=None):
        self.results = results
        self.error = error
        self.calls = []

    async def search(self, query, limit):
        self.calls.append((query, limit))
        if self.error is not None:
            raise self.error
        return self.results


class _UntouchableCache:
    """Cache that fails the test if anything reads it."""

    def invalidate(self):
        raise AssertionError("cache should not be consulted")

    async def vectors(self):
        raise AssertionError("cache should not be consulted")

    async def query(self, anchor, k):
        raise AssertionError("cache should not be consulted")


class _SingleReadCache:
    """Cache that serves its pool once and refuses a second ranking pass."""

    def __init__(self, pool):
        self.pool = pool
        self.reads = 0

    def invalidate(self):
        pass

    async def vectors(self):
        self.reads += 1
        return self.pool

    async def query(self, anchor, k):
        raise AssertionError("pool should be ranked from the first read")


class _StaticLoader:
    def __init__(self, vectors):
        self.vectors = vectors

    def load_all(self):
        return list(self.vectors)


class _FakeEmbedder:
    model_name = "fake-encoder"

    def __init__(self, vector=None, error=None):
        self.vector = vector
        self.error = error
        self.texts = []
        self.warmed = False

    async def embed(self, text):
        self.texts.append(text)
        if self.error is not None:
            raise self.error
        return list(self.vector)

    async def warm_up(self):
        self.warmed = True


def _vector_cache():
    return VectorCache(
        _StaticLoader(
            [
                NoteVector("notes/a.md", (1.0, 0.0, 0.0), 1.0, model="bge"),
                NoteVector("notes/b.md", (0.8, 0.6, 0.0), 1.0, model="bge"),
                NoteVector("notes/c.md", (0.0, 0.0, 1.0), 1.0, model="bge"),
            ]
        )
    )


def _search(engine, query="", anchor_path=None, limit=10):
    return asyncio.run(
        engine.search(
            RetrievalRequest(query=query, anchor_path=anchor_path, limit=limit)
        )
    )


class TestEndToEnd:
    """Scenarios covering one provider each."""

    def test_lexical_answers_without_plugin_or_vectors(self):
        engine = SmartSearch.from_config(SearchConfig())
        engine.corpus = CORPUS

        response = _search(engine, "The MCP server exposes tools over stdio transport")

        assert response.method is Method.LEXICAL
        assert response.results[0].path == "mcp.md"
        assert response.results[0].score == pytest.approx(1.0)
        assert response.encoder_label == "tfidf"
        assert response.pool_size == 3

    def test_plugin_answer_skips_cache(self):
        async def handler(request):
            return httpx.Response(200, json={"results": [{"path": "a.md", "score": 0.9}]})

        plugin = PluginSearchProvider(
            "http://vault.local", "key", transport=httpx.MockTransport(handler)
        )
        engine = SmartSearch(plugin=plugin, cache=_UntouchableCache(), corpus=CORPUS)

        response = _search(engine, "anything", anchor_path="notes/a.md")

        assert response.method is Method.PLUGIN
        assert [r.to_dict() for r in response.results] == [{"path": "a.md", "score": 0.9}]

    def test_vector_store_with_corrupt_file(self, tmp_path):
        (tmp_path / "multi").mkdir()
        (tmp_path / "multi" / "x.md.json").write_text(
            json.dumps({"path": "x.md", "embeddings": {"m": {"vec": [1, 0, 0]}}})
        )
        (tmp_path / "multi" / "y.md.json").write_text("{broken")
        cache = VectorCache(SmartEnvStore(tmp_path))

        async def run():
            return await cache.vectors(), await cache.query([1.0, 0.0, 0.0], 5)

        vectors, results = asyncio.run(run())

        assert len(vectors) == 1
        assert results[0].path == "x.md"
        assert results[0].score == pytest.approx(1.0)


class TestFallbackOrder:
    """Tests for provider hand-over."""

    def test_unconfigured_plugin_falls_through_to_cache(self):
        engine = SmartSearch(plugin=_FakePlugin(results=None), cache=_vector_cache())

        response = _search(engine, "query", anchor_path="notes/a.md")

        assert response.method is Method.CACHE
        assert [r.path for r in response.results] == ["notes/b.md", "notes/c.md"]
        assert response.results[0].score == pytest.approx(0.8)
        assert response.encoder_label == "bge"
        assert response.dimension == 3
        assert response.pool_size == 2

    def test_anchor_is_matched_by_suffix(self):
        engine = SmartSearch(cache=_vector_cache())

        response = _search(engine, anchor_path="a.md")

        assert response.method is Method.CACHE
        assert "notes/a.md" not in [r.path for r in response.results]

    def test_empty_plugin_answer_falls_through(self):
        plugin = _FakePlugin(results=[])
        engine = SmartSearch(plugin=plugin, corpus=CORPUS)

        response = _search(engine, "winter mountains")

        assert response.method is Method.LEXICAL
        assert response.results[0].path == "travel.md"
        assert len(plugin.calls) == 1

    def test_unknown_anchor_uses_embedding(self):
        embedder = _FakeEmbedder(vector=[0.0, 0.0, 1.0])
        engine = SmartSearch(cache=_vector_cache(), embedder=embedder)

        response = _search(engine, "deep space", anchor_path="missing.md")

        assert response.method is Method.EMBED
        assert response.results[0].path == "notes/c.md"
        assert response.encoder_label == "fake-encoder"
        assert response.pool_size == 3
        assert embedder.texts == ["deep space"]

    def test_embedding_ranks_the_pool_it_read(self):
        pool = (
            NoteVector("x.md", (1.0, 0.0), 1.0),
            NoteVector("y.md", (0.0, 1.0), 1.0),
        )
        cache = _SingleReadCache(pool)
        engine = SmartSearch(cache=cache, embedder=_FakeEmbedder(vector=[0.0, 2.0]))

        response = _search(engine, "query")

        assert response.method is Method.EMBED
        assert [r.path for r in response.results] == ["y.md", "x.md"]
        assert response.results[0].score == pytest.approx(1.0)
        assert response.pool_size == 2
        assert cache.reads == 1

    @pytest.mark.parametrize("error", [EmbedTimeout(20), RuntimeError("boom")])
    def test_embedding_failure_falls_back_to_lexical(self, error):
        engine = SmartSearch(
            cache=_vector_cache(),
            embedder=_FakeEmbedder(error=error),
            corpus=CORPUS,
        )

        response = _search(engine, "summer garden")

        assert response.method is Method.LEXICAL
        assert response.results[0].path == "garden.md"

    def test_lexical_excludes_anchor_and_zero_scores(self):
        engine = SmartSearch(corpus=CORPUS)

        response = _search(engine, "winter mountains", anchor_path="travel.md")

        assert response.method is Method.LEXICAL
        assert response.results == ()

    def test_limit_is_applied(self):
        engine = SmartSearch(cache=_vector_cache())

        response = _search(engine, anchor_path="notes/a.md", limit=1)

        assert [r.path for r in response.results] == ["notes/b.md"]

    def test_plugin_results_are_sorted_and_truncated(self):
        plugin = _FakePlugin(
            results=[
                ScoredResult("low.md", 0.1),
                ScoredResult("high.md", 0.9),
                ScoredResult("mid.md", 0.5),
            ]
        )
        engine = SmartSearch(plugin=plugin)

        response = _search(engine, "q", limit=2)

        assert [r.path for r in response.results] == ["high.md", "mid.md"]
        assert plugin.calls == [("q", 2)]


class TestPluginFailurePolicy:
    """Tests for exhausted plugin retries."""

    def test_transient_failure_continues_by_default(self):
        plugin = _FakePlugin(error=ProviderTransientFailure("down", attempts=3))
        engine = SmartSearch(plugin=plugin, corpus=CORPUS)

        response = _search(engine, "summer garden")

        assert response.method is Method.LEXICAL

    def test_transient_failure_is_fatal_when_configured(self):
        plugin = _FakePlugin(error=ProviderTransientFailure("down", attempts=3))
        engine = SmartSearch(
            SearchConfig(plugin_failure_fatal=True), plugin=plugin, corpus=CORPUS
        )

        with pytest.raises(ProviderTransientFailure):
            _search(engine, "summer garden")


class TestModes:
    """Tests for restricting the provider chain."""

    def test_lexical_mode_skips_plugin(self):
        plugin = _FakePlugin(results=[ScoredResult("a.md", 1.0)])
        engine = SmartSearch(SearchConfig(mode="lexical"), plugin=plugin, corpus=CORPUS)

        response = _search(engine, "summer garden")

        assert response.method is Method.LEXICAL
        assert plugin.calls == []

    def test_plugin_mode_reports_unavailable_plugin(self):
        engine = SmartSearch(
            SearchConfig(mode="plugin"), plugin=_FakePlugin(results=None), corpus=CORPUS
        )

        response = _search(engine, "summer garden")

        assert response.method is Method.PLUGIN
        assert response.encoder_label == "none"
        assert response.results == ()

    def test_files_mode_reports_last_step_consulted(self):
        engine = SmartSearch(SearchConfig(mode="files"), cache=_vector_cache())

        response = _search(engine, "summer garden")

        assert response.method is Method.LEXICAL
        assert response.results == ()

    def test_plugin_mode_reports_empty_plugin_answer(self):
        engine = SmartSearch(
            SearchConfig(mode="plugin"), plugin=_FakePlugin(results=[]), corpus=CORPUS
        )

        response = _search(engine, "summer garden")

        assert response.method is Method.PLUGIN
        assert response.results == ()


class TestEngineLifecycle:
    """Tests for request edge cases and engine hooks."""

    def test_empty_request_returns_nothing(self):
        plugin = _FakePlugin(results=[ScoredResult("a.md", 1.0)])
        engine = SmartSearch(plugin=plugin, corpus=CORPUS)

        response = _search(engine, "   ")

        assert response.results == ()
        assert response.encoder_label == "none"
        assert plugin.calls == []

    def test_invalidate_and_warm_up(self):
        cache = _vector_cache()
        embedder = _FakeEmbedder(vector=[1.0, 0.0, 0.0])
        engine = SmartSearch(cache=cache, embedder=embedder)

        asyncio.run(cache.vectors())
        engine.invalidate()
        asyncio.run(engine.warm_up())

        assert cache.snapshot is None
        assert embedder.warmed is True

    def test_response_serializes_to_plain_dict(self):
        engine = SmartSearch(cache=_vector_cache())

        payload = _search(engine, anchor_path="notes/a.md", limit=1).to_dict()

        assert payload["method"] == "cache"
        assert payload["results"] == [{"path": "notes/b.md", "score": pytest.approx(0.8)}]
        assert set(payload) == {
            "method",
            "results",
            "encoder_label",
            "dimension",
            "pool_size",
            "elapsed_ms",
        }
