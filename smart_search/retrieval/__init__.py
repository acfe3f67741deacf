"""Smart search: plugin, vector cache, query embedding and TF-IDF fallback."""

from typing import Any

__all__ = ["SmartSearch", "smart_search"]


def __getattr__(name: str) -> Any:
    if name == "SmartSearch":
        from .aggregator import SmartSearch

        return SmartSearch
    raise AttributeError(name)


async def smart_search(
    query: str = "",
    *,
    anchor_path: str | None = None,
    limit: int = 10,
    engine: Any = None,
) -> dict:
    """Run a search with env-derived defaults and return a plain dict."""
    from .aggregator import SmartSearch
    from .config import SearchConfig
    from .types import RetrievalRequest

    search_engine = engine or SmartSearch.from_config(SearchConfig.from_env())
    response = await search_engine.search(
        RetrievalRequest(query=query, anchor_path=anchor_path, limit=limit)
    )
    return response.to_dict()
