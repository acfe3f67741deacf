"""Smart Search MCP Server.

Exposes vault note retrieval as MCP tools.
"""

import asyncio
import logging

from mcp.server.fastmcp import FastMCP

from ..retrieval.aggregator import SmartSearch
from ..retrieval.config import SearchConfig
from ..retrieval.errors import SmartSearchError
from ..retrieval.types import RetrievalRequest

log = logging.getLogger(__name__)

mcp = FastMCP(
    "Smart Search",
    instructions="""
Find notes in the Obsidian vault.

Pass `query` for a text search or `from_path` to list notes related to an
existing note. The response says which method answered
(plugin, cache, embed or lexical).
""",
)

engine: SmartSearch | None = None


def init_server(config: SearchConfig | None = None) -> SmartSearch:
    """Initialize the search engine used by the tools."""
    global engine
    engine = SmartSearch.from_config(config or SearchConfig.from_env())
    return engine


def _require_engine() -> SmartSearch:
    """Get engine or raise error."""
    if engine is None:
        raise RuntimeError("Server not initialized. Call init_server() first.")
    return engine


@mcp.tool()
async def smart_search(query: str = "", from_path: str = "", limit: int = 10) -> dict:
    """Search notes by text or find neighbours of a note.

    Args:
        query: Natural language query
        from_path: Vault path of a note to find related notes for
        limit: Maximum number of results (1-50)

    Returns:
        Dict with method, results [{path, score, preview?}], encoder_label,
        dimension, pool_size, elapsed_ms
    """
    search_engine = _require_engine()
    request = RetrievalRequest(
        query=query,
        anchor_path=from_path or None,
        limit=limit,
    )
    try:
        response = await search_engine.search(request)
    except SmartSearchError as e:
        log.warning(f"smart_search failed: {e}")
        return {"success": False, "error": str(e), "method": None, "results": []}
    return {"success": True, **response.to_dict()}


@mcp.tool()
def refresh_vectors() -> dict:
    """Drop cached note vectors so the next search reloads the vector store.

    Call this after the vault was re-indexed.
    """
    search_engine = _require_engine()
    search_engine.invalidate()
    return {"success": True, "cache": search_engine.cache is not None}


async def serve(transport: str = "stdio") -> None:
    """Warm up the embedder in the background and serve MCP requests."""
    search_engine = _require_engine()
    warmup = asyncio.ensure_future(search_engine.warm_up())
    try:
        if transport == "stdio":
            await mcp.run_stdio_async()
        else:
            await mcp.run_sse_async()
    finally:
        warmup.cancel()


def main():
    """Run the MCP server (stdio transport)."""
    init_server(SearchConfig.from_env())
    asyncio.run(serve("stdio"))


if __name__ == "__main__":
    main()
