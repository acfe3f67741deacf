"""CLI for smart-search."""

import asyncio
import json
import logging
from pathlib import Path

import click

from .retrieval import smart_search
from .retrieval.config import SearchConfig
from .retrieval.errors import SmartSearchError
from .vector.store import SmartEnvStore


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool):
    """Smart Search - find related notes in your vault."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _print_response(payload: dict, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps(payload, indent=2))
        return

    click.echo(
        f"Method: {payload['method']} (encoder={payload['encoder_label']}, "
        f"dim={payload['dimension']}, pool={payload['pool_size']}, "
        f"{payload['elapsed_ms']}ms)"
    )
    results = payload["results"]
    click.echo(f"\nFound {len(results)} results:\n")
    for i, r in enumerate(results, 1):
        click.echo(f"{i}. [{r['score']:.3f}] {r['path']}")
        if r.get("preview"):
            click.echo(f"   {r['preview'][:200]}")


def _run(query: str, anchor_path: str | None, limit: int, as_json: bool) -> None:
    try:
        payload = asyncio.run(smart_search(query, anchor_path=anchor_path, limit=limit))
    except SmartSearchError as e:
        raise click.ClickException(str(e)) from e
    _print_response(payload, as_json)


@cli.command()
@click.argument("query", type=str)
@click.option("--from-path", "from_path", default=None, help="Anchor note path")
@click.option("--limit", "-n", type=int, default=10, help="Number of results")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def search(query: str, from_path: str | None, limit: int, as_json: bool):
    """Search the vault for notes relevant to QUERY."""
    _run(query, from_path, limit, as_json)


@cli.command()
@click.argument("path", type=str)
@click.option("--limit", "-n", type=int, default=10, help="Number of results")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def neighbors(path: str, limit: int, as_json: bool):
    """List notes closest to the note at PATH."""
    _run("", path, limit, as_json)


@cli.command()
@click.option(
    "--root",
    type=click.Path(path_type=Path),
    default=None,
    help="Vector store directory (defaults to SMART_ENV_DIR)",
)
@click.option("--sample", type=int, default=3, help="How many entries to show")
def vectors(root: Path | None, sample: int):
    """Inspect the Smart Connections vector store."""
    config = SearchConfig.from_env()
    root = root or config.smart_env_dir
    if root is None:
        raise click.ClickException("No vector store: pass --root or set SMART_ENV_DIR")

    loaded = SmartEnvStore(root, config.preferred_model).load_all()
    click.echo(f"Vectors: {len(loaded)}")
    models = sorted({v.model for v in loaded if v.model})
    if models:
        click.echo(f"Models:  {', '.join(models)}")
    for v in loaded[:sample]:
        click.echo(f"  - {v.path} (dim={v.dimension})")


@cli.command("mcp-server")
@click.option(
    "--transport",
    type=click.Choice(["stdio", "sse"]),
    default="stdio",
    help="MCP transport type",
)
def mcp_server(transport: str):
    """Run the smart search MCP server."""
    from .mcp.server import init_server, serve

    init_server(SearchConfig.from_env())

    click.echo(f"Starting MCP server ({transport} transport)...", err=True)
    asyncio.run(serve(transport))


if __name__ == "__main__":
    cli()
