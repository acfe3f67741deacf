"""Client for the Obsidian plugin's smart search endpoint.

The endpoint is hosted by a sibling service and treated as unreliable:
each attempt has its own deadline, server and transport errors are retried
a bounded number of times, and auth/not-found answers end the search
without retrying.
"""

import asyncio
import logging
import math
from typing import Any

import httpx

from .config import SearchConfig
from .errors import ProviderPermanentFailure, ProviderTransientFailure
from .tokenize import to_posix
from .types import ScoredResult

log = logging.getLogger(__name__)

SEARCH_ENDPOINT = "/search/smart"
PERMANENT_STATUSES = frozenset({401, 403, 404})

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}


def create_async_client(
    base_url: str,
    api_key: str,
    *,
    timeout: float,
    verify: bool = True,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Async HTTP client with bearer auth and JSON headers."""
    headers = dict(DEFAULT_HEADERS)
    headers["Authorization"] = f"Bearer {api_key}"
    return httpx.AsyncClient(
        base_url=base_url.rstrip("/"),
        headers=headers,
        timeout=timeout,
        verify=verify,
        transport=transport,
    )


def _score(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return float(value) if math.isfinite(value) else 0.0


def parse_results(body: Any) -> list[ScoredResult]:
    """Normalize either ``{"results": [...]}`` or a bare list of hits."""
    if isinstance(body, dict) and isinstance(body.get("results"), list):
        raw = body["results"]
    elif isinstance(body, list):
        raw = body
    else:
        raw = []

    results: list[ScoredResult] = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        path = entry.get("path")
        if not isinstance(path, str) or not path.strip():
            continue
        preview = entry.get("preview")
        results.append(
            ScoredResult(
                path=to_posix(path),
                score=_score(entry.get("score")),
                preview=preview if isinstance(preview, str) else None,
            )
        )
    return results


class PluginSearchProvider:
    """Search notes through the plugin's HTTP API."""

    def __init__(
        self,
        base_url: str | None,
        api_key: str | None,
        *,
        timeout_ms: int = 15_000,
        retries: int = 2,
        verify_ssl: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url
        self.api_key = api_key
        self.timeout_ms = timeout_ms
        self.retries = max(0, retries)
        self.verify_ssl = verify_ssl
        self._transport = transport

    @classmethod
    def from_config(
        cls,
        config: SearchConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "PluginSearchProvider":
        return cls(
            config.plugin_base_url,
            config.plugin_api_key,
            timeout_ms=config.plugin_timeout_ms,
            retries=config.plugin_retries,
            verify_ssl=config.plugin_verify_ssl,
            transport=transport,
        )

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.api_key)

    async def search(self, query: str, limit: int) -> list[ScoredResult] | None:
        """Run a search against the plugin.

        Returns:
            Results, or None when the plugin is not configured or answered
            with a permanent/soft negative status.

        Raises:
            ProviderTransientFailure: when every attempt hit a 5xx, a
                timeout or a transport error.
        """
        if not self.configured:
            return None

        payload = {"query": query, "limit": limit}
        attempts = self.retries + 1
        last_error: Exception | None = None
        last_status: int | None = None

        async with create_async_client(
            self.base_url,
            self.api_key,
            timeout=self.timeout_ms / 1000,
            verify=self.verify_ssl,
            transport=self._transport,
        ) as client:
            for attempt in range(1, attempts + 1):
                try:
                    return await self._attempt(client, payload)
                except ProviderPermanentFailure as e:
                    log.info(f"Plugin search unavailable: {e}")
                    return None
                except ProviderTransientFailure as e:
                    last_error, last_status = e, e.status_code
                except (httpx.TransportError, asyncio.TimeoutError) as e:
                    last_error, last_status = e, None
                log.warning(
                    f"Plugin search attempt {attempt}/{attempts} failed: "
                    f"{last_error!r}"
                )

        raise ProviderTransientFailure(
            f"Plugin search failed after {attempts} attempts: {last_error!r}",
            attempts=attempts,
            status_code=last_status,
        ) from last_error

    async def _attempt(
        self, client: httpx.AsyncClient, payload: dict[str, Any]
    ) -> list[ScoredResult] | None:
        response = await asyncio.wait_for(
            client.post(SEARCH_ENDPOINT, json=payload),
            timeout=self.timeout_ms / 1000,
        )
        status = response.status_code

        if status in PERMANENT_STATUSES:
            raise ProviderPermanentFailure(f"HTTP {status}", status_code=status)
        if 500 <= status < 600:
            raise ProviderTransientFailure(f"HTTP {status}", status_code=status)
        if not response.is_success:
            log.info(f"Plugin search returned HTTP {status}, treating as unavailable")
            return None

        try:
            body = response.json()
        except ValueError:
            body = {}
        return parse_results(body)
