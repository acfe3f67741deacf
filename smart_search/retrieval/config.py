"""Configuration for smart search providers."""

from dataclasses import dataclass
import math
import os
from pathlib import Path
from typing import Mapping

MODES = ("auto", "plugin", "files", "lexical")
EMBED_BACKENDS = ("sentence-transformers", "none")

DEFAULT_EMBED_MODEL = "TaylorAI/bge-micro-v2"


def _str_env(environ: Mapping[str, str], name: str) -> str | None:
    raw = environ.get(name)
    if raw is None:
        return None
    value = raw.strip()
    return value or None


def _bool_env(environ: Mapping[str, str], name: str, default: bool) -> bool:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() not in {"0", "false", "off", "no"}


def _int_env(
    environ: Mapping[str, str],
    name: str,
    default: int,
    *,
    minimum: int = 0,
) -> int:
    """Read an integer, falling back to default on junk or out-of-range input."""
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    if not math.isfinite(value) or value < minimum:
        return default
    return int(value)


def _optional_int_env(environ: Mapping[str, str], name: str) -> int | None:
    value = _int_env(environ, name, -1, minimum=1)
    return None if value < 0 else value


@dataclass(frozen=True)
class SearchConfig:
    """Settings controlling provider order, budgets and endpoints."""

    mode: str = "auto"

    smart_env_dir: Path | None = None
    cache_ttl_ms: int = 60_000
    cache_max_items: int | None = None
    preferred_model: str | None = None

    plugin_base_url: str | None = None
    plugin_api_key: str | None = None
    plugin_verify_ssl: bool = True
    plugin_timeout_ms: int = 15_000
    plugin_retries: int = 2
    plugin_failure_fatal: bool = False

    embed_enabled: bool = False
    embed_backend: str = "sentence-transformers"
    embed_model: str = DEFAULT_EMBED_MODEL
    embed_max_concurrency: int = 1
    embed_timeout_ms: int = 20_000

    vault_path: Path | None = None

    default_limit: int = 10
    max_limit: int = 50

    def __post_init__(self):
        if self.mode not in MODES:
            raise ValueError(f"Unknown search mode {self.mode!r}, expected one of {MODES}")
        if self.embed_backend not in EMBED_BACKENDS:
            raise ValueError(
                f"Unknown query embedder {self.embed_backend!r}, "
                f"expected one of {EMBED_BACKENDS}"
            )
        if self.embed_max_concurrency < 1:
            raise ValueError("embed_max_concurrency must be at least 1")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "SearchConfig":
        """Build config from environment-style key/value pairs."""
        env = os.environ if environ is None else environ

        smart_env_dir = _str_env(env, "SMART_ENV_DIR")
        vault_path = _str_env(env, "OBSIDIAN_VAULT_PATH")

        return cls(
            mode=(_str_env(env, "SMART_SEARCH_MODE") or "auto").lower(),
            smart_env_dir=Path(smart_env_dir) if smart_env_dir else None,
            cache_ttl_ms=_int_env(env, "SMART_ENV_CACHE_TTL_MS", 60_000),
            cache_max_items=_optional_int_env(env, "SMART_ENV_CACHE_MAX"),
            preferred_model=_str_env(env, "SMART_ENV_MODEL"),
            plugin_base_url=_str_env(env, "OBSIDIAN_BASE_URL"),
            plugin_api_key=_str_env(env, "OBSIDIAN_API_KEY"),
            plugin_verify_ssl=_bool_env(env, "OBSIDIAN_VERIFY_SSL", True),
            plugin_timeout_ms=_int_env(env, "PLUGIN_TIMEOUT_MS", 15_000, minimum=1),
            plugin_retries=_int_env(env, "PLUGIN_RETRIES", 2),
            plugin_failure_fatal=_bool_env(env, "PLUGIN_FAILURE_FATAL", False),
            embed_enabled=_bool_env(env, "ENABLE_QUERY_EMBEDDING", False),
            embed_backend=(
                _str_env(env, "QUERY_EMBEDDER") or "sentence-transformers"
            ).lower(),
            embed_model=_str_env(env, "QUERY_EMBED_MODEL") or DEFAULT_EMBED_MODEL,
            embed_max_concurrency=_int_env(
                env, "EMBED_MAX_CONCURRENCY", 1, minimum=1
            ),
            embed_timeout_ms=_int_env(env, "EMBED_TIMEOUT_MS", 20_000, minimum=1),
            vault_path=Path(vault_path) if vault_path else None,
        )

    @property
    def plugin_configured(self) -> bool:
        return bool(self.plugin_base_url and self.plugin_api_key)

    @property
    def query_embedding_active(self) -> bool:
        return self.embed_enabled and self.embed_backend != "none"

    @property
    def raise_plugin_failures(self) -> bool:
        """Exhausted plugin retries fail the query instead of falling through."""
        return self.plugin_failure_fatal or self.mode == "plugin"

    def allows(self, step: str) -> bool:
        """Whether the given provider step takes part in this mode."""
        if self.mode == "auto":
            return True
        if self.mode == "plugin":
            return step == "plugin"
        if self.mode == "files":
            return step in {"cache", "embed", "lexical"}
        return step == "lexical"

    def clamp_limit(self, limit: int | None) -> int:
        """Clamp a requested result count to the supported range."""
        if limit is None:
            return self.default_limit
        if limit < 1:
            return 1
        if limit > self.max_limit:
            return self.max_limit
        return limit


DEFAULT_SEARCH_CONFIG = SearchConfig()
