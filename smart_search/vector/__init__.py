"""Vector store loading, caching and query embedding."""

from typing import Any

__all__ = ["LimitedEmbedder", "SmartEnvStore", "VectorCache"]


def __getattr__(name: str) -> Any:
    if name == "VectorCache":
        from .cache import VectorCache

        return VectorCache
    if name == "LimitedEmbedder":
        from .limiter import LimitedEmbedder

        return LimitedEmbedder
    if name == "SmartEnvStore":
        from .store import SmartEnvStore

        return SmartEnvStore
    raise AttributeError(name)
