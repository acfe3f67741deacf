"""Deterministic tokenization helpers."""

import re

_SPLIT_RE = re.compile(r"\W+")
_WS_RE = re.compile(r"\s+")


def normalize_whitespace(text: str | None) -> str:
    """Collapse whitespace to single spaces."""
    if text is None:
        return ""
    return _WS_RE.sub(" ", text.replace("\n", " ").replace("\t", " ")).strip()


def tokenize(text: str | None) -> list[str]:
    """Lower-case text and split it on runs of non-word characters."""
    if not text:
        return []
    return [token for token in _SPLIT_RE.split(text.lower()) if token]


def to_posix(path: str) -> str:
    """Normalize a vault path to forward-slash separators."""
    return path.replace("\\", "/")
