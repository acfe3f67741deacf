"""Corpus sources feeding the lexical index."""

from pathlib import Path
from typing import Mapping, Protocol

from ..parser.vault import parse_vault
from .types import Document


class CorpusSource(Protocol):
    def documents(self) -> list[Document]: ...


class VaultCorpus:
    """Markdown notes read from a vault directory on disk."""

    def __init__(self, vault_path: Path | str, excluded: set[str] | None = None):
        self.vault_path = Path(vault_path)
        self.excluded = excluded

    def documents(self) -> list[Document]:
        if not self.vault_path.is_dir():
            return []
        return [
            Document(path=note.relative_path, text=note.search_text)
            for note in parse_vault(self.vault_path, self.excluded)
        ]


class StaticCorpus:
    """Fixed in-memory corpus, keyed by note path."""

    def __init__(self, texts: Mapping[str, str]):
        self._documents = [Document(path=path, text=text) for path, text in texts.items()]

    def documents(self) -> list[Document]:
        return list(self._documents)
