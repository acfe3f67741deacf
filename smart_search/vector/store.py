"""Read-only loader for the Smart Connections vector store (``.smart-env``).

The external indexer writes one file per note under ``<root>/multi/``. A file
is either a single JSON record or an AJSON collection: a sequence of
``"key": {record},`` lines where later keys override earlier ones and a
``null`` value deletes the key. A record carries its vectors in a mapping
keyed by embedding model id::

    {"path": "Folder/Note.md",
     "embeddings": {"TaylorAI/bge-micro-v2": {"vec": [0.01, ...]}}}
"""

import json
import logging
import math
from pathlib import Path
from typing import Any

from ..retrieval.errors import MalformedRecord
from ..retrieval.similarity import l2_norm
from ..retrieval.tokenize import to_posix
from ..retrieval.types import NoteVector

log = logging.getLogger(__name__)

RECORD_SUBDIR = "multi"
RECORD_SUFFIXES = (".ajson", ".json")
PATH_FIELDS = ("path", "notePath", "filePath")
SOURCE_PREFIX = "smart_sources:"
BLOCK_PREFIX = "smart_blocks:"


def strip_record_suffix(name: str) -> str:
    """``Folder_Note.md.ajson`` -> ``Folder_Note.md``."""
    for suffix in RECORD_SUFFIXES:
        if name.endswith(suffix):
            return name[: -len(suffix)]
    return name


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def parse_ajson(text: str) -> dict[str, Any]:
    """Parse an AJSON collection (or a plain JSON object) into a dict.

    Lines that fail to parse are skipped. Raises ``ValueError`` when the
    text holds nothing parseable.
    """
    stripped = text.strip()
    if not stripped:
        return {}
    if stripped.startswith("{"):
        parsed = json.loads(stripped)
        if not isinstance(parsed, dict):
            raise ValueError("top-level JSON value is not an object")
        return parsed

    collection: dict[str, Any] = {}
    parsed_lines = 0
    for number, line in enumerate(stripped.splitlines(), 1):
        line = line.strip().rstrip(",")
        if not line:
            continue
        try:
            pair = json.loads("{" + line + "}")
        except ValueError as e:
            log.debug(f"Ignoring unparseable AJSON line {number}: {e}")
            continue
        parsed_lines += 1
        for key, value in pair.items():
            if value is None:
                collection.pop(key, None)
            else:
                collection[key] = value

    if not parsed_lines:
        raise ValueError("no parseable AJSON lines")
    return collection


def _is_record(payload: dict[str, Any]) -> bool:
    return "embeddings" in payload


class SmartEnvStore:
    """Load per-note vectors from a ``.smart-env`` directory."""

    def __init__(self, root: Path | str, preferred_model: str | None = None):
        self.root = Path(root)
        self.preferred_model = preferred_model

    @property
    def records_dir(self) -> Path:
        return self.root / RECORD_SUBDIR

    def iter_record_files(self) -> list[Path]:
        """Record files in deterministic (sorted) order."""
        directory = self.records_dir
        try:
            candidates = sorted(directory.rglob("*"))
        except OSError as e:
            log.warning(f"Cannot list vector store {directory}: {e}")
            return []
        return [
            path
            for path in candidates
            if path.name.endswith(RECORD_SUFFIXES) and path.is_file()
        ]

    def load_all(self) -> list[NoteVector]:
        """Load every usable vector; malformed files are logged and skipped."""
        if not self.records_dir.is_dir():
            log.debug(f"No vector store at {self.records_dir}")
            return []

        vectors: list[NoteVector] = []
        skipped = 0
        for path in self.iter_record_files():
            try:
                vectors.extend(self.parse_file(path))
            except MalformedRecord as e:
                skipped += 1
                log.warning(f"Skipping vector store file: {e}")

        log.info(
            f"Loaded {len(vectors)} note vectors from {self.records_dir}"
            f" ({skipped} files skipped)"
        )
        return vectors

    def parse_file(self, path: Path) -> list[NoteVector]:
        """Parse one record file into note vectors.

        Raises:
            MalformedRecord: if the file cannot be read or parsed, or holds a
                single record without a usable vector.
        """
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise MalformedRecord(path, f"unreadable ({e})") from e

        try:
            payload = parse_ajson(text)
        except ValueError as e:
            raise MalformedRecord(path, f"invalid JSON ({e})") from e

        fallback_path = strip_record_suffix(path.name)

        if _is_record(payload):
            return [self._note_vector(path, payload, fallback_path)]

        vectors: list[NoteVector] = []
        for key, record in payload.items():
            if key.startswith(BLOCK_PREFIX):
                continue
            if not isinstance(record, dict) or not _is_record(record):
                continue
            note_path = key[len(SOURCE_PREFIX) :] if key.startswith(SOURCE_PREFIX) else key
            try:
                vectors.append(self._note_vector(path, record, note_path or fallback_path))
            except MalformedRecord as e:
                log.warning(f"Skipping vector store entry {key!r}: {e}")

        if not vectors:
            raise MalformedRecord(path, "no usable embedding records")
        return vectors

    def select_model(self, embeddings: dict[str, Any]) -> str | None:
        """Preferred model when the record has it, else the first key in file order."""
        if self.preferred_model and self.preferred_model in embeddings:
            return self.preferred_model
        for model in embeddings:
            return model
        return None

    def _note_vector(
        self, path: Path, record: dict[str, Any], fallback_path: str
    ) -> NoteVector:
        embeddings = record.get("embeddings")
        if not isinstance(embeddings, dict):
            raise MalformedRecord(path, "embeddings is not a mapping")

        model = self.select_model(embeddings)
        if model is None:
            raise MalformedRecord(path, "no embedding models")

        entry = embeddings[model]
        vec = entry.get("vec") if isinstance(entry, dict) else None
        if not isinstance(vec, list) or not vec or not all(_is_number(v) for v in vec):
            raise MalformedRecord(path, f"model {model!r} has no numeric vec")

        note_path = fallback_path
        for field_name in PATH_FIELDS:
            value = record.get(field_name)
            if isinstance(value, str) and value.strip():
                note_path = value.strip()
                break

        vector = tuple(float(v) for v in vec)
        return NoteVector(
            path=to_posix(note_path),
            vector=vector,
            norm=l2_norm(vector),
            model=model,
        )
