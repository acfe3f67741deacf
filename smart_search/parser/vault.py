"""Vault traversal."""

import logging
from pathlib import Path
from typing import Iterator

from .markdown import ParsedNote, parse_note

log = logging.getLogger(__name__)


# Folders to exclude from indexing
DEFAULT_EXCLUDED = {
    ".obsidian",
    ".git",
    ".trash",
    "Templates",
    ".smart-env",
    ".smart-connections",
}


def iter_notes(
    vault_path: Path,
    excluded: set[str] | None = None,
) -> Iterator[Path]:
    """Iterate over all markdown files in a vault, in sorted order.

    Args:
        vault_path: Path to the Obsidian vault root
        excluded: Set of folder names to skip (defaults to DEFAULT_EXCLUDED)

    Yields:
        Path objects for each .md file
    """
    if excluded is None:
        excluded = DEFAULT_EXCLUDED

    for path in sorted(vault_path.rglob("*.md")):
        relative_parts = path.relative_to(vault_path).parts
        if any(part in excluded for part in relative_parts):
            continue
        yield path


def parse_vault(
    vault_path: Path,
    excluded: set[str] | None = None,
) -> Iterator[ParsedNote]:
    """Parse all notes in a vault.

    Args:
        vault_path: Path to the Obsidian vault root
        excluded: Set of folder names to skip

    Yields:
        ParsedNote objects for each note
    """
    vault_path = Path(vault_path)

    for path in iter_notes(vault_path, excluded):
        try:
            yield parse_note(path, vault_root=vault_path)
        except (OSError, UnicodeDecodeError) as e:
            log.warning(f"Failed to parse {path}: {e}")
            continue
