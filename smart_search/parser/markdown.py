"""Markdown parser for Obsidian notes."""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass
class ParsedNote:
    """Parsed representation of an Obsidian note."""

    path: Path
    title: str
    content: str
    frontmatter: dict[str, Any] = field(default_factory=dict)
    tags: list[str] = field(default_factory=list)

    @property
    def relative_path(self) -> str:
        """Vault-relative path with forward slashes."""
        return self.path.as_posix()

    @property
    def search_text(self) -> str:
        """Text indexed for lexical search: title, body and tags."""
        parts = [self.title, self.content]
        if self.tags:
            parts.append(" ".join(self.tags))
        return "\n".join(parts)


# Regex patterns
FRONTMATTER_PATTERN = re.compile(r"^---\s*\n(.*?)\n---\s*\n", re.DOTALL)
TAG_PATTERN = re.compile(r"(?:^|\s)#([a-zA-Z0-9_/-]+)")


def parse_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    """Extract YAML frontmatter from note content.

    Returns:
        Tuple of (frontmatter dict, remaining content)
    """
    match = FRONTMATTER_PATTERN.match(content)
    if not match:
        return {}, content

    try:
        frontmatter = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError:
        frontmatter = {}
    if not isinstance(frontmatter, dict):
        frontmatter = {}

    remaining = content[match.end() :]
    return frontmatter, remaining


def extract_tags(content: str, frontmatter: dict[str, Any]) -> list[str]:
    """Extract all #tags from content and frontmatter.

    Returns:
        List of unique tags (without # prefix)
    """
    tags = set()

    for match in TAG_PATTERN.finditer(content):
        tags.add(match.group(1))

    fm_tags = frontmatter.get("tags", [])
    if isinstance(fm_tags, list):
        for tag in fm_tags:
            if isinstance(tag, str):
                tags.add(tag.strip().lstrip("#"))
    elif isinstance(fm_tags, str):
        tags.add(fm_tags.strip().lstrip("#"))

    return sorted(tag for tag in tags if tag)


def extract_title(path: Path, frontmatter: dict[str, Any], content: str) -> str:
    """Extract note title from frontmatter, first heading, or filename.

    Priority:
    1. frontmatter.title
    2. First # heading
    3. Filename (without .md)
    """
    if "title" in frontmatter:
        return str(frontmatter["title"])

    heading_match = re.search(r"^#\s+(.+)$", content, re.MULTILINE)
    if heading_match:
        return heading_match.group(1).strip()

    return path.stem


def parse_note(path: Path, vault_root: Path | None = None) -> ParsedNote:
    """Parse an Obsidian markdown note.

    Args:
        path: Path to the .md file
        vault_root: Optional vault root for relative paths

    Returns:
        ParsedNote with extracted metadata
    """
    content = path.read_text(encoding="utf-8")
    frontmatter, body = parse_frontmatter(content)

    rel_path = path.relative_to(vault_root) if vault_root else path

    return ParsedNote(
        path=rel_path,
        title=extract_title(path, frontmatter, body),
        content=body,
        frontmatter=frontmatter,
        tags=extract_tags(body, frontmatter),
    )
