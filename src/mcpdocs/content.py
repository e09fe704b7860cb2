"""Starlight content directory access.

Discovers markdown pages under a content directory, splits YAML frontmatter
from the body, and answers listing, search and structure queries for the
Starlight MCP server.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Any

import yaml

from mcpdocs.observability import get_logger

logger = get_logger(__name__)

CATEGORIES: tuple[str, ...] = ("all", "guides", "reference")

ROOT_CATEGORY = "root"

_FRONTMATTER_DELIMITER = "---"

# Keep long titles and descriptions on one line
_FRONTMATTER_WIDTH = 4096


def parse_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Split ``---``-delimited YAML frontmatter from markdown.

    Returns:
        (frontmatter, body). Text without a frontmatter block, or with one
        that is not a YAML mapping, yields an empty dict and the full text.
    """
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].strip() != _FRONTMATTER_DELIMITER:
        return {}, text
    for index in range(1, len(lines)):
        if lines[index].strip() == _FRONTMATTER_DELIMITER:
            block = "".join(lines[1:index])
            body = "".join(lines[index + 1 :]).lstrip("\n")
            try:
                data = yaml.safe_load(block)
            except yaml.YAMLError as exc:
                logger.warning("content.frontmatter_invalid", error=str(exc))
                return {}, text
            return (data if isinstance(data, dict) else {}), body
    return {}, text


def render_frontmatter(data: dict[str, Any]) -> str:
    """Serialize a frontmatter block, including the delimiters and a blank line."""
    block = yaml.safe_dump(
        data,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
        width=_FRONTMATTER_WIDTH,
    )
    return f"{_FRONTMATTER_DELIMITER}\n{block}{_FRONTMATTER_DELIMITER}\n\n"


@dataclass
class DocPage:
    """One markdown page of the site."""

    path: str
    title: str
    category: str
    body: str
    frontmatter: dict[str, Any] = field(default_factory=dict)
    last_modified: datetime | None = None
    size: int = 0


class ContentStore:
    """Read-only view of a Starlight content directory."""

    def __init__(self, content_dir: Path | str) -> None:
        self.content_dir = Path(content_dir)

    def _root(self, category: str) -> Path:
        if category == "all":
            return self.content_dir
        return self.content_dir / category

    def files(self, category: str = "all") -> list[Path]:
        """Markdown files under the directory (or one category), sorted by path."""
        root = self._root(category)
        if not root.is_dir():
            return []
        return sorted(p for p in root.rglob("*.md") if p.is_file())

    def resolve(self, relative: str) -> Path:
        """Absolute path of a page given relative to the content directory.

        Raises:
            LookupError: If the path escapes the directory or does not exist.
        """
        base = self.content_dir.resolve()
        candidate = (base / relative.lstrip("/")).resolve()
        if base != candidate and base not in candidate.parents:
            raise LookupError(f"Path outside content directory: {relative}")
        if not candidate.is_file():
            raise LookupError(f"Document not found: {relative}")
        return candidate

    def relative_path(self, file: Path) -> str:
        return PurePosixPath(file.resolve().relative_to(self.content_dir.resolve())).as_posix()

    def load(self, file: Path) -> DocPage:
        text = file.read_text(encoding="utf-8")
        frontmatter, body = parse_frontmatter(text)
        relative = self.relative_path(file)
        parts = PurePosixPath(relative).parts
        stat = file.stat()
        return DocPage(
            path=relative,
            title=str(frontmatter.get("title") or file.stem),
            category=parts[0] if len(parts) > 1 else ROOT_CATEGORY,
            body=body,
            frontmatter=frontmatter,
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            size=stat.st_size,
        )

    def read_page(self, relative: str) -> DocPage:
        return self.load(self.resolve(relative))

    def list_docs(self, category: str = "all") -> list[DocPage]:
        return [self.load(file) for file in self.files(category)]

    def search(self, query: str, category: str = "all") -> list[DocPage]:
        """Pages whose raw text contains ``query`` (case-insensitive)."""
        needle = query.lower()
        matches = []
        for file in self.files(category):
            if needle in file.read_text(encoding="utf-8").lower():
                matches.append(self.load(file))
        return matches

    def site_structure(self) -> dict[str, list[DocPage]]:
        """Pages grouped by top-level category, in path order."""
        structure: dict[str, list[DocPage]] = {}
        for page in self.list_docs():
            structure.setdefault(page.category, []).append(page)
        return structure
