"""Core Note record."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from noted.fs import FileSystem, LocalFileSystem
from noted.parser import extract_tags_from_content, parse_frontmatter, parse_wikilinks


@dataclass
class Note:
    """A single note file in the corpus."""

    path: Path
    title: str
    body: str
    tags: list[str] = field(default_factory=list)
    #: Link texts this note points to via [[WikiLinks]]
    links: list[str] = field(default_factory=list)
    frontmatter: dict[str, Any] = field(default_factory=dict)
    modified: datetime | None = None

    @property
    def slug(self) -> str:
        """Filesystem-stable identifier derived from the filename stem."""
        return self.path.stem

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": str(self.path),
            "slug": self.slug,
            "title": self.title,
            "tags": self.tags,
            "links": self.links,
            "frontmatter": self.frontmatter,
            "modified": self.modified.isoformat() if self.modified else None,
        }


def parse_note(path: Path | str, fs: FileSystem | None = None) -> Note:
    """Read a note file and return a fully-populated :class:`Note`."""
    fs = fs or LocalFileSystem()
    path = Path(path)
    content = fs.read_file(str(path))
    frontmatter, body = parse_frontmatter(content)

    title = frontmatter.get("title") or path.stem
    return Note(
        path=path,
        title=str(title),
        body=body,
        tags=extract_tags_from_content(content),
        links=parse_wikilinks(body),
        frontmatter=frontmatter,
        modified=fs.get_file_stats(str(path)).mtime,
    )
