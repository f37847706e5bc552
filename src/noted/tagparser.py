"""Read and write the ``tags`` field of a note's front-matter.

The writer edits the front-matter line by line instead of re-dumping the
YAML, so every other field keeps its exact text and position.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone

import yaml

from noted.parser import format_tag_for_storage, frontmatter_tag_values, split_frontmatter

log = logging.getLogger(__name__)

_FIELD_RE = re.compile(r"^([A-Za-z0-9_-]+)\s*:(.*)$")
_TAGGED_AT = "tagged-at"


@dataclass
class NoteTag:
    name: str
    source: str = "manual"  # "manual" or "ai"
    confidence: float = 1.0
    added_at: datetime | None = None


@dataclass
class NoteMetadata:
    tags: list[NoteTag] = field(default_factory=list)
    last_tagged: datetime | None = None

    @property
    def tag_names(self) -> list[str]:
        return [t.name for t in self.tags]

    @classmethod
    def from_names(cls, names: list[str]) -> "NoteMetadata":
        return cls(tags=[NoteTag(name) for name in names])


def has_frontmatter(content: str) -> bool:
    return split_frontmatter(content) is not None


def _parse_timestamp(value: object) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError:
            log.debug("Ignoring unparseable %s value %r", _TAGGED_AT, value)
    return None


def parse_tags(content: str) -> NoteMetadata:
    """Return the tags stored in the front-matter of *content*.

    Missing front-matter, a missing ``tags`` field or invalid YAML all give
    an empty :class:`NoteMetadata`.
    """
    block = split_frontmatter(content)
    if block is None:
        return NoteMetadata()

    last_tagged = None
    try:
        meta = yaml.safe_load(block.raw)
    except yaml.YAMLError:
        meta = None
    if isinstance(meta, dict):
        last_tagged = _parse_timestamp(meta.get(_TAGGED_AT))

    names = list(dict.fromkeys(n for n in (format_tag_for_storage(v) for v in frontmatter_tag_values(content)) if n))
    return NoteMetadata(
        tags=[NoteTag(name, "manual", 1.0, last_tagged) for name in names],
        last_tagged=last_tagged,
    )


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


def _field_span(lines: list[str], key: str) -> tuple[int, int] | None:
    """``(start, end)`` line span of *key* including its continuation lines."""
    for idx, line in enumerate(lines):
        m = _FIELD_RE.match(line)
        if not m or m.group(1) != key:
            continue
        end = idx + 1
        while end < len(lines) and lines[end].strip() and (
            lines[end][0] in " \t" or lines[end].lstrip().startswith("- ")
        ):
            end += 1
        return idx, end
    return None


def _format_timestamp(now: datetime | None) -> str:
    if now is None:
        now = datetime.now(timezone.utc)
        return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return now.isoformat()


def _tag_field_lines(names: list[str], block_style: bool, now: datetime | None) -> list[str]:
    if block_style:
        field_lines = ["tags:"] + [f"  - {name}" for name in names]
    else:
        field_lines = [f"tags: [{', '.join(names)}]"]
    return field_lines + [f"{_TAGGED_AT}: {_format_timestamp(now)}"]


def write_tags(content: str, metadata: NoteMetadata, now: datetime | None = None) -> str:
    """Insert or replace the ``tags`` field (and ``tagged-at``) in *content*.

    Without front-matter a new block is prepended.  An empty tag list removes
    both fields instead of writing ``tags: []``.  The list style of an
    existing field (inline array or block list) is kept.
    """
    names = list(dict.fromkeys(n for n in (format_tag_for_storage(t.name) for t in metadata.tags) if n))
    block = split_frontmatter(content)

    if block is None:
        if not names:
            return content
        header = "\n".join(["---", *_tag_field_lines(names, False, now), "---"])
        return f"{header}\n\n{content}"

    lines = block.raw.split("\n") if block.raw else []
    tags_span = _field_span(lines, "tags")
    block_style = tags_span is not None and not _FIELD_RE.match(lines[tags_span[0]]).group(2).strip()

    insert_at = tags_span[0] if tags_span else None
    for span in sorted(filter(None, [tags_span, _field_span(lines, _TAGGED_AT)]), reverse=True):
        del lines[span[0] : span[1]]
        if insert_at is not None and span[0] < insert_at:
            insert_at -= span[1] - span[0]
    if insert_at is None:
        insert_at = len(lines)

    if names:
        lines[insert_at:insert_at] = _tag_field_lines(names, block_style, now)

    rest = content[block.end :]
    if not lines:
        # nothing left in the block: drop it together with the blank separator line
        return rest[1:] if rest.startswith("\n") else rest

    fence_newline = "\n" if content[: block.end].endswith("\n") else ""
    return "---\n" + "\n".join(lines) + "\n---" + fence_newline + rest


def remove_tags(content: str) -> str:
    """Remove the ``tags`` field; *content* is returned untouched when there is none."""
    block = split_frontmatter(content)
    if block is None or _field_span(block.raw.split("\n"), "tags") is None:
        return content
    return write_tags(content, NoteMetadata())
