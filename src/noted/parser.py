"""WikiLink, embed, tag, heading and YAML-frontmatter parser.

Everything here is a pure function over note text; services in
:mod:`noted.links`, :mod:`noted.embeds` and :mod:`noted.tags` add file access
and indexing on top.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePath
from typing import Any, Iterator

import yaml

from noted.config import IMAGE_EXTENSIONS

# [[Target]] or [[Target|Display]], never preceded by "!" (that is an embed)
LINK_PATTERN = re.compile(r"(?<!!)\[\[([^\]|]+)(?:\|([^\]]+))?\]\]")
# ![[Target]], ![[Target#Section]], ![[Target|Display]], ![[Target#Section|Display]]
EMBED_PATTERN = re.compile(r"!\[\[([^\]|#]+)(?:#([^\]|]+))?(?:\|([^\]]+))?\]\]")
# Inline #tags (not inside words, URLs, HTML entities or code-spans)
_INLINE_TAG_RE = re.compile(r"(?<![\w/#`&])#([A-Za-z0-9][A-Za-z0-9-]*)(?=[\s.,;:!?)\]}]|$)")
# YAML front-matter block; the closing fence may end the file
_FRONTMATTER_RE = re.compile(r"\A---[ \t]*\r?\n(?:(.*?)\r?\n)?---[ \t]*(?:\r?\n|\Z)", re.DOTALL)
_MD_HEADING_RE = re.compile(r"^(#{1,6})\s+(.+)$")
_TEXT_HEADING_RE = re.compile(r"^([A-Za-z0-9\s]+):$")
_FENCE_RE = re.compile(r"^\s*(```|~~~)")
_TAG_PATTERN = re.compile(r"^[a-z][a-z0-9]*(?:-[a-z0-9]+)*$")
_FIELD_RE = re.compile(r"^([A-Za-z0-9_-]+)\s*:(.*)$")


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TextRange:
    """Zero-based line plus a half-open column span on that line."""

    line: int
    start_col: int
    end_col: int

    def contains(self, line: int, col: int) -> bool:
        return line == self.line and self.start_col <= col <= self.end_col


@dataclass
class Link:
    link_text: str
    range: TextRange
    display_text: str | None = None
    #: Resolved absolute path, filled in by the backlink index build
    target_path: str | None = None


@dataclass
class Embed:
    note_name: str
    range: TextRange
    section: str | None = None
    display_text: str | None = None

    @property
    def type(self) -> str:
        return "image" if is_image_file(self.note_name) else "note"


@dataclass(frozen=True)
class TagOccurrence:
    tag: str
    range: TextRange
    #: ``"frontmatter"`` or ``"inline"``
    kind: str


@dataclass(frozen=True)
class Heading:
    text: str
    level: int
    line: int


@dataclass(frozen=True)
class FrontmatterBlock:
    """Location of the front-matter block inside a note."""

    #: Raw text between the fences (no trailing newline)
    raw: str
    #: Offset just past the closing fence (and its newline, if any)
    end: int
    #: Number of lines the block occupies, fences included
    line_count: int


# ---------------------------------------------------------------------------
# Front-matter
# ---------------------------------------------------------------------------


def split_frontmatter(content: str) -> FrontmatterBlock | None:
    """Return the front-matter block of *content*, or ``None``.

    An opening fence without a closing one is treated as no front-matter.
    """
    match = _FRONTMATTER_RE.match(content)
    if not match:
        return None
    raw = match.group(1) or ""
    line_count = 2 + (len(raw.split("\n")) if match.group(1) is not None else 0)
    return FrontmatterBlock(raw=raw, end=match.end(), line_count=line_count)


def parse_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    """Split YAML front-matter from body text.

    Returns ``(metadata_dict, body)``; ``metadata_dict`` is empty when there
    is no front-matter block or it is not valid YAML.
    """
    block = split_frontmatter(content)
    if block is None:
        return {}, content
    try:
        meta = yaml.safe_load(block.raw) or {}
    except yaml.YAMLError:
        meta = {}
    if not isinstance(meta, dict):
        meta = {}
    return meta, content[block.end :]


def _split_tag_string(value: str) -> list[str]:
    value = value.strip()
    if value.startswith("[") and value.endswith("]"):
        value = value[1:-1]
    return [_unquote(part) for part in re.split(r"[,\s]+", value) if _unquote(part)]


def _unquote(value: str) -> str:
    return value.strip().strip("'\"").strip()


def _tags_from_lines(raw: str) -> list[str]:
    """Line-based fallback for front-matter that is not valid YAML."""
    tags: list[str] = []
    in_list = False
    for line in raw.split("\n"):
        field = _FIELD_RE.match(line)
        if field:
            if field.group(1) != "tags":
                if in_list:
                    break
                continue
            value = field.group(2).strip()
            if value:
                return _split_tag_string(value)
            in_list = True
            continue
        if in_list:
            stripped = line.strip()
            if stripped.startswith("-"):
                item = _unquote(stripped[1:])
                if item:
                    tags.append(item)
            elif stripped:
                break
    return tags


def frontmatter_tag_values(content: str) -> list[str]:
    """Raw ``tags`` values from the front-matter, in file order.

    Supports ``tags: [a, b]``, YAML block lists and the legacy
    ``tags: a, b`` string.  Values are not normalized.
    """
    block = split_frontmatter(content)
    if block is None:
        return []
    try:
        meta = yaml.safe_load(block.raw)
    except yaml.YAMLError:
        return _tags_from_lines(block.raw)
    if not isinstance(meta, dict):
        return _tags_from_lines(block.raw)
    raw_tags = meta.get("tags")
    if raw_tags is None:
        return []
    if isinstance(raw_tags, (list, tuple)):
        return [str(t).strip() for t in raw_tags if t is not None and str(t).strip()]
    if isinstance(raw_tags, str):
        return [t for t in (p.strip() for p in raw_tags.strip().strip("[]").split(",")) if t]
    return [str(raw_tags)]


# ---------------------------------------------------------------------------
# Tag helpers
# ---------------------------------------------------------------------------


def is_valid_tag(tag: str) -> bool:
    """Lowercase start, letters/digits/single inner hyphens only."""
    return bool(tag) and _TAG_PATTERN.match(tag) is not None


def normalize_tag(tag: str) -> str:
    """Trim, strip one leading ``#`` and lowercase."""
    normalized = tag.strip()
    if normalized.startswith("#"):
        normalized = normalized[1:]
    return normalized.lower()


def format_tag_for_storage(tag: str) -> str:
    return normalize_tag(tag)


def format_tag_for_display(tag: str) -> str:
    return tag if tag.startswith("#") else f"#{tag}"


def _body_lines(content: str) -> Iterator[tuple[int, str]]:
    """Yield ``(line_no, line)`` for body lines outside fenced code blocks."""
    block = split_frontmatter(content)
    first_line = block.line_count if block else 0
    in_code_block = False
    for line_no, line in enumerate(content.split("\n")):
        if line_no < first_line:
            continue
        if _FENCE_RE.match(line):
            in_code_block = not in_code_block
            continue
        if not in_code_block:
            yield line_no, line


def inline_tag_occurrences(content: str) -> list[TagOccurrence]:
    """Every valid inline ``#tag`` in the body, with its location."""
    found: list[TagOccurrence] = []
    for line_no, line in _body_lines(content):
        for m in _INLINE_TAG_RE.finditer(line):
            tag = m.group(1).lower()
            if is_valid_tag(tag):
                found.append(TagOccurrence(tag, TextRange(line_no, m.start(), m.end()), "inline"))
    return found


def frontmatter_tag_occurrences(content: str) -> list[TagOccurrence]:
    """Located tag entries inside the front-matter ``tags`` field."""
    block = split_frontmatter(content)
    if block is None:
        return []
    found: list[TagOccurrence] = []
    lines = block.raw.split("\n")
    in_field = False
    for idx, line in enumerate(lines):
        line_no = idx + 1  # opening fence is line 0
        field = _FIELD_RE.match(line)
        if field:
            in_field = field.group(1) == "tags"
            if not in_field:
                continue
            start = line.index(":") + 1
            for m in re.finditer(r"[^\s,\[\]'\"]+", line[start:]):
                tag = normalize_tag(m.group(0))
                if is_valid_tag(tag):
                    found.append(
                        TagOccurrence(tag, TextRange(line_no, start + m.start(), start + m.end()), "frontmatter")
                    )
            continue
        if in_field:
            m = re.match(r"^(\s*-\s*['\"]?)([^'\"\s]+)", line)
            if m:
                tag = normalize_tag(m.group(2))
                if is_valid_tag(tag):
                    found.append(
                        TagOccurrence(tag, TextRange(line_no, m.start(2), m.end(2)), "frontmatter")
                    )
            elif line.strip():
                in_field = False
    return found


def find_tag_occurrences(content: str) -> list[TagOccurrence]:
    return frontmatter_tag_occurrences(content) + inline_tag_occurrences(content)


def extract_tags_from_content(content: str) -> list[str]:
    """Return unique, normalized tags from front-matter and inline ``#tags``.

    Front-matter tags come first, then inline tags in order of appearance.
    Candidates that are not valid tags are dropped silently.
    """
    if not content or not content.strip():
        return []
    tags: dict[str, None] = {}
    for value in frontmatter_tag_values(content):
        tag = normalize_tag(value)
        if is_valid_tag(tag):
            tags.setdefault(tag)
    for occurrence in inline_tag_occurrences(content):
        tags.setdefault(occurrence.tag)
    return list(tags)


# ---------------------------------------------------------------------------
# Links and embeds
# ---------------------------------------------------------------------------


def extract_links(text: str) -> list[Link]:
    """Return every ``[[link]]`` in *text*, line by line, in order."""
    links: list[Link] = []
    for line_no, line in enumerate(text.split("\n")):
        for m in LINK_PATTERN.finditer(line):
            display = m.group(2).strip() if m.group(2) else None
            links.append(Link(m.group(1).strip(), TextRange(line_no, m.start(), m.end()), display))
    return links


def parse_wikilinks(text: str) -> list[str]:
    """Return all ``[[WikiLink]]`` targets found in *text* (de-duped, ordered)."""
    return list(dict.fromkeys(link.link_text for link in extract_links(text)))


def is_image_file(name: str) -> bool:
    return PurePath(name).suffix.lower() in IMAGE_EXTENSIONS


def _embed_from_match(m: re.Match[str], line_no: int) -> Embed:
    return Embed(
        note_name=m.group(1).strip(),
        range=TextRange(line_no, m.start(), m.end()),
        section=m.group(2).strip() if m.group(2) else None,
        display_text=m.group(3).strip() if m.group(3) else None,
    )


def extract_embeds(text: str) -> list[Embed]:
    """Return every ``![[embed]]`` in *text*, line by line, in order."""
    embeds: list[Embed] = []
    for line_no, line in enumerate(text.split("\n")):
        embeds.extend(_embed_from_match(m, line_no) for m in EMBED_PATTERN.finditer(line))
    return embeds


def embed_at_position(text: str, line: int, col: int) -> Embed | None:
    lines = text.split("\n")
    if not 0 <= line < len(lines):
        return None
    for m in EMBED_PATTERN.finditer(lines[line]):
        if m.start() <= col <= m.end():
            return _embed_from_match(m, line)
    return None


# ---------------------------------------------------------------------------
# Headings
# ---------------------------------------------------------------------------


def parse_headings(content: str) -> list[Heading]:
    """Markdown (``## Title``) and text-style (``TITLE:``) headings in order.

    Text-style headings carry level 0 so they only end other text-style
    sections.
    """
    headings: list[Heading] = []
    for line_no, line in _body_lines(content):
        stripped = line.strip()
        md = _MD_HEADING_RE.match(stripped)
        if md:
            headings.append(Heading(md.group(2).strip(), len(md.group(1)), line_no))
            continue
        text = _TEXT_HEADING_RE.match(stripped)
        if text:
            headings.append(Heading(text.group(1).strip(), 0, line_no))
    return headings


def extract_section(content: str, section: str) -> str | None:
    """Return *section* from its heading up to the next heading of equal or higher level."""
    wanted = section.strip().lower()
    headings = parse_headings(content)
    lines = content.split("\n")
    for idx, heading in enumerate(headings):
        if heading.text.lower() != wanted:
            continue
        end = len(lines)
        for following in headings[idx + 1 :]:
            if heading.level == 0:
                if following.level == 0:
                    end = following.line
                    break
            elif following.level != 0 and following.level <= heading.level:
                end = following.line
                break
        return "\n".join(lines[heading.line : end])
    return None
