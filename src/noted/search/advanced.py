"""Content scanner behind every search: filters, pattern matching, previews."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from noted.errors import ValidationError
from noted.fs import FileSystem, list_note_files
from noted.parser import extract_tags_from_content, normalize_tag
from noted.search.query import SearchQuery

if TYPE_CHECKING:
    from noted.tags import TagService

log = logging.getLogger(__name__)

PREVIEW_LENGTH = 100

_DATED_NAME_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})")


@dataclass
class SearchResult:
    file: str
    preview: str
    matches: int
    modified: datetime
    tags: list[str] = field(default_factory=list)


def compile_search_pattern(query: SearchQuery) -> re.Pattern[str] | None:
    """Pattern for the free-text part of *query*; ``None`` when there is none.

    Keyword mode matches any of the whitespace-separated words, each
    escaped.  Regex mode uses the text as-is.
    """
    text = query.query.strip()
    if not text:
        return None
    flags = 0 if query.case_sensitive else re.IGNORECASE
    if query.use_regex:
        try:
            return re.compile(text, flags)
        except re.error as exc:
            raise ValidationError(f"Invalid regex pattern {text!r}: {exc}") from exc
    keywords = [re.escape(k) for k in text.split()]
    return re.compile("|".join(keywords), flags)


def note_date(file_path: str, mtime: datetime) -> datetime:
    """Date a note belongs to: a ``YYYY-MM-DD`` name prefix, else its mtime."""
    m = _DATED_NAME_RE.match(Path(file_path).stem)
    if m:
        try:
            return datetime.strptime(m.group(1), "%Y-%m-%d")
        except ValueError:
            pass
    return mtime


def _in_date_range(when: datetime, query: SearchQuery) -> bool:
    if query.date_from is not None and when < query.date_from:
        return False
    if query.date_to is not None:
        end_of_day = query.date_to.replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(days=1)
        if when >= end_of_day:
            return False
    return True


def _preview(lines: list[str], pattern: re.Pattern[str] | None) -> str:
    if pattern is None:
        line = next((ln for ln in lines if ln.strip().lower().startswith("tags:")), "")
    else:
        line = next((ln for ln in lines if pattern.search(ln)), "")
    return line.strip()[:PREVIEW_LENGTH]


def advanced_search(
    query: SearchQuery,
    fs: FileSystem,
    notes_path: Path | str,
    tag_service: TagService | None = None,
) -> list[SearchResult]:
    """Scan the notes folder for files matching every filter in *query*.

    Results are ordered newest first.  Without a free-text part every file
    passing the tag and date filters is returned with ``matches == 0``.
    Raises :class:`ValidationError` for an invalid regex.
    """
    root = os.path.normpath(str(notes_path))
    if not fs.path_exists(root):
        log.warning("Notes folder %s does not exist", root)
        return []

    wanted_tags = [normalize_tag(t) for t in query.tags if normalize_tag(t)]
    allowed: set[str] | None = None
    if wanted_tags and tag_service is not None:
        allowed = set(tag_service.get_notes_with_tags(wanted_tags))
        if not allowed:
            log.debug("No notes carry tags %s", wanted_tags)
            return []

    pattern = compile_search_pattern(query)
    results: list[SearchResult] = []
    for file_path in list_note_files(fs, root):
        if query.max_results is not None and len(results) >= query.max_results:
            break
        if allowed is not None and file_path not in allowed:
            continue
        try:
            stats = fs.get_file_stats(file_path)
            if not _in_date_range(note_date(file_path, stats.mtime), query):
                continue
            content = fs.read_file(file_path)
        except OSError as exc:
            log.error("Error searching %s: %s", file_path, exc)
            continue

        tags = extract_tags_from_content(content)
        if allowed is None and wanted_tags and not set(wanted_tags) <= set(tags):
            continue

        match_count = 0
        if pattern is not None:
            match_count = sum(1 for _ in pattern.finditer(content))
            if match_count == 0:
                continue

        results.append(
            SearchResult(
                file=file_path,
                preview=_preview(content.split("\n"), pattern),
                matches=match_count,
                modified=stats.mtime,
                tags=tags,
            )
        )

    results.sort(key=lambda r: r.modified, reverse=True)
    log.debug("Search %r matched %d file(s)", query.query, len(results))
    return results


def get_recent_notes(fs: FileSystem, notes_path: Path | str, limit: int = 10) -> list[SearchResult]:
    """The *limit* most recently modified notes."""
    results = advanced_search(SearchQuery(), fs, notes_path)
    return results[:limit]
