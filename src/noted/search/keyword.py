"""Keyword search with relevance scoring on top of :func:`advanced_search`."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from noted.fs import FileSystem
from noted.search.advanced import SearchResult, advanced_search, compile_search_pattern
from noted.search.query import SearchQuery

if TYPE_CHECKING:
    from noted.tags import TagService

log = logging.getLogger(__name__)

DEFAULT_MIN_RELEVANCE = 0.5

# score weights
MATCH_WEIGHT = 0.4
TITLE_WEIGHT = 0.3
PREVIEW_WEIGHT = 0.2
PREVIEW_ALL_BONUS = 0.1


@dataclass
class MatchInfo:
    type: str  # "title" | "content"
    text: str
    confidence: float
    line_number: int | None = None


@dataclass
class SmartSearchResult:
    file_path: str
    file_name: str
    score: float
    match_type: str
    preview: str
    matches: list[MatchInfo] = field(default_factory=list)
    created: datetime | None = None
    modified: datetime | None = None
    tags: list[str] = field(default_factory=list)


def score_result(
    keywords: list[str],
    pattern: re.Pattern[str] | None,
    stem: str,
    preview: str,
    match_count: int,
    use_regex: bool = False,
    case_sensitive: bool = False,
) -> float:
    """Relevance in ``[0, 1]`` for one scanned file.

    ``min(matches/10, 0.4)`` for frequency, up to 0.3 for keywords in the
    file name, up to 0.2 for hits in the preview and 0.1 more when the
    preview holds every keyword.
    """
    score = min(match_count / 10, MATCH_WEIGHT)

    if use_regex or not keywords:
        if pattern is not None and pattern.search(stem):
            score += TITLE_WEIGHT
        preview_hits = len(pattern.findall(preview)) if pattern is not None else 0
        score += min(preview_hits / 5, PREVIEW_WEIGHT)
        return min(max(score, 0.0), 1.0)

    fold = (lambda s: s) if case_sensitive else str.lower
    title, body = fold(stem), fold(preview)
    words = [fold(k) for k in keywords]

    in_title = sum(1 for w in words if w in title)
    score += TITLE_WEIGHT * in_title / len(words)

    preview_hits = sum(body.count(w) for w in words)
    score += min(preview_hits / 5, PREVIEW_WEIGHT)

    if all(w in body for w in words):
        score += PREVIEW_ALL_BONUS

    return min(max(score, 0.0), 1.0)


class KeywordSearch:
    def __init__(
        self,
        fs: FileSystem,
        notes_path: Path | str,
        tag_service: TagService | None = None,
        min_relevance_score: float = DEFAULT_MIN_RELEVANCE,
    ) -> None:
        self.fs = fs
        self.notes_path = os.path.normpath(str(notes_path))
        self.tag_service = tag_service
        self.min_relevance_score = min_relevance_score

    def search(
        self,
        query: str,
        tags: list[str] | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        max_results: int | None = None,
        case_sensitive: bool = False,
        use_regex: bool = False,
    ) -> list[SmartSearchResult]:
        """Scored results at or above the relevance threshold, best first."""
        scan_query = SearchQuery(
            query=query,
            tags=list(tags or []),
            date_from=date_from,
            date_to=date_to,
            use_regex=use_regex,
            case_sensitive=case_sensitive,
        )
        pattern = compile_search_pattern(scan_query)
        keywords = [] if use_regex else query.split()

        results = []
        for hit in advanced_search(scan_query, self.fs, self.notes_path, self.tag_service):
            result = self._to_smart_result(hit, keywords, pattern, use_regex, case_sensitive)
            if result.score >= self.min_relevance_score:
                results.append(result)

        results.sort(key=lambda r: r.score, reverse=True)
        log.debug("Keyword search %r: %d result(s) above %.2f", query, len(results), self.min_relevance_score)
        if max_results is not None:
            return results[:max_results]
        return results

    def _to_smart_result(
        self,
        hit: SearchResult,
        keywords: list[str],
        pattern: re.Pattern[str] | None,
        use_regex: bool,
        case_sensitive: bool,
    ) -> SmartSearchResult:
        path = Path(hit.file)
        score = score_result(keywords, pattern, path.stem, hit.preview, hit.matches, use_regex, case_sensitive)

        matches = []
        if pattern is not None and pattern.search(path.stem):
            matches.append(MatchInfo("title", path.stem, TITLE_WEIGHT))
        if hit.matches > 0:
            matches.append(MatchInfo("content", hit.preview, min(hit.matches / 10, 1.0)))

        try:
            created = self.fs.get_file_stats(hit.file).birthtime
        except OSError as exc:
            log.debug("No creation time for %s: %s", hit.file, exc)
            created = None

        return SmartSearchResult(
            file_path=hit.file,
            file_name=path.name,
            score=score,
            match_type="keyword",
            preview=hit.preview,
            matches=matches,
            created=created,
            modified=hit.modified,
            tags=hit.tags,
        )
