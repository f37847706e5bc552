"""Unit tests for noted.search: query parsing, scanning and scoring."""

import os
import re
import textwrap
from datetime import datetime
from pathlib import Path

import pytest

from noted.errors import ValidationError
from noted.fs import LocalFileSystem
from noted.search import KeywordSearch, advanced_search, parse_search_query
from noted.search.advanced import get_recent_notes, note_date
from noted.search.keyword import score_result
from noted.search.query import SearchQuery, parse_date_keyword
from noted.tags import TagService

# Wednesday
NOW = datetime(2025, 10, 15, 14, 30)


def _write_note(directory: Path, name: str, content: str, mtime: datetime | None = None) -> Path:
    path = directory / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(content), encoding="utf-8")
    if mtime is not None:
        stamp = mtime.timestamp()
        os.utime(path, (stamp, stamp))
    return path


# ---------------------------------------------------------------------------
# Query parsing
# ---------------------------------------------------------------------------


class TestDateKeywords:
    @pytest.mark.parametrize(
        "keyword,expected",
        [
            ("TODAY", datetime(2025, 10, 15)),
            ("YESTERDAY", datetime(2025, 10, 14)),
            ("LAST 1 DAY", datetime(2025, 10, 15)),
            ("LAST 7 DAYS", datetime(2025, 10, 9)),
            ("THIS WEEK", datetime(2025, 10, 12)),
            ("THIS MONTH", datetime(2025, 10, 1)),
            ("THIS YEAR", datetime(2025, 1, 1)),
            ("this   week", datetime(2025, 10, 12)),
            ("SOMEDAY", None),
        ],
    )
    def test_keywords(self, keyword, expected):
        assert parse_date_keyword(keyword, now=NOW) == expected

    def test_week_starts_on_sunday(self):
        sunday = datetime(2025, 10, 12, 9, 0)
        assert parse_date_keyword("THIS WEEK", now=sunday) == datetime(2025, 10, 12)


class TestParseSearchQuery:
    def test_token_order_does_not_matter(self):
        a = parse_search_query("tag:bug from:TODAY auth", now=NOW)
        b = parse_search_query("auth tag:bug from:TODAY", now=NOW)
        assert a == b
        assert a.query == "auth"
        assert a.tags == ["bug"]
        assert a.date_from == datetime(2025, 10, 15)

    def test_last_days_range(self):
        query = parse_search_query("from:LAST 7 DAYS standup", now=NOW)
        assert query.date_from == datetime(2025, 10, 9)
        assert query.query == "standup"

    def test_static_dates(self):
        query = parse_search_query("from:2025-01-15 to:2025-02-01 report", now=NOW)
        assert query.date_from == datetime(2025, 1, 15)
        assert query.date_to == datetime(2025, 2, 1)
        assert query.query == "report"

    @pytest.mark.parametrize("text", ["from:TODAYS", "from:INVALID", "from:2025-13-45", "to:2025-1-5"])
    def test_unparsable_dates_stay_in_text(self, text):
        query = parse_search_query(text, now=NOW)
        assert query.date_from is None and query.date_to is None
        assert query.query == text

    @pytest.mark.parametrize(
        ("first", "second"),
        [("from:TODAY", "from:YESTERDAY"), ("from:2025-01-01", "from:2025-10-15"), ("to:TODAY", "to:2025-10-14")],
    )
    def test_repeated_dates_ignore_order(self, first, second):
        forward = parse_search_query(f"{first} {second} x", now=NOW)
        backward = parse_search_query(f"{second} {first} x", now=NOW)
        assert forward == backward
        assert forward.query == "x"

    def test_repeated_dates_intersect(self):
        query = parse_search_query("from:YESTERDAY from:TODAY to:TODAY to:YESTERDAY", now=NOW)
        assert query.date_from == datetime(2025, 10, 15)
        assert query.date_to == datetime(2025, 10, 14)

    def test_tags_repeat_and_normalize(self):
        query = parse_search_query("tag:Bug tag:#urgent fix", now=NOW)
        assert query.tags == ["bug", "urgent"]
        assert query.query == "fix"

    def test_flags(self):
        query = parse_search_query("regex: case: ^Auth.*", now=NOW)
        assert query.use_regex and query.case_sensitive
        assert query.query == "^Auth.*"

    def test_whitespace_collapsed(self):
        assert parse_search_query("  foo    bar  ", now=NOW).query == "foo bar"

    def test_plain_query_defaults(self):
        assert parse_search_query("hello", now=NOW) == SearchQuery(query="hello")


# ---------------------------------------------------------------------------
# Scanning
# ---------------------------------------------------------------------------


@pytest.fixture()
def notes(tmp_path: Path) -> Path:
    _write_note(tmp_path, "2025-01-10-standup.md", "auth flow discussed\n#meeting", datetime(2025, 1, 10, 12))
    _write_note(
        tmp_path,
        "2025-03-01-review.md",
        "---\ntags: [review]\n---\nauth review\nmore auth",
        datetime(2025, 3, 1, 12),
    )
    _write_note(tmp_path, "misc.md", "nothing here", datetime(2025, 6, 1, 12))
    return tmp_path


class TestAdvancedSearch:
    def test_keywords_are_or(self, notes: Path):
        results = advanced_search(SearchQuery(query="auth nothing"), LocalFileSystem(), notes)
        assert [Path(r.file).name for r in results] == ["misc.md", "2025-03-01-review.md", "2025-01-10-standup.md"]

    def test_match_count_preview_and_tags(self, notes: Path):
        (result,) = advanced_search(SearchQuery(query="review"), LocalFileSystem(), notes)
        assert result.matches == 2
        assert result.preview == "tags: [review]"
        assert result.tags == ["review"]

    def test_date_range_uses_name_prefix(self, notes: Path):
        query = SearchQuery(query="auth", date_from=datetime(2025, 2, 1))
        results = advanced_search(query, LocalFileSystem(), notes)
        assert [Path(r.file).name for r in results] == ["2025-03-01-review.md"]

    def test_date_to_covers_whole_day(self, notes: Path):
        query = SearchQuery(query="auth", date_to=datetime(2025, 1, 10))
        results = advanced_search(query, LocalFileSystem(), notes)
        assert [Path(r.file).name for r in results] == ["2025-01-10-standup.md"]

    def test_tag_filter_with_and_without_index(self, notes: Path):
        tags = TagService(notes)
        tags.build_tag_index()
        query = SearchQuery(query="auth", tags=["meeting"])
        with_index = advanced_search(query, LocalFileSystem(), notes, tags)
        without_index = advanced_search(query, LocalFileSystem(), notes)
        assert [r.file for r in with_index] == [r.file for r in without_index] == [
            str(notes / "2025-01-10-standup.md")
        ]
        assert advanced_search(SearchQuery(tags=["absent"]), LocalFileSystem(), notes, tags) == []

    def test_regex_and_case(self, notes: Path):
        fs = LocalFileSystem()
        assert len(advanced_search(SearchQuery(query="au.h", use_regex=True), fs, notes)) == 2
        assert advanced_search(SearchQuery(query="AUTH", case_sensitive=True), fs, notes) == []
        with pytest.raises(ValidationError):
            advanced_search(SearchQuery(query="(unclosed", use_regex=True), fs, notes)

    def test_max_results(self, notes: Path):
        results = advanced_search(SearchQuery(query="auth nothing", max_results=1), LocalFileSystem(), notes)
        assert len(results) == 1

    def test_missing_folder(self, tmp_path: Path):
        assert advanced_search(SearchQuery(query="x"), LocalFileSystem(), tmp_path / "nope") == []

    def test_recent_notes(self, notes: Path):
        recent = get_recent_notes(LocalFileSystem(), notes, limit=2)
        assert [Path(r.file).name for r in recent] == ["misc.md", "2025-03-01-review.md"]

    def test_note_date(self):
        mtime = datetime(2024, 5, 5)
        assert note_date("/n/2025-01-10-standup.md", mtime) == datetime(2025, 1, 10)
        assert note_date("/n/2025-99-99.md", mtime) == mtime
        assert note_date("/n/plain.md", mtime) == mtime


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


class TestScoring:
    def test_known_score(self):
        pattern = re.compile("auth", re.IGNORECASE)
        assert score_result(["auth"], pattern, "auth-notes", "auth is here", 3) == pytest.approx(0.9)

    def test_more_preview_keywords_never_score_lower(self):
        pattern = re.compile("auth|token", re.IGNORECASE)
        both = score_result(["auth", "token"], pattern, "x", "auth token here", 2)
        one = score_result(["auth", "token"], pattern, "x", "auth only", 2)
        assert both >= one

    def test_score_is_clamped(self):
        pattern = re.compile("a", re.IGNORECASE)
        assert score_result(["a"], pattern, "a", "a a a a a a a a", 500) == 1.0

    def test_regex_mode_has_no_all_keywords_bonus(self):
        pattern = re.compile("au.h", re.IGNORECASE)
        assert score_result([], pattern, "notes", "auth", 1, use_regex=True) == pytest.approx(0.1 + 0.2)


class TestKeywordSearch:
    def test_threshold_and_order(self, tmp_path: Path):
        _write_note(tmp_path, "auth.md", "auth auth auth")
        _write_note(tmp_path, "other.md", "auth once")
        _write_note(tmp_path, "unrelated.md", "nothing")
        results = KeywordSearch(LocalFileSystem(), tmp_path).search("auth")
        assert [r.file_name for r in results] == ["auth.md"]
        assert results[0].score == pytest.approx(0.9)
        assert [m.type for m in results[0].matches] == ["title", "content"]
        assert results[0].created is not None

    def test_lower_threshold_keeps_more(self, tmp_path: Path):
        _write_note(tmp_path, "auth.md", "auth auth auth")
        _write_note(tmp_path, "other.md", "auth once")
        search = KeywordSearch(LocalFileSystem(), tmp_path, min_relevance_score=0.1)
        assert [r.file_name for r in search.search("auth")] == ["auth.md", "other.md"]
        assert [r.file_name for r in search.search("auth", max_results=1)] == ["auth.md"]
