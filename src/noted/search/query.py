"""Parse the filter mini-language of the search box.

``tag:<name>``, ``from:<date>``, ``to:<date>``, ``regex:`` and ``case:``
tokens may appear anywhere in the query; what is left over is the free-text
part.  A date is ``YYYY-MM-DD`` or a keyword such as ``TODAY`` or
``LAST 7 DAYS``.  Tokens that look like filters but do not parse (say
``from:SOMEDAY``) are kept as free text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta

_DATE_KEYWORD = r"TODAY|YESTERDAY|THIS\s+WEEK|THIS\s+MONTH|THIS\s+YEAR|LAST\s+\d+\s+DAYS?"
_STATIC_DATE = r"\d{4}-\d{2}-\d{2}"

_TAG_RE = re.compile(r"(?<!\S)tag:(\S+)", re.IGNORECASE)
_DATE_FILTER_RE = re.compile(
    rf"(?<![\w:])(from|to):(?:({_DATE_KEYWORD})|({_STATIC_DATE}))(?![\w-])",
    re.IGNORECASE,
)
_REGEX_FLAG_RE = re.compile(r"(?<![\w:])regex:", re.IGNORECASE)
_CASE_FLAG_RE = re.compile(r"(?<![\w:])case:", re.IGNORECASE)
_LAST_DAYS_RE = re.compile(r"^LAST\s+(\d+)\s+DAYS?$")


@dataclass
class SearchQuery:
    query: str = ""
    tags: list[str] = field(default_factory=list)
    date_from: datetime | None = None
    date_to: datetime | None = None
    use_regex: bool = False
    case_sensitive: bool = False
    max_results: int | None = None


def _midnight(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def parse_date_keyword(keyword: str, now: datetime | None = None) -> datetime | None:
    """Start of the window named by *keyword* (local midnight), or ``None``.

    ``LAST N DAYS`` includes today, so ``LAST 1 DAY`` is today alone and
    ``LAST 7 DAYS`` starts six days back.  Weeks start on Sunday.
    """
    today = _midnight(now or datetime.now())
    word = " ".join(keyword.strip().upper().split())

    if word == "TODAY":
        return today
    if word == "YESTERDAY":
        return today - timedelta(days=1)
    m = _LAST_DAYS_RE.match(word)
    if m:
        return today - timedelta(days=int(m.group(1)) - 1)
    if word == "THIS WEEK":
        # isoweekday: Monday=1 .. Sunday=7
        return today - timedelta(days=today.isoweekday() % 7)
    if word == "THIS MONTH":
        return today.replace(day=1)
    if word == "THIS YEAR":
        return today.replace(month=1, day=1)
    return None


def _parse_static_date(value: str) -> datetime | None:
    try:
        return datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        return None


def parse_search_query(query: str, now: datetime | None = None) -> SearchQuery:
    result = SearchQuery()

    def _take_tag(m: re.Match[str]) -> str:
        tag = m.group(1).strip().lower().lstrip("#")
        if tag:
            result.tags.append(tag)
        return " "

    def _take_date(m: re.Match[str]) -> str:
        keyword, static = m.group(2), m.group(3)
        value = parse_date_keyword(keyword, now) if keyword else _parse_static_date(static)
        if value is None:
            return m.group(0)
        # repeated filters narrow the window: latest from, earliest to
        if m.group(1).lower() == "from":
            if result.date_from is None or value > result.date_from:
                result.date_from = value
        elif result.date_to is None or value < result.date_to:
            result.date_to = value
        return " "

    text = _TAG_RE.sub(_take_tag, query)
    text = _DATE_FILTER_RE.sub(_take_date, text)

    text, regex_flags = _REGEX_FLAG_RE.subn(" ", text)
    text, case_flags = _CASE_FLAG_RE.subn(" ", text)
    result.use_regex = regex_flags > 0
    result.case_sensitive = case_flags > 0

    result.query = " ".join(text.split())
    return result
