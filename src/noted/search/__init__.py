from noted.search.advanced import SearchResult, advanced_search, get_recent_notes
from noted.search.keyword import KeywordSearch, MatchInfo, SmartSearchResult, score_result
from noted.search.query import SearchQuery, parse_date_keyword, parse_search_query

__all__ = [
    "KeywordSearch",
    "MatchInfo",
    "SearchQuery",
    "SearchResult",
    "SmartSearchResult",
    "advanced_search",
    "get_recent_notes",
    "parse_date_keyword",
    "parse_search_query",
    "score_result",
]
