"""noted: tags, wiki-links, embeds and search over a folder of plain-text notes."""

from noted._logging import configure_logging
from noted.config import NotedConfig, load_config
from noted.context import NotesContext
from noted.db import NotesDB
from noted.embeds import EmbedService
from noted.errors import NotedError, ValidationError
from noted.fs import FileSystem, LocalFileSystem
from noted.graph import build_graph, graph_stats
from noted.links import LinkService
from noted.note import Note, parse_note
from noted.orphans import OrphansService
from noted.parser import extract_tags_from_content, parse_wikilinks
from noted.placeholders import PlaceholdersService
from noted.search import KeywordSearch, advanced_search, parse_search_query
from noted.tag_edit import TagEditService, TagRenameProvider
from noted.tagparser import parse_tags, write_tags
from noted.tags import TagService

__all__ = [
    "EmbedService",
    "FileSystem",
    "KeywordSearch",
    "LinkService",
    "LocalFileSystem",
    "Note",
    "NotedConfig",
    "NotedError",
    "NotesContext",
    "NotesDB",
    "OrphansService",
    "PlaceholdersService",
    "TagEditService",
    "TagRenameProvider",
    "TagService",
    "ValidationError",
    "advanced_search",
    "build_graph",
    "configure_logging",
    "extract_tags_from_content",
    "graph_stats",
    "load_config",
    "parse_note",
    "parse_search_query",
    "parse_tags",
    "parse_wikilinks",
    "write_tags",
]
