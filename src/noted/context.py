"""NotesContext: one shared instance of every service for a notes folder."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from noted.config import NotedConfig
from noted.embeds import EmbedService
from noted.fs import FileSystem, LocalFileSystem
from noted.links import LinkService, RenameResult
from noted.orphans import OrphansService
from noted.placeholders import PlaceholdersService
from noted.search.advanced import SearchResult, advanced_search
from noted.search.keyword import KeywordSearch, SmartSearchResult
from noted.search.query import parse_search_query
from noted.tag_edit import TagEditService, TagRenameProvider
from noted.tags import TagService
from noted.templates.bundles import BundleService
from noted.templates.generator import TemplateGenerator
from noted.templates.render import TemplateStore

log = logging.getLogger(__name__)


@dataclass
class NotesContext:
    config: NotedConfig
    fs: FileSystem
    links: LinkService
    embeds: EmbedService
    placeholders: PlaceholdersService
    orphans: OrphansService
    tags: TagService
    tag_edit: TagEditService
    tag_rename: TagRenameProvider
    keyword_search: KeywordSearch
    templates: TemplateStore
    bundles: BundleService
    generator: TemplateGenerator | None = None

    @classmethod
    def from_config(
        cls,
        config: NotedConfig,
        fs: FileSystem | None = None,
        complete: Callable[[str], str] | None = None,
    ) -> "NotesContext":
        """Wire every service for *config*; *complete* enables template generation."""
        fs = fs or LocalFileSystem()
        links = LinkService(config.notes_path, fs)
        tags = TagService(config.notes_path, fs)
        tag_edit = TagEditService(tags, fs)
        templates = TemplateStore(config.templates_path, fs, user=config.user, workspace=config.notes_path.name)
        return cls(
            config=config,
            fs=fs,
            links=links,
            embeds=EmbedService(links, cache_ttl=config.embed_cache_ttl),
            placeholders=PlaceholdersService(links),
            orphans=OrphansService(links),
            tags=tags,
            tag_edit=tag_edit,
            tag_rename=TagRenameProvider(tag_edit),
            keyword_search=KeywordSearch(fs, config.notes_path, tags, config.min_relevance_score),
            templates=templates,
            bundles=BundleService(
                templates,
                config.notes_path,
                file_format=config.file_format,
                fs=fs,
                bundles_path=config.bundles_path,
            ),
            generator=TemplateGenerator(complete, author=config.user or "user") if complete else None,
        )

    def rebuild_indexes(self) -> None:
        """Rebuild the tag and backlink indexes from the files on disk."""
        self.tags.build_tag_index()
        self.links.build_backlinks_index()
        self.embeds.clear_all_embed_sources_cache()

    def search(self, text: str) -> list[SearchResult]:
        """Run a search-box query (``tag:``, ``from:`` ... filters allowed)."""
        return advanced_search(parse_search_query(text), self.fs, self.config.notes_path, self.tags)

    def smart_search(self, text: str, max_results: int | None = None) -> list[SmartSearchResult]:
        """Like :meth:`search` but scored and filtered by relevance."""
        query = parse_search_query(text)
        return self.keyword_search.search(
            query.query,
            tags=query.tags,
            date_from=query.date_from,
            date_to=query.date_to,
            max_results=max_results,
            case_sensitive=query.case_sensitive,
            use_regex=query.use_regex,
        )

    def rename_note(self, old_path: str, new_path: str) -> RenameResult:
        """Rename a note file and point every link at its new name."""
        self.links.build_backlinks_index()
        # rewrite first so a note linking to itself is edited under its old name
        result = self.links.update_links_on_rename(old_path, new_path)
        self.fs.rename_file(old_path, new_path)
        self.rebuild_indexes()
        log.info(
            "Renamed %s -> %s; %d link(s) updated in %d file(s)",
            old_path,
            new_path,
            result.links_updated,
            result.files_updated,
        )
        return result
