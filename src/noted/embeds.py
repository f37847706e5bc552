"""EmbedService: ``![[embed]]`` extraction, section transclusion and image lookup.

The service also keeps a transclusion cache: for each document, the set of
files its embeds resolve to, plus the reverse map (source file -> documents
embedding it) so a change to a source can refresh every document showing it.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Callable
from urllib.parse import unquote, urlparse

from noted.fs import FileSystem
from noted.links import LinkService, NoteLookup
from noted.parser import (
    Embed,
    embed_at_position,
    extract_embeds,
    extract_section,
    is_image_file,
    parse_headings,
)

log = logging.getLogger(__name__)

DEFAULT_CACHE_TTL = 3600.0


@dataclass(frozen=True)
class ImageMetadata:
    size: int


def document_path(document_uri: str) -> str:
    """Accept ``file://`` URIs as well as plain paths."""
    if document_uri.startswith("file://"):
        return os.path.normpath(unquote(urlparse(document_uri).path))
    return document_uri


class EmbedService:
    def __init__(
        self,
        link_service: LinkService,
        *,
        cache_ttl: float = DEFAULT_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.link_service = link_service
        self.cache_ttl = cache_ttl
        self._clock = clock
        #: document URI -> (resolved source paths, stored-at)
        self._sources: dict[str, tuple[set[str], float]] = {}
        #: source path -> document URIs embedding it
        self._embedded_in: dict[str, set[str]] = {}

    @property
    def fs(self) -> FileSystem:
        return self.link_service.fs

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    @staticmethod
    def is_image_file(name: str) -> bool:
        return is_image_file(name)

    def extract_embeds(self, text: str) -> list[Embed]:
        return extract_embeds(text)

    def extract_embeds_from_file(self, file_path: str) -> list[Embed]:
        try:
            return extract_embeds(self.fs.read_file(file_path))
        except OSError as exc:
            log.error("Error extracting embeds from %s: %s", file_path, exc)
            return []

    def get_embed_at_position(self, text: str, line: int, col: int) -> Embed | None:
        return embed_at_position(text, line, col)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve_image_path(self, image_path: str, current_document: str | None = None) -> str | None:
        """Resolve an image reference to an existing file, or ``None``.

        Absolute paths are checked as-is; relative ones (``./img.png`` or
        ``img.png``) against the document's folder, then the notes root.
        """
        if os.path.isabs(image_path):
            return image_path if self.fs.path_exists(image_path) else None

        bases: list[str] = []
        if current_document:
            bases.append(os.path.dirname(document_path(current_document)))
        bases.append(self.link_service.notes_path)
        for base in bases:
            candidate = os.path.normpath(os.path.join(base, image_path))
            if self.fs.path_exists(candidate):
                return candidate
        return None

    def get_image_metadata(self, image_path: str) -> ImageMetadata | None:
        try:
            return ImageMetadata(size=self.fs.get_file_stats(image_path).size)
        except OSError as exc:
            log.error("Error getting image metadata for %s: %s", image_path, exc)
            return None

    def resolve_embed(
        self, embed: Embed, current_document: str | None = None, lookup: NoteLookup | None = None
    ) -> str | None:
        if embed.type == "image":
            return self.resolve_image_path(embed.note_name, current_document)
        return self.link_service.resolve_link(embed.note_name, lookup)

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    def get_embed_content(self, file_path: str, section: str | None = None) -> str | None:
        """Whole note, or only *section* (heading line included); ``None`` if missing."""
        try:
            content = self.fs.read_file(file_path)
        except OSError as exc:
            log.debug("Embed source %s unreadable: %s", file_path, exc)
            return None
        if not section:
            return content
        return extract_section(content, section)

    def get_sections_from_note(self, file_path: str) -> list[str]:
        try:
            content = self.fs.read_file(file_path)
        except OSError as exc:
            log.error("Error getting sections from %s: %s", file_path, exc)
            return []
        return [heading.text for heading in parse_headings(content)]

    # ------------------------------------------------------------------
    # Transclusion cache
    # ------------------------------------------------------------------

    def _fresh_sources(self, document_uri: str) -> set[str] | None:
        entry = self._sources.get(document_uri)
        if entry is None:
            return None
        sources, stored_at = entry
        if self._clock() - stored_at > self.cache_ttl:
            return None
        return sources

    def update_embed_sources_cache(self, document_uri: str, embeds: list[Embed]) -> None:
        """Replace the tracked sources of *document_uri* with those *embeds* resolve to."""
        current = document_path(document_uri)
        lookup = self.link_service.build_lookup() if any(e.type != "image" for e in embeds) else None
        sources = {target for target in (self.resolve_embed(e, current, lookup) for e in embeds) if target}

        self.clear_embed_sources_cache(document_uri)
        self._sources[document_uri] = (sources, self._clock())
        for source in sources:
            self._embedded_in.setdefault(source, set()).add(document_uri)
        log.debug("Tracking %d embedded sources for %s", len(sources), document_uri)

    def get_embedded_sources(self, document_uri: str) -> list[str]:
        return sorted(self._fresh_sources(document_uri) or ())

    def get_documents_embedding_source(self, source_path: str) -> list[str]:
        return sorted(
            uri
            for uri in self._embedded_in.get(source_path, ())
            if self._fresh_sources(uri) is not None
        )

    def clear_embed_sources_cache(self, document_uri: str) -> None:
        entry = self._sources.pop(document_uri, None)
        if entry is None:
            return
        for source in entry[0]:
            documents = self._embedded_in.get(source)
            if documents is None:
                continue
            documents.discard(document_uri)
            if not documents:
                del self._embedded_in[source]

    def clear_all_embed_sources_cache(self) -> None:
        self._sources.clear()
        self._embedded_in.clear()
