"""Placeholders: wiki-links whose target note does not exist yet."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from noted.links import LinkService, NoteLookup

log = logging.getLogger(__name__)


@dataclass
class PlaceholderSource:
    file: str
    line: int
    #: trimmed source line, contains the raw ``[[...]]``
    context: str
    display_text: str | None = None


@dataclass
class Placeholder:
    link_text: str
    display_text: str | None = None
    sources: list[PlaceholderSource] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.sources)


class PlaceholdersService:
    def __init__(self, link_service: LinkService) -> None:
        self.link_service = link_service

    def _scan_file(self, file_path: str, lookup: NoteLookup) -> list[tuple[str, PlaceholderSource]]:
        try:
            content = self.link_service.fs.read_file(file_path)
        except OSError as exc:
            log.error("Error scanning %s for placeholders: %s", file_path, exc)
            return []

        lines = content.split("\n")
        found = []
        for link in self.link_service.extract_links(content):
            if self.link_service.resolve_link(link.link_text, lookup) is not None:
                continue
            found.append(
                (
                    link.link_text.strip(),
                    PlaceholderSource(
                        file=file_path,
                        line=link.range.line,
                        context=lines[link.range.line].strip(),
                        display_text=link.display_text,
                    ),
                )
            )
        return found

    def _scan(self) -> list[tuple[str, PlaceholderSource]]:
        notes = self.link_service.get_all_notes()
        lookup = self.link_service.build_lookup(notes)
        found = []
        for note in notes:
            found.extend(self._scan_file(note, lookup))
        return found

    def get_all_placeholders(self) -> dict[str, Placeholder]:
        """Placeholders grouped by link text, one source per occurrence."""
        placeholders: dict[str, Placeholder] = {}
        for link_text, source in self._scan():
            placeholder = placeholders.setdefault(
                link_text, Placeholder(link_text, display_text=source.display_text)
            )
            placeholder.sources.append(source)
        log.debug("Found %d placeholder targets", len(placeholders))
        return placeholders

    def get_all_placeholders_flat(self) -> list[Placeholder]:
        return [
            Placeholder(link_text, source.display_text, [source])
            for link_text, source in self._scan()
        ]

    def get_placeholders_in_file(self, file_path: str) -> list[Placeholder]:
        lookup = self.link_service.build_lookup()
        return [
            Placeholder(link_text, source.display_text, [source])
            for link_text, source in self._scan_file(file_path, lookup)
        ]

    def get_placeholder_targets(self) -> list[str]:
        return list(self.get_all_placeholders())

    def get_placeholder_counts(self) -> dict[str, int]:
        return {text: p.count for text, p in self.get_all_placeholders().items()}

    def is_placeholder(self, link_text: str) -> bool:
        return self.link_service.resolve_link(link_text) is None
