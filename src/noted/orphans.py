"""Classify notes by how they are connected in the backlink index.

* true orphan: no incoming and no outgoing links
* source: outgoing links only
* sink: incoming links only

All answers come from the last ``LinkService.build_backlinks_index``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from noted.links import LinkService


@dataclass
class OrphanNote:
    file_path: str
    has_incoming_links: bool
    has_outgoing_links: bool

    @property
    def basename(self) -> str:
        return os.path.splitext(os.path.basename(self.file_path))[0]


@dataclass
class OrphanCategories:
    true_orphans: list[OrphanNote] = field(default_factory=list)
    source_only: list[OrphanNote] = field(default_factory=list)
    sink_only: list[OrphanNote] = field(default_factory=list)


class OrphansService:
    def __init__(self, link_service: LinkService) -> None:
        self.link_service = link_service

    def _classify(self, note_path: str) -> OrphanNote:
        return OrphanNote(
            file_path=note_path,
            has_incoming_links=bool(self.link_service.get_backlinks(note_path)),
            has_outgoing_links=bool(self.link_service.get_outgoing_links(note_path)),
        )

    def get_all_orphan_categories(self) -> OrphanCategories:
        categories = OrphanCategories()
        for note_path in self.link_service.get_all_notes():
            note = self._classify(note_path)
            if not note.has_incoming_links and not note.has_outgoing_links:
                categories.true_orphans.append(note)
            elif note.has_outgoing_links and not note.has_incoming_links:
                categories.source_only.append(note)
            elif note.has_incoming_links and not note.has_outgoing_links:
                categories.sink_only.append(note)
        return categories

    def get_true_orphans(self) -> list[OrphanNote]:
        return self.get_all_orphan_categories().true_orphans

    def get_source_notes(self) -> list[OrphanNote]:
        return self.get_all_orphan_categories().source_only

    def get_sink_notes(self) -> list[OrphanNote]:
        return self.get_all_orphan_categories().sink_only

    def is_orphan(self, file_path: str) -> bool:
        note = self._classify(file_path)
        return not (note.has_incoming_links or note.has_outgoing_links)
