"""TagService: the tag -> notes index and its reverse."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from noted.fs import FileSystem, LocalFileSystem, list_note_files
from noted.parser import extract_tags_from_content, format_tag_for_display, normalize_tag

log = logging.getLogger(__name__)

TagSortOrder = Literal["frequency", "alphabetical"]


@dataclass
class TagInfo:
    name: str
    count: int
    notes: list[str] = field(default_factory=list)


class TagService:
    """Index of normalized tags over every note under *notes_path*.

    The index is only ever rebuilt as a whole by :meth:`build_tag_index`,
    except for :meth:`update_index_for_file`, which leaves it in the same
    state a full rebuild would.
    """

    def __init__(self, notes_path: Path | str, fs: FileSystem | None = None) -> None:
        self.notes_path = os.path.normpath(str(notes_path))
        self.fs = fs or LocalFileSystem()
        self._notes_by_tag: dict[str, set[str]] = {}
        self._tags_by_note: dict[str, list[str]] = {}

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def build_tag_index(self) -> None:
        self.clear_cache()
        if not self.fs.path_exists(self.notes_path):
            log.warning("Notes folder %s does not exist; tag index is empty", self.notes_path)
            return
        for note_path in list_note_files(self.fs, self.notes_path):
            self._index_file(note_path)
        log.info("Tag index built: %d tags across %d notes", len(self._notes_by_tag), len(self._tags_by_note))

    def _index_file(self, file_path: str) -> None:
        try:
            content = self.fs.read_file(file_path)
        except OSError as exc:
            log.error("Error reading %s for tags: %s", file_path, exc)
            return
        tags = extract_tags_from_content(content)
        if not tags:
            return
        self._tags_by_note[file_path] = tags
        for tag in tags:
            self._notes_by_tag.setdefault(tag, set()).add(file_path)

    def _drop_file(self, file_path: str) -> None:
        for tag in self._tags_by_note.pop(file_path, []):
            notes = self._notes_by_tag.get(tag)
            if notes is None:
                continue
            notes.discard(file_path)
            if not notes:
                del self._notes_by_tag[tag]

    def update_index_for_file(self, file_path: str) -> None:
        """Re-read one note; a deleted file simply drops out of the index."""
        file_path = os.path.normpath(file_path)
        self._drop_file(file_path)
        if self.fs.path_exists(file_path):
            self._index_file(file_path)

    def clear_cache(self) -> None:
        self._notes_by_tag = {}
        self._tags_by_note = {}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_tags_for_note(self, note_path: str) -> list[str]:
        return list(self._tags_by_note.get(os.path.normpath(note_path), []))

    def get_notes_with_tag(self, tag: str) -> list[str]:
        return sorted(self._notes_by_tag.get(normalize_tag(tag), ()))

    def get_notes_with_tags(self, tags: list[str]) -> list[str]:
        """Notes carrying *all* of *tags*; an empty list matches nothing."""
        if not tags:
            return []
        result = set(self._notes_by_tag.get(normalize_tag(tags[0]), ()))
        for tag in tags[1:]:
            result &= self._notes_by_tag.get(normalize_tag(tag), set())
        return sorted(result)

    def get_all_tags(self, sort_order: TagSortOrder = "frequency") -> list[TagInfo]:
        tags = [TagInfo(name, len(notes), sorted(notes)) for name, notes in self._notes_by_tag.items()]
        if sort_order == "frequency":
            tags.sort(key=lambda t: (-t.count, t.name))
        else:
            tags.sort(key=lambda t: t.name)
        return tags

    def get_all_tag_labels(self) -> list[str]:
        """``#tag`` labels, alphabetical; used for completion lists."""
        return [format_tag_for_display(name) for name in sorted(self._notes_by_tag)]

    def get_tag_count(self) -> int:
        return len(self._notes_by_tag)

    def has_tag(self, tag: str) -> bool:
        return normalize_tag(tag) in self._notes_by_tag
