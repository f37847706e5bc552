"""LinkService: wiki-link extraction, resolution and the backlink index.

The backlink index is rebuilt from scratch by :meth:`LinkService.build_backlinks_index`;
write operations (``update_links_*``) never patch it.  Callers rebuild after
renames so the index reflects the files that exist afterwards.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from noted.config import SUPPORTED_EXTENSIONS
from noted.fs import FileSystem, LocalFileSystem, list_note_files
from noted.parser import LINK_PATTERN, Link, extract_links

log = logging.getLogger(__name__)


@dataclass
class Backlink:
    source_file: str
    link_text: str
    line: int
    context: str
    display_text: str | None = None


@dataclass
class RenameResult:
    files_updated: int = 0
    links_updated: int = 0


@dataclass
class NoteLookup:
    """Name tables built from one listing of the corpus."""

    by_name: dict[str, str]
    by_stem: dict[str, str]


def _strip_fragment(link_text: str) -> str:
    """``note#Heading`` resolves like ``note``."""
    target = link_text.strip()
    if "#" in target and not target.startswith("#"):
        target = target.split("#", 1)[0]
    return target.strip()


def _depth_then_path(path: str) -> tuple[int, str]:
    return (path.count(os.sep), path)


class LinkService:
    """Extracts ``[[links]]`` and maintains the target -> backlinks index."""

    def __init__(self, notes_path: Path | str, fs: FileSystem | None = None) -> None:
        self.notes_path = os.path.normpath(str(notes_path))
        self.fs = fs or LocalFileSystem()
        self._backlinks: dict[str, list[Backlink]] = {}
        self._outgoing: dict[str, list[Link]] = {}

    # ------------------------------------------------------------------
    # Corpus listing / resolution
    # ------------------------------------------------------------------

    def get_all_notes(self) -> list[str]:
        return list_note_files(self.fs, self.notes_path)

    def build_lookup(self, notes: list[str] | None = None) -> NoteLookup:
        by_name: dict[str, str] = {}
        by_stem: dict[str, str] = {}
        # shallowest path wins when several folders hold the same basename
        for note_path in sorted(notes if notes is not None else self.get_all_notes(), key=_depth_then_path):
            name = os.path.basename(note_path)
            by_name.setdefault(name, note_path)
            by_stem.setdefault(os.path.splitext(name)[0].lower(), note_path)
        return NoteLookup(by_name, by_stem)

    def _candidates(self, target: str) -> list[str]:
        if target.lower().endswith(SUPPORTED_EXTENSIONS):
            return [target]
        return [f"{target}{ext}" for ext in SUPPORTED_EXTENSIONS]

    def _resolve(self, link_text: str, lookup: NoteLookup) -> str | None:
        target = _strip_fragment(link_text)
        if not target:
            return None

        if "/" in target or "\\" in target:
            for candidate in self._candidates(target):
                full_path = os.path.normpath(os.path.join(self.notes_path, candidate))
                if self.fs.path_exists(full_path):
                    return full_path
            return None

        for candidate in self._candidates(target):
            if candidate in lookup.by_name:
                return lookup.by_name[candidate]

        stem = target.lower()
        for ext in SUPPORTED_EXTENSIONS:
            if stem.endswith(ext):
                stem = stem[: -len(ext)]
        return lookup.by_stem.get(stem)

    def resolve_link(self, link_text: str, lookup: NoteLookup | None = None) -> str | None:
        """Resolve *link_text* to an existing note path, or ``None``.

        Order: path-qualified text relative to the notes root, exact file
        name, then case-insensitive stem.  Ties between folders go to the
        shallowest path, then alphabetical order.  Scans resolving many links
        pass a *lookup* from :meth:`build_lookup` to list the corpus once.
        """
        if lookup is None:
            lookup = self.build_lookup()
        return self._resolve(link_text, lookup)

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    def extract_links(self, text: str) -> list[Link]:
        return extract_links(text)

    def extract_links_from_file(self, file_path: str) -> list[Link]:
        try:
            content = self.fs.read_file(file_path)
        except OSError as exc:
            log.error("Error extracting links from %s: %s", file_path, exc)
            return []
        return extract_links(content)

    # ------------------------------------------------------------------
    # Backlink index
    # ------------------------------------------------------------------

    def build_backlinks_index(self) -> None:
        """(Re-)scan every note and rebuild the backlink and outgoing-link maps."""
        self._backlinks = {}
        self._outgoing = {}

        notes = self.get_all_notes()
        lookup = self.build_lookup(notes)
        for source_file in notes:
            try:
                content = self.fs.read_file(source_file)
            except OSError as exc:
                log.error("Error reading %s while indexing links: %s", source_file, exc)
                continue
            lines = content.split("\n")
            links = extract_links(content)
            self._outgoing[source_file] = links

            for link in links:
                target_path = self._resolve(link.link_text, lookup)
                if target_path is None:
                    continue
                link.target_path = target_path
                self._backlinks.setdefault(target_path, []).append(
                    Backlink(
                        source_file=source_file,
                        link_text=link.link_text,
                        line=link.range.line,
                        context=lines[link.range.line].strip(),
                        display_text=link.display_text,
                    )
                )

        log.info("Backlinks index built: %d target notes with backlinks", len(self._backlinks))

    def get_backlinks(self, file_path: str) -> list[Backlink]:
        return list(self._backlinks.get(os.path.normpath(file_path), []))

    def get_outgoing_links(self, file_path: str) -> list[Link]:
        return list(self._outgoing.get(os.path.normpath(file_path), []))

    def indexed_notes(self) -> list[str]:
        """Notes seen by the last index build."""
        return list(self._outgoing)

    def get_orphan_notes(self) -> list[str]:
        """Notes that no other note links to (per the last index build)."""
        return [note for note in self._outgoing if note not in self._backlinks]

    # ------------------------------------------------------------------
    # Rewriting
    # ------------------------------------------------------------------

    def _relative_key(self, path: str) -> str:
        rel = os.path.relpath(path, self.notes_path)
        return str(PurePosixPath(*Path(os.path.splitext(rel)[0]).parts))

    def _rename_lookup(self, old_target: str, new_target: str) -> NoteLookup:
        """Lookup of the corpus as it was before *old_target* became *new_target*.

        Works whether or not the file has already been moved on disk.
        """
        notes = [n for n in self.get_all_notes() if n != new_target]
        if old_target not in notes:
            notes.append(old_target)
        return self.build_lookup(notes)

    def update_links_in_file(
        self,
        file_path: str,
        old_target: str,
        new_target: str,
        lookup: NoteLookup | None = None,
    ) -> int:
        """Point every link that resolves to *old_target* in *file_path* at *new_target*.

        Links that merely share the old file name but resolve to a note in
        another folder are left alone.  Only the target segment changes;
        display text and ``#section`` fragments are kept.  Returns the number
        of links rewritten.
        """
        old_target = os.path.normpath(old_target)
        new_target = os.path.normpath(new_target)
        if lookup is None:
            lookup = self._rename_lookup(old_target, new_target)
        new_stem = Path(new_target).stem
        old_rel = self._relative_key(old_target)
        new_rel = self._relative_key(new_target)
        count = 0

        def _replace(match: re.Match[str]) -> str:
            nonlocal count
            raw = match.group(1).strip()
            target = _strip_fragment(raw)
            fragment = raw[len(target) :]
            bare = target
            for ext in SUPPORTED_EXTENSIONS:
                if bare.lower().endswith(ext):
                    bare = bare[: -len(ext)]
            suffix = target[len(bare) :]

            if "/" in bare or "\\" in bare:
                # a path-qualified link names its target exactly
                if bare.replace("\\", "/").lower() != old_rel.lower():
                    return match.group(0)
                replacement = new_rel
            elif self._resolve(target, lookup) == old_target:
                replacement = new_stem
            else:
                return match.group(0)

            count += 1
            display = f"|{match.group(2)}" if match.group(2) is not None else ""
            return f"[[{replacement}{suffix}{fragment}{display}]]"

        try:
            content = self.fs.read_file(file_path)
            updated = LINK_PATTERN.sub(_replace, content)
            if count > 0:
                self.fs.write_file(file_path, updated)
                log.info("Updated %d link(s) in %s", count, file_path)
        except OSError as exc:
            log.error("Error updating links in %s: %s", file_path, exc)
            return 0
        return count

    def update_links_on_rename(self, old_path: str, new_path: str) -> RenameResult:
        """Rewrite links in every note that currently links to *old_path*.

        Uses the index from the last :meth:`build_backlinks_index`; it neither
        renames the file nor rebuilds the index.
        """
        old_path = os.path.normpath(old_path)
        new_path = os.path.normpath(new_path)
        lookup = self._rename_lookup(old_path, new_path)
        result = RenameResult()
        sources = dict.fromkeys(b.source_file for b in self.get_backlinks(old_path))
        for source_file in sources:
            count = self.update_links_in_file(source_file, old_path, new_path, lookup)
            if count > 0:
                result.files_updated += 1
                result.links_updated += count
        return result
