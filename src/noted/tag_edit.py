"""Bulk tag edits: rename, merge and delete across the notes folder.

Edits are applied file by file.  A file that cannot be read or written is
recorded in :attr:`BulkEditResult.failures` and the run continues; files
already written stay written.  With ``rollback_on_failure`` the run stops at
the first failure instead and every file written so far gets its original
content back.  Afterwards the caller rebuilds the
:class:`~noted.tags.TagService` index.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from noted.errors import ValidationError
from noted.fs import FileSystem
from noted.parser import (
    TagOccurrence,
    extract_tags_from_content,
    find_tag_occurrences,
    inline_tag_occurrences,
    is_valid_tag,
    normalize_tag,
)
from noted.tagparser import NoteMetadata, parse_tags, write_tags
from noted.tags import TagService

log = logging.getLogger(__name__)


@dataclass
class BulkEditResult:
    files_updated: int = 0
    occurrences_updated: int = 0
    #: ``(path, reason)`` for every file that could not be edited
    failures: list[tuple[str, str]] = field(default_factory=list)
    #: set when a failure undid the files already written
    rolled_back: bool = False

    @property
    def ok(self) -> bool:
        return not self.failures


# ---------------------------------------------------------------------------
# Content rewriting
# ---------------------------------------------------------------------------


def _rewrite_frontmatter(content: str, old: str, new: str | None, now: datetime | None) -> tuple[str, int]:
    names = parse_tags(content).tag_names
    if old not in names:
        return content, 0
    if new is None:
        updated = [n for n in names if n != old]
    else:
        updated = list(dict.fromkeys(new if n == old else n for n in names))
    return write_tags(content, NoteMetadata.from_names(updated), now=now), 1


def _strip_token(line: str, start: int, end: int) -> str:
    """Cut ``line[start:end]`` together with one adjoining space."""
    if start > 0 and line[start - 1] == " ":
        start -= 1
    elif end < len(line) and line[end] == " ":
        end += 1
    return line[:start] + line[end:]


def _rewrite_inline(content: str, old: str, new: str | None) -> tuple[str, int]:
    hits = [o for o in inline_tag_occurrences(content) if o.tag == old]
    if not hits:
        return content, 0

    lines = content.split("\n")
    emptied: set[int] = set()
    for occurrence in sorted(hits, key=lambda o: (o.range.line, o.range.start_col), reverse=True):
        r = occurrence.range
        line = lines[r.line]
        if new is None:
            lines[r.line] = _strip_token(line, r.start_col, r.end_col)
            # a bare "Tags:" label goes with its last tag
            if lines[r.line].strip().lower() in ("", "tags:"):
                emptied.add(r.line)
        else:
            lines[r.line] = f"{line[: r.start_col]}#{new}{line[r.end_col :]}"

    if emptied:
        lines = [line for idx, line in enumerate(lines) if idx not in emptied]
    return "\n".join(lines), len(hits)


def retag_content(content: str, old: str, new: str | None, now: datetime | None = None) -> tuple[str, int]:
    """Replace tag *old* with *new* in *content*, or drop it when *new* is ``None``.

    When the note already carries *new*, inline ``#old`` tokens are removed
    rather than renamed and the front-matter list is de-duplicated, so the
    note ends up with a single *new*.  Returns ``(content, occurrences)``.
    """
    if new is not None and new in extract_tags_from_content(content):
        content, fm_count = _rewrite_frontmatter(content, old, new, now)
        content, inline_count = _rewrite_inline(content, old, None)
        return content, fm_count + inline_count

    content, fm_count = _rewrite_frontmatter(content, old, new, now)
    content, inline_count = _rewrite_inline(content, old, new)
    return content, fm_count + inline_count


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


class TagEditService:
    def __init__(self, tag_service: TagService, fs: FileSystem | None = None) -> None:
        self.tag_service = tag_service
        self.fs = fs or tag_service.fs

    def validate_tag_rename(self, old_tag: str, new_tag: str) -> str | None:
        """Human-readable reason the rename is refused, or ``None``."""
        if not new_tag or not new_tag.strip():
            return "Tag name cannot be empty"
        new = normalize_tag(new_tag)
        if not is_valid_tag(new):
            return (
                f"Invalid tag name '{new_tag.strip()}'. Tags must start with a letter and "
                "contain only lowercase letters, numbers and single hyphens."
            )
        if normalize_tag(old_tag) == new:
            return "New tag name is the same as the old tag name"
        return None

    def _restore(self, originals: dict[str, str], result: BulkEditResult) -> None:
        for note_path, content in originals.items():
            try:
                self.fs.write_file(note_path, content)
            except OSError as exc:
                log.error("Failed to restore %s: %s", note_path, exc)
                result.failures.append((note_path, f"restore failed: {exc}"))
        log.warning("Rolled back %d file(s)", len(originals))
        result.rolled_back = True
        result.files_updated = 0
        result.occurrences_updated = 0

    def _apply(self, old: str, new: str | None, action: str, rollback_on_failure: bool = False) -> BulkEditResult:
        result = BulkEditResult()
        originals: dict[str, str] = {}
        for note_path in self.tag_service.get_notes_with_tag(old):
            try:
                content = self.fs.read_file(note_path)
                updated, count = retag_content(content, old, new)
                if updated == content:
                    continue
                self.fs.write_file(note_path, updated)
                originals[note_path] = content
            except OSError as exc:
                log.error("Failed to %s tag '%s' in %s: %s", action, old, note_path, exc)
                result.failures.append((note_path, str(exc)))
                if rollback_on_failure:
                    self._restore(originals, result)
                    break
                continue
            result.files_updated += 1
            result.occurrences_updated += count
            log.info("%s '%s' in %s (%d occurrence(s))", action.capitalize(), old, note_path, count)

        log.info(
            "%s '%s': %d file(s), %d occurrence(s), %d failure(s)",
            action.capitalize(),
            old,
            result.files_updated,
            result.occurrences_updated,
            len(result.failures),
        )
        return result

    def rename_tag(self, old_tag: str, new_tag: str, rollback_on_failure: bool = False) -> BulkEditResult:
        """Rename *old_tag* to *new_tag* in every note that has it.

        If *new_tag* already exists this merges the two; asking whether that
        is wanted is up to the caller (see :class:`TagRenameProvider`).
        """
        error = self.validate_tag_rename(old_tag, new_tag)
        if error:
            raise ValidationError(error)
        return self._apply(normalize_tag(old_tag), normalize_tag(new_tag), "rename", rollback_on_failure)

    def merge_tags(self, target_tag: str, source_tag: str, rollback_on_failure: bool = False) -> BulkEditResult:
        """Fold *source_tag* into *target_tag*; notes keep a single *target_tag*."""
        target, source = normalize_tag(target_tag), normalize_tag(source_tag)
        if target == source:
            raise ValidationError(f"Cannot merge tag '{target}' into itself")
        if not is_valid_tag(target):
            raise ValidationError(f"Invalid tag name '{target_tag.strip()}'")
        return self._apply(source, target, "merge", rollback_on_failure)

    def delete_tag(self, tag: str, rollback_on_failure: bool = False) -> BulkEditResult:
        return self._apply(normalize_tag(tag), None, "delete", rollback_on_failure)


class TagRenameProvider:
    """Rename the tag under a cursor position."""

    def __init__(self, tag_edit_service: TagEditService) -> None:
        self.tag_edit_service = tag_edit_service

    @property
    def fs(self) -> FileSystem:
        return self.tag_edit_service.fs

    def prepare_rename(self, file_path: str, line: int, col: int) -> TagOccurrence:
        try:
            content = self.fs.read_file(file_path)
        except OSError as exc:
            raise ValidationError(f"Cannot read {file_path}: {exc}") from exc
        for occurrence in find_tag_occurrences(content):
            if occurrence.range.contains(line, col):
                return occurrence
        raise ValidationError("No tag found at cursor position")

    def provide_rename(
        self,
        file_path: str,
        line: int,
        col: int,
        new_name: str,
        confirm_merge: Callable[[str], bool] | None = None,
    ) -> BulkEditResult | None:
        """Rename the tag at ``(line, col)``; ``None`` when a merge is declined.

        *confirm_merge* is asked with the new tag name when that tag already
        exists; without it, merges are declined.
        """
        old = self.prepare_rename(file_path, line, col).tag
        error = self.tag_edit_service.validate_tag_rename(old, new_name)
        if error:
            raise ValidationError(error)

        new = normalize_tag(new_name)
        if self.tag_edit_service.tag_service.has_tag(new):
            if confirm_merge is None or not confirm_merge(new):
                log.info("Rename of '%s' to existing tag '%s' declined", old, new)
                return None
            return self.tag_edit_service.merge_tags(new, old)
        return self.tag_edit_service.rename_tag(old, new)
