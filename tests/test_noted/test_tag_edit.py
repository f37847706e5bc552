"""Unit tests for noted.tag_edit: bulk rename, merge and delete."""

import textwrap
from pathlib import Path

import pytest

from noted.errors import ValidationError
from noted.fs import LocalFileSystem
from noted.tag_edit import TagEditService, TagRenameProvider, retag_content
from noted.tagparser import parse_tags
from noted.tags import TagService


def _write_note(directory: Path, name: str, content: str) -> Path:
    path = directory / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(content), encoding="utf-8")
    return path


def _indexed(directory: Path, fs=None) -> TagService:
    svc = TagService(directory, fs)
    svc.build_tag_index()
    return svc


class ReadOnlyFileSystem(LocalFileSystem):
    """Refuses writes to the listed paths."""

    def __init__(self, locked: set[str]) -> None:
        self.locked = locked

    def write_file(self, path: str, content: str) -> None:
        if path in self.locked:
            raise PermissionError(f"{path} is read-only")
        super().write_file(path, content)


# ---------------------------------------------------------------------------
# Content rewriting
# ---------------------------------------------------------------------------


class TestRetagContent:
    def test_inline_rename_is_whole_token(self):
        content, count = retag_content("#old and #old-thing", "old", "new")
        assert content == "#new and #old-thing"
        assert count == 1

    def test_inline_in_code_untouched(self):
        content, count = retag_content("```\n#old\n```\n#old", "old", "new")
        assert content == "```\n#old\n```\n#new"
        assert count == 1

    def test_delete_strips_token_and_empty_lines(self):
        content = "---\ntags: [gone]\n---\n\nText #gone here\n#gone\nEnd"
        updated, count = retag_content(content, "gone", None)
        assert updated == "Text here\nEnd"
        assert count == 3

    def test_merge_into_existing_tag_dedupes(self):
        content = "---\ntags: [bug, defect]\n---\n\nSee #defect"
        updated, _ = retag_content(content, "defect", "bug")
        assert parse_tags(updated).tag_names == ["bug"]
        assert "#defect" not in updated
        assert updated.endswith("See")


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


class TestRenameTag:
    def test_lifecycle(self, tmp_path: Path):
        note = _write_note(tmp_path, "note.md", "---\ntags: [bug, urgent]\n---\n\nContent")
        tags = _indexed(tmp_path)
        result = TagEditService(tags).rename_tag("bug", "defect")
        assert (result.files_updated, result.ok) == (1, True)

        tags.build_tag_index()
        assert tags.get_notes_with_tag("bug") == []
        assert tags.get_notes_with_tag("defect") == [str(note)]
        assert parse_tags(note.read_text(encoding="utf-8")).tag_names == ["defect", "urgent"]
        assert note.read_text(encoding="utf-8").endswith("\n\nContent")

    @pytest.mark.parametrize("new", ["", "   ", "Has Space", "9lives", "bug"])
    def test_invalid_rename_rejected(self, tmp_path: Path, new):
        _write_note(tmp_path, "note.md", "#bug")
        service = TagEditService(_indexed(tmp_path))
        assert service.validate_tag_rename("bug", new) is not None
        with pytest.raises(ValidationError):
            service.rename_tag("bug", new)

    def test_new_name_is_normalized(self, tmp_path: Path):
        note = _write_note(tmp_path, "note.md", "#bug")
        TagEditService(_indexed(tmp_path)).rename_tag("#Bug", "#Defect")
        assert note.read_text(encoding="utf-8") == "#defect"

    def test_failures_are_collected(self, tmp_path: Path):
        good = _write_note(tmp_path, "good.md", "#bug")
        locked = _write_note(tmp_path, "locked.md", "#bug")
        fs = ReadOnlyFileSystem({str(locked)})
        result = TagEditService(_indexed(tmp_path, fs)).rename_tag("bug", "defect")
        assert result.files_updated == 1
        assert not result.ok
        assert [path for path, _ in result.failures] == [str(locked)]
        assert good.read_text(encoding="utf-8") == "#defect"
        assert locked.read_text(encoding="utf-8") == "#bug"

    def test_rollback_restores_written_files(self, tmp_path: Path):
        first = _write_note(tmp_path, "a.md", "Body #bug")
        locked = _write_note(tmp_path, "b.md", "#bug")
        fs = ReadOnlyFileSystem({str(locked)})
        result = TagEditService(_indexed(tmp_path, fs)).rename_tag("bug", "defect", rollback_on_failure=True)
        assert result.rolled_back
        assert (result.files_updated, result.occurrences_updated) == (0, 0)
        assert [path for path, _ in result.failures] == [str(locked)]
        assert first.read_text(encoding="utf-8") == "Body #bug"
        assert locked.read_text(encoding="utf-8") == "#bug"


class TestMergeTags:
    def test_merge_scenario(self, tmp_path: Path):
        a = _write_note(tmp_path, "a.md", "---\ntags: [bug, urgent]\n---\n\nA")
        b = _write_note(tmp_path, "b.md", "---\ntags: [defect, feature]\n---\n\nB")
        c = _write_note(tmp_path, "c.md", "---\ntags: [bug, defect]\n---\n\nC")
        tags = _indexed(tmp_path)

        result = TagEditService(tags).merge_tags("bug", "defect")
        assert result.files_updated == 2

        tags.build_tag_index()
        assert tags.get_notes_with_tag("bug") == [str(a), str(b), str(c)]
        assert tags.get_notes_with_tag("defect") == []
        assert parse_tags(b.read_text(encoding="utf-8")).tag_names == ["bug", "feature"]
        assert parse_tags(c.read_text(encoding="utf-8")).tag_names == ["bug"]
        assert a.read_text(encoding="utf-8") == "---\ntags: [bug, urgent]\n---\n\nA"

    def test_merge_into_itself_rejected(self, tmp_path: Path):
        service = TagEditService(_indexed(tmp_path))
        with pytest.raises(ValidationError):
            service.merge_tags("bug", "#BUG")
        with pytest.raises(ValidationError):
            service.merge_tags("Not Valid", "bug")


class TestDeleteTag:
    def test_delete(self, tmp_path: Path):
        note = _write_note(tmp_path, "note.md", "---\ntags: [gone, kept]\n---\n\nText #gone here")
        other = _write_note(tmp_path, "other.md", "#kept only")
        tags = _indexed(tmp_path)
        result = TagEditService(tags).delete_tag("gone")
        assert (result.files_updated, result.occurrences_updated) == (1, 2)
        assert other.read_text(encoding="utf-8") == "#kept only"

        tags.build_tag_index()
        assert not tags.has_tag("gone")
        assert tags.get_notes_with_tag("kept") == [str(note), str(other)]

    def test_label_line_removed_with_last_tag(self, tmp_path: Path):
        note = _write_note(tmp_path, "note.md", "Body\nTags: #bug\n")
        other = _write_note(tmp_path, "other.md", "Body\ntags: #bug #kept\n")
        TagEditService(_indexed(tmp_path)).delete_tag("bug")
        assert note.read_text(encoding="utf-8") == "Body\n"
        assert other.read_text(encoding="utf-8") == "Body\ntags: #kept\n"

    def test_unknown_tag_changes_nothing(self, tmp_path: Path):
        _write_note(tmp_path, "note.md", "#kept")
        result = TagEditService(_indexed(tmp_path)).delete_tag("absent")
        assert (result.files_updated, result.failures) == (0, [])


# ---------------------------------------------------------------------------
# Rename at cursor
# ---------------------------------------------------------------------------


@pytest.fixture()
def provider(tmp_path: Path) -> TagRenameProvider:
    _write_note(tmp_path, "a.md", "Text #bug here")
    _write_note(tmp_path, "b.md", "#defect")
    _write_note(tmp_path, "fm.md", "---\ntags: [topic]\n---\nBody")
    return TagRenameProvider(TagEditService(_indexed(tmp_path)))


class TestTagRenameProvider:
    def test_prepare_inline(self, provider: TagRenameProvider, tmp_path: Path):
        occurrence = provider.prepare_rename(str(tmp_path / "a.md"), 0, 6)
        assert occurrence.tag == "bug"
        assert (occurrence.range.start_col, occurrence.range.end_col) == (5, 9)

    def test_prepare_frontmatter(self, provider: TagRenameProvider, tmp_path: Path):
        assert provider.prepare_rename(str(tmp_path / "fm.md"), 1, 9).tag == "topic"

    def test_prepare_without_tag(self, provider: TagRenameProvider, tmp_path: Path):
        with pytest.raises(ValidationError):
            provider.prepare_rename(str(tmp_path / "a.md"), 0, 1)

    def test_plain_rename(self, provider: TagRenameProvider, tmp_path: Path):
        result = provider.provide_rename(str(tmp_path / "a.md"), 0, 6, "fresh")
        assert result.files_updated == 1
        assert (tmp_path / "a.md").read_text(encoding="utf-8") == "Text #fresh here"

    def test_declined_merge(self, provider: TagRenameProvider, tmp_path: Path):
        asked = []
        result = provider.provide_rename(
            str(tmp_path / "a.md"), 0, 6, "defect", confirm_merge=lambda tag: asked.append(tag) or False
        )
        assert result is None
        assert asked == ["defect"]
        assert (tmp_path / "a.md").read_text(encoding="utf-8") == "Text #bug here"

    def test_no_confirmation_callback_declines(self, provider: TagRenameProvider, tmp_path: Path):
        assert provider.provide_rename(str(tmp_path / "a.md"), 0, 6, "defect") is None

    def test_confirmed_merge(self, provider: TagRenameProvider, tmp_path: Path):
        result = provider.provide_rename(str(tmp_path / "a.md"), 0, 6, "defect", confirm_merge=lambda tag: True)
        assert result.files_updated == 1
        assert (tmp_path / "a.md").read_text(encoding="utf-8") == "Text #defect here"

    def test_invalid_new_name(self, provider: TagRenameProvider, tmp_path: Path):
        with pytest.raises(ValidationError):
            provider.provide_rename(str(tmp_path / "a.md"), 0, 6, "Not Valid")
