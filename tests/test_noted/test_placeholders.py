"""Unit tests for noted.placeholders and noted.orphans."""

import textwrap
from pathlib import Path

import pytest

from noted.links import LinkService
from noted.orphans import OrphansService
from noted.placeholders import PlaceholdersService


def _write_note(directory: Path, name: str, content: str) -> Path:
    path = directory / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(content), encoding="utf-8")
    return path


@pytest.fixture()
def links(tmp_path: Path) -> LinkService:
    _write_note(
        tmp_path,
        "alpha.md",
        """\
        Plan [[Future Idea]] soon.
        Links to [[beta]].
        """,
    )
    _write_note(tmp_path, "beta.md", "Again [[Future Idea|the idea]] and [[sub/real]].\n")
    _write_note(tmp_path, "gamma.md", "[[Future Idea]]\n")
    _write_note(tmp_path, "sub/real.md", "exists\n")
    _write_note(tmp_path, "lonely.md", "nobody links here\n")
    svc = LinkService(tmp_path)
    svc.build_backlinks_index()
    return svc


# ---------------------------------------------------------------------------
# Placeholders
# ---------------------------------------------------------------------------


class TestPlaceholders:
    def test_grouped_by_link_text(self, links: LinkService, tmp_path: Path):
        placeholders = PlaceholdersService(links).get_all_placeholders()
        assert list(placeholders) == ["Future Idea"]
        idea = placeholders["Future Idea"]
        assert idea.count == 3
        assert sorted(s.file for s in idea.sources) == sorted(
            str(tmp_path / name) for name in ("alpha.md", "beta.md", "gamma.md")
        )

    def test_sources_keep_context_and_display(self, links: LinkService, tmp_path: Path):
        idea = PlaceholdersService(links).get_all_placeholders()["Future Idea"]
        beta = next(s for s in idea.sources if s.file == str(tmp_path / "beta.md"))
        assert beta.line == 0
        assert beta.display_text == "the idea"
        assert "[[Future Idea|the idea]]" in beta.context

    def test_flat_list_and_counts(self, links: LinkService):
        service = PlaceholdersService(links)
        assert len(service.get_all_placeholders_flat()) == 3
        assert service.get_placeholder_counts() == {"Future Idea": 3}
        assert service.get_placeholder_targets() == ["Future Idea"]

    def test_repeats_in_one_file_each_count(self, tmp_path: Path):
        _write_note(tmp_path, "repeat.md", "[[missing]] then [[missing]]\nand again [[missing|m]]\n")
        svc = LinkService(tmp_path)
        placeholders = PlaceholdersService(svc).get_all_placeholders()
        missing = placeholders["missing"]
        assert missing.count == 3
        assert [s.line for s in missing.sources] == [0, 0, 1]
        assert {s.file for s in missing.sources} == {str(tmp_path / "repeat.md")}

    def test_in_file(self, links: LinkService, tmp_path: Path):
        found = PlaceholdersService(links).get_placeholders_in_file(str(tmp_path / "alpha.md"))
        assert [p.link_text for p in found] == ["Future Idea"]
        assert found[0].sources[0].line == 0

    def test_is_placeholder(self, links: LinkService):
        service = PlaceholdersService(links)
        assert service.is_placeholder("Future Idea")
        assert not service.is_placeholder("sub/real")
        assert not service.is_placeholder("BETA")

    def test_creating_note_clears_placeholder(self, links: LinkService, tmp_path: Path):
        _write_note(tmp_path, "Future Idea.md", "now real\n")
        assert PlaceholdersService(links).get_all_placeholders() == {}


# ---------------------------------------------------------------------------
# Orphans
# ---------------------------------------------------------------------------


class TestOrphans:
    def test_categories(self, links: LinkService):
        categories = OrphansService(links).get_all_orphan_categories()
        assert [n.basename for n in categories.true_orphans] == ["lonely"]
        assert sorted(n.basename for n in categories.source_only) == ["alpha", "gamma"]
        assert sorted(n.basename for n in categories.sink_only) == ["real"]

    def test_connected_both_ways_is_not_listed(self, links: LinkService, tmp_path: Path):
        # beta links out and is linked to
        service = OrphansService(links)
        listed = [
            n.file_path
            for n in service.get_true_orphans() + service.get_source_notes() + service.get_sink_notes()
        ]
        assert str(tmp_path / "beta.md") not in listed

    def test_is_orphan(self, links: LinkService, tmp_path: Path):
        service = OrphansService(links)
        assert service.is_orphan(str(tmp_path / "lonely.md"))
        assert not service.is_orphan(str(tmp_path / "alpha.md"))
