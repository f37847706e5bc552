"""NotesDB: tabular view of the notes folder.

An in-memory DuckDB table holds one row per note (path, title, tags, links,
modification time and front-matter as JSON).  Queries come back as
:mod:`polars` DataFrames::

    db = NotesDB.from_folder(fs, notes_path)
    db.table_view(filter_tag="meeting", order_by="modified DESC")
    db.tag_counts()
    db.tag_statistics().average_tags_per_note
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

import duckdb
import polars as pl

from noted.fs import FileSystem, LocalFileSystem, list_note_files
from noted.note import Note, parse_note

log = logging.getLogger(__name__)


@dataclass
class TagStatistics:
    total_tags: int
    tagged_notes: int
    untagged_notes: int
    #: ``(tag, note_count)``, most used first, at most ten
    most_used: list[tuple[str, int]] = field(default_factory=list)
    average_tags_per_note: float = 0.0


class NotesDB:
    def __init__(self, notes: list[Note]) -> None:
        self.conn: duckdb.DuckDBPyConnection = duckdb.connect(":memory:")
        self.refresh(notes)

    @classmethod
    def from_folder(cls, fs: FileSystem | None, notes_path: Path | str) -> "NotesDB":
        fs = fs or LocalFileSystem()
        notes = []
        for file_path in list_note_files(fs, str(notes_path)):
            try:
                notes.append(parse_note(file_path, fs))
            except OSError as exc:
                log.error("Skipping unreadable note %s: %s", file_path, exc)
        return cls(notes)

    # ------------------------------------------------------------------
    # Build / refresh
    # ------------------------------------------------------------------

    def refresh(self, notes: list[Note]) -> None:
        """Replace the table contents with *notes*."""
        self.conn.execute("""
            CREATE OR REPLACE TABLE notes (
                path        VARCHAR PRIMARY KEY,
                title       VARCHAR,
                tags        VARCHAR[],
                links       VARCHAR[],
                modified    TIMESTAMP,
                frontmatter JSON
            )
        """)
        rows = [
            (
                str(note.path),
                note.title,
                note.tags,
                note.links,
                note.modified,
                json.dumps(note.frontmatter, default=str),
            )
            for note in notes
        ]
        if rows:
            self.conn.executemany("INSERT OR REPLACE INTO notes VALUES (?,?,?,?,?,?)", rows)
        log.debug("Loaded %d notes into NotesDB", len(rows))

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def query(self, sql: str) -> pl.DataFrame:
        return self.conn.execute(sql).pl()

    def table_view(
        self,
        *,
        filter_tag: str | None = None,
        columns: list[str] | None = None,
        order_by: str = "title",
    ) -> pl.DataFrame:
        """Notes as a DataFrame, optionally restricted to one tag."""
        cols = ", ".join(columns) if columns else "path, title, tags, links, modified"
        params: list[object] = []
        where = ""
        if filter_tag:
            where = "WHERE list_contains(tags, ?)"
            params.append(filter_tag.lstrip("#").lower())
        safe_order = order_by.replace(";", "").replace("'", "")
        return self.conn.execute(f"SELECT {cols} FROM notes {where} ORDER BY {safe_order}", params).pl()

    def tag_counts(self) -> pl.DataFrame:
        """``tag``/``note_count`` table, most used first, ties alphabetical."""
        return self.conn.execute(
            """
            SELECT tag, COUNT(*) AS note_count
            FROM (SELECT unnest(tags) AS tag FROM notes)
            GROUP BY tag
            ORDER BY note_count DESC, tag
            """
        ).pl()

    def tag_statistics(self, top: int = 10) -> TagStatistics:
        counts = self.tag_counts()
        total_notes, tagged, instances = self.conn.execute(
            """
            SELECT
                COUNT(*),
                COUNT(*) FILTER (WHERE len(tags) > 0),
                COALESCE(SUM(len(tags)), 0)
            FROM notes
            """
        ).fetchone()
        return TagStatistics(
            total_tags=counts.height,
            tagged_notes=tagged,
            untagged_notes=total_notes - tagged,
            most_used=list(counts.head(top).iter_rows()),
            average_tags_per_note=instances / tagged if tagged else 0.0,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "NotesDB":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
