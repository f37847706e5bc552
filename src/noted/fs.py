"""File-system access layer.

Every service reads and writes notes through the :class:`FileSystem`
protocol so tests (or a host editor) can swap the backend without changing
call sites.  :class:`LocalFileSystem` is the pathlib implementation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Protocol, runtime_checkable

from noted.config import SUPPORTED_EXTENSIONS

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileStats:
    size: int
    mtime: datetime
    birthtime: datetime


@dataclass(frozen=True)
class DirEntry:
    name: str
    is_dir: bool


@runtime_checkable
class FileSystem(Protocol):
    """Common interface for note storage backends.

    Failures surface as :class:`OSError` (``FileNotFoundError``,
    ``PermissionError``, ...).
    """

    def path_exists(self, path: str) -> bool: ...

    def read_file(self, path: str) -> str: ...

    def write_file(self, path: str, content: str) -> None: ...

    def delete_file(self, path: str) -> None: ...

    def rename_file(self, old_path: str, new_path: str) -> None: ...

    def create_directory(self, path: str) -> None: ...

    def read_directory(self, path: str) -> list[DirEntry]: ...

    def get_file_stats(self, path: str) -> FileStats: ...


class LocalFileSystem:
    """:class:`FileSystem` backed by the local disk (UTF-8 text)."""

    def path_exists(self, path: str) -> bool:
        return Path(path).exists()

    def read_file(self, path: str) -> str:
        return Path(path).read_text(encoding="utf-8")

    def write_file(self, path: str, content: str) -> None:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")

    def delete_file(self, path: str) -> None:
        Path(path).unlink()

    def rename_file(self, old_path: str, new_path: str) -> None:
        target = Path(new_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        Path(old_path).rename(target)

    def create_directory(self, path: str) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)

    def read_directory(self, path: str) -> list[DirEntry]:
        return [DirEntry(p.name, p.is_dir()) for p in sorted(Path(path).iterdir())]

    def get_file_stats(self, path: str) -> FileStats:
        st = Path(path).stat()
        # st_birthtime only exists on some platforms
        birth = getattr(st, "st_birthtime", st.st_ctime)
        return FileStats(
            size=st.st_size,
            mtime=datetime.fromtimestamp(st.st_mtime),
            birthtime=datetime.fromtimestamp(birth),
        )


def is_note_file(name: str) -> bool:
    return name.endswith(SUPPORTED_EXTENSIONS)


def list_note_files(fs: FileSystem, root: str) -> list[str]:
    """Return every note file below *root* (recursive, sorted, hidden dirs skipped)."""
    notes: list[str] = []

    def _walk(directory: str) -> None:
        try:
            entries = fs.read_directory(directory)
        except OSError as exc:
            log.error("Error reading directory %s: %s", directory, exc)
            return
        for entry in sorted(entries, key=lambda e: e.name):
            full_path = str(Path(directory) / entry.name)
            if entry.is_dir:
                if not entry.name.startswith("."):
                    _walk(full_path)
            elif is_note_file(entry.name):
                notes.append(full_path)

    if fs.path_exists(root):
        _walk(root)
    return sorted(notes)
