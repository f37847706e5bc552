"""Configuration for noted.

Settings live in the ``[noted]`` table of a TOML file::

    [noted]
    notes_path      = "~/Notes"
    templates_path  = "~/Notes/.templates"   # optional
    file_format     = "md"                   # "md" or "txt"
    embed_cache_ttl = 3600                   # seconds
    min_relevance_score = 0.5
    user            = "alex"

Environment variables (all optional; direct kwargs take precedence over
both the environment and the file):
    NOTED_NOTES_PATH      - root folder of the notes corpus
    NOTED_TEMPLATES_PATH  - folder holding templates and ``bundles/``
    NOTED_FILE_FORMAT     - extension used for newly created notes
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from noted.errors import ConfigurationError

#: Extensions recognised as notes when scanning the corpus.
SUPPORTED_EXTENSIONS: tuple[str, ...] = (".md", ".txt")

#: Extensions treated as images by embed classification.
IMAGE_EXTENSIONS: tuple[str, ...] = (".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp", ".bmp")

_FILE_FORMATS = ("md", "txt")


@dataclass
class NotedConfig:
    notes_path: Path
    templates_path: Path | None = None
    file_format: str = "md"
    embed_cache_ttl: float = 3600.0
    min_relevance_score: float = 0.5
    user: str = ""

    def __post_init__(self) -> None:
        self.notes_path = Path(self.notes_path).expanduser()
        if self.templates_path is None:
            self.templates_path = self.notes_path / ".templates"
        else:
            self.templates_path = Path(self.templates_path).expanduser()
        if self.file_format not in _FILE_FORMATS:
            raise ConfigurationError(
                f"Invalid file_format {self.file_format!r}; expected one of {', '.join(_FILE_FORMATS)}"
            )
        if not self.user:
            self.user = os.getenv("USER", "") or os.getenv("USERNAME", "")

    @property
    def bundles_path(self) -> Path:
        return Path(self.templates_path or self.notes_path / ".templates") / "bundles"


def _read_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as fh:
        data = tomllib.load(fh)
    return data.get("noted", data)


def load_config(path: Path | str | None = None, **overrides: Any) -> NotedConfig:
    """Build a :class:`NotedConfig` from *path*, the environment and *overrides*."""
    values: dict[str, Any] = {}
    if path is not None:
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {path}")
        try:
            values.update(_read_toml(path))
        except tomllib.TOMLDecodeError as exc:
            raise ConfigurationError(f"Invalid TOML in {path}: {exc}") from exc

    env_map = {
        "notes_path": "NOTED_NOTES_PATH",
        "templates_path": "NOTED_TEMPLATES_PATH",
        "file_format": "NOTED_FILE_FORMAT",
    }
    for key, env_var in env_map.items():
        env_value = os.getenv(env_var)
        if env_value:
            values[key] = env_value

    values.update({k: v for k, v in overrides.items() if v is not None})

    if not values.get("notes_path"):
        raise ConfigurationError("notes_path is not configured (set NOTED_NOTES_PATH or [noted].notes_path)")

    known = {"notes_path", "templates_path", "file_format", "embed_cache_ttl", "min_relevance_score", "user"}
    return NotedConfig(**{k: v for k, v in values.items() if k in known})
