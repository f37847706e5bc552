"""Template bundles: create a set of linked notes in one go.

A bundle lives in ``<templates>/bundles/<id>.bundle.json``::

    {
      "id": "project-kickoff",
      "name": "Project kickoff",
      "variables": [{"name": "project", "type": "string", "required": true}],
      "notes": [
        {"name": "{project}-plan", "template": "research", "folder": "Projects/{project}",
         "links": ["{project}-meeting"]},
        {"name": "{project}-meeting", "template": "meeting", "folder": "Projects/{project}"}
      ],
      "post_create": {"open_notes": ["{project}-plan"]}
    }
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

from noted.errors import BundleNotFoundError, NotedError, ValidationError
from noted.fs import FileSystem, LocalFileSystem
from noted.templates.render import TemplateStore
from noted.templates.types import VARIABLE_TYPES, TemplateBundle, TemplateVariable

log = logging.getLogger(__name__)

BUNDLE_SUFFIX = ".bundle.json"

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TRUE = {"yes", "y", "true", "1", "on"}
_FALSE = {"no", "n", "false", "0", "off"}


@dataclass
class BundleResult:
    created: list[str] = field(default_factory=list)
    #: existing files left untouched
    skipped: list[str] = field(default_factory=list)
    failures: list[tuple[str, str]] = field(default_factory=list)
    #: created paths named by ``post_create.open_notes``
    open_notes: list[str] = field(default_factory=list)
    message: str = ""


def coerce_variable(variable: TemplateVariable, raw: Any) -> Any:
    """Convert *raw* to *variable*'s type; ``None`` means "not given"."""
    if raw is None or raw == "":
        return None
    kind = variable.type
    if kind not in VARIABLE_TYPES:
        raise ValidationError(f"Unsupported variable type for {variable.name}: {kind}")

    if kind == "number":
        if isinstance(raw, bool):
            raise ValidationError(f"{variable.name} must be a number")
        if isinstance(raw, (int, float)):
            return raw
        try:
            number = float(str(raw).strip())
        except ValueError:
            raise ValidationError(f"{variable.name} must be a number, got {raw!r}") from None
        return int(number) if number.is_integer() else number

    if kind == "boolean":
        if isinstance(raw, bool):
            return raw
        word = str(raw).strip().lower()
        if word in _TRUE:
            return True
        if word in _FALSE:
            return False
        raise ValidationError(f"{variable.name} must be yes or no, got {raw!r}")

    if kind == "enum":
        if not variable.values:
            raise ValidationError(f"Enum variable {variable.name} has no values defined")
        if str(raw) not in variable.values:
            raise ValidationError(f"{variable.name} must be one of {', '.join(variable.values)}")
        return str(raw)

    if kind == "date":
        text = raw.strftime("%Y-%m-%d") if isinstance(raw, datetime) else str(raw).strip()
        if not _DATE_RE.match(text):
            raise ValidationError(f"{variable.name} must be a date (YYYY-MM-DD), got {raw!r}")
        return text

    return str(raw)


class BundleService:
    def __init__(
        self,
        templates: TemplateStore,
        notes_path: Path | str,
        *,
        file_format: str = "md",
        fs: FileSystem | None = None,
        bundles_path: Path | str | None = None,
    ) -> None:
        self.templates = templates
        self.notes_path = os.path.normpath(str(notes_path))
        self.file_format = file_format
        self.fs = fs or templates.fs or LocalFileSystem()
        self.bundles_path = os.path.normpath(
            str(bundles_path) if bundles_path else os.path.join(templates.templates_path, "bundles")
        )

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    def _bundle_file(self, bundle_id: str) -> str:
        return os.path.join(self.bundles_path, f"{bundle_id}{BUNDLE_SUFFIX}")

    def load_bundle(self, bundle_id: str) -> TemplateBundle:
        path = self._bundle_file(bundle_id)
        if not self.fs.path_exists(path):
            raise BundleNotFoundError(bundle_id)
        try:
            return TemplateBundle.from_dict(json.loads(self.fs.read_file(path)))
        except (json.JSONDecodeError, KeyError, TypeError, AttributeError) as exc:
            raise ValidationError(f"Invalid bundle file {path}: {exc}") from exc

    def get_all_bundles(self) -> list[TemplateBundle]:
        if not self.fs.path_exists(self.bundles_path):
            return []
        bundles = []
        for entry in self.fs.read_directory(self.bundles_path):
            if entry.is_dir or not entry.name.endswith(BUNDLE_SUFFIX):
                continue
            bundle_id = entry.name[: -len(BUNDLE_SUFFIX)]
            try:
                bundles.append(self.load_bundle(bundle_id))
            except (NotedError, OSError) as exc:
                log.error("Failed to load bundle %s: %s", bundle_id, exc)
        return bundles

    def save_bundle(self, bundle: TemplateBundle) -> str:
        self.fs.create_directory(self.bundles_path)
        path = self._bundle_file(bundle.id)
        self.fs.write_file(path, json.dumps(bundle.to_dict(), indent=2))
        log.info("Saved bundle %s to %s", bundle.id, path)
        return path

    # ------------------------------------------------------------------
    # Variables
    # ------------------------------------------------------------------

    def collect_variables(
        self,
        variables: list[TemplateVariable],
        prompt: Callable[[TemplateVariable], Any],
    ) -> dict[str, Any]:
        """Ask *prompt* for each variable and return the coerced values.

        Missing answers fall back to the variable's default; a required
        variable without either raises :class:`ValidationError`.
        """
        values: dict[str, Any] = {}
        for variable in variables:
            value = coerce_variable(variable, prompt(variable))
            if value is None:
                value = variable.default
            if value is None and variable.required:
                raise ValidationError(f"Required variable not provided: {variable.name}")
            values[variable.name] = value
        return values

    @staticmethod
    def replace_variables(text: str, values: dict[str, Any]) -> str:
        for name, value in values.items():
            text = text.replace(f"{{{name}}}", "" if value is None else str(value))
        return text

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    @staticmethod
    def _related_notes_section(links: list[str]) -> str:
        if not links:
            return ""
        return "\n\n## Related Notes\n\n" + "\n".join(f"- [[{link}]]" for link in links)

    def create_from_bundle(
        self,
        bundle_id: str,
        values: dict[str, Any] | None = None,
        *,
        overwrite: bool = False,
        date: datetime | None = None,
    ) -> BundleResult:
        """Create every note of *bundle_id* under the notes folder.

        *values* supplies the bundle variables by name.  Each note is
        rendered from its template, gets a ``## Related Notes`` list linking
        the other bundle notes it names and is written to
        ``<notes>/<folder>/<name>.<format>``.  A note that fails is logged
        and recorded; the rest are still created.
        """
        bundle = self.load_bundle(bundle_id)
        supplied = values or {}
        variables = self.collect_variables(bundle.variables, lambda v: supplied.get(v.name))
        # values not declared by the bundle are still substituted
        variables = {**{k: v for k, v in supplied.items() if k not in variables}, **variables}
        date = date or datetime.now()

        names = {note.name: self.replace_variables(note.name, variables) for note in bundle.notes}
        result = BundleResult()
        for note in bundle.notes:
            note_name = names[note.name]
            try:
                content = self.replace_variables(self.templates.generate(note.template, date, note_name), variables)
                links = [self.replace_variables(names.get(link, link), variables) for link in note.links]
                content += self._related_notes_section(links)

                folder = os.path.join(self.notes_path, self.replace_variables(note.folder, variables))
                file_path = os.path.normpath(os.path.join(folder, f"{note_name}.{self.file_format}"))
                if self.fs.path_exists(file_path) and not overwrite:
                    log.info("Note %s already exists; skipping", file_path)
                    result.skipped.append(file_path)
                    continue
                self.fs.create_directory(folder)
                self.fs.write_file(file_path, content)
            except (NotedError, OSError) as exc:
                log.error("Failed to create note %r from bundle %s: %s", note_name, bundle_id, exc)
                result.failures.append((note_name, str(exc)))
                continue
            result.created.append(file_path)

        if bundle.post_create:
            suffix_paths = result.created + result.skipped
            for name in bundle.post_create.open_notes:
                wanted = f"{self.replace_variables(name, variables)}.{self.file_format}"
                result.open_notes.extend(p for p in suffix_paths if os.path.basename(p) == wanted)

        default_message = f'Created {len(result.created)} note(s) from bundle "{bundle.name}"'
        result.message = (bundle.post_create.message if bundle.post_create else None) or default_message
        log.info(result.message)
        return result
