"""Note templates: built-ins, user template files and ``{placeholder}`` filling."""

from __future__ import annotations

import logging
import os
import re
from datetime import datetime
from pathlib import Path

from noted.errors import TemplateNotFoundError
from noted.fs import FileSystem, LocalFileSystem

log = logging.getLogger(__name__)

DAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")
MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)
_LONG_DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")

TEMPLATE_EXTENSIONS = (".md", ".txt")

BUILT_IN_TEMPLATES: dict[str, str] = {
    "problem-solution": "PROBLEM:\n\n\nSTEPS TAKEN:\n1.\n\nSOLUTION:\n\n\nNOTES:\n\n",
    "meeting": "MEETING:\nATTENDEES:\n\nAGENDA:\n-\n\nNOTES:\n\n\nACTION ITEMS:\n-\n\n",
    "research": "TOPIC:\n\nQUESTIONS:\n-\n\nFINDINGS:\n\n\nSOURCES:\n-\n\nNEXT STEPS:\n\n\n",
    "quick": "",
}

_PLACEHOLDER_RE = re.compile(r"\{(filename|date|time|year|month|day|weekday|month_name|user|workspace)\}")


def _sunday_first(date: datetime) -> int:
    return date.isoweekday() % 7


def format_date_for_note(date: datetime) -> str:
    """``Monday, October 19, 2026``, independent of the process locale."""
    return f"{_LONG_DAY_NAMES[_sunday_first(date)]}, {MONTH_NAMES[date.month - 1]} {date.day}, {date.year}"


def format_time_for_note(date: datetime) -> str:
    """``03:05 PM``."""
    hour = date.hour % 12 or 12
    return f"{hour:02d}:{date.minute:02d} {'AM' if date.hour < 12 else 'PM'}"


def render_placeholders(
    content: str,
    date: datetime,
    filename: str = "",
    user: str = "",
    workspace: str = "workspace",
) -> str:
    """Fill the built-in ``{placeholders}``; unknown ``{names}`` are left alone."""
    values = {
        "filename": filename,
        "date": format_date_for_note(date),
        "time": format_time_for_note(date),
        "year": str(date.year),
        "month": f"{date.month:02d}",
        "day": f"{date.day:02d}",
        "weekday": DAY_NAMES[_sunday_first(date)],
        "month_name": MONTH_NAMES[date.month - 1],
        "user": user,
        "workspace": workspace,
    }
    return _PLACEHOLDER_RE.sub(lambda m: values[m.group(1)], content)


def generate_frontmatter(date: datetime, filename: str | None = None) -> str:
    lines = ["---", "tags: []", f"created: {format_date_for_note(date)} at {format_time_for_note(date)}"]
    if filename:
        lines.append(f"file: {filename}")
    lines.append("---")
    return "\n".join(lines) + "\n\n"


class TemplateStore:
    """Resolves a template id to note content.

    User templates (``<templates_path>/<id>.md`` or ``.txt``) shadow the
    built-ins of the same name.
    """

    def __init__(
        self,
        templates_path: Path | str,
        fs: FileSystem | None = None,
        *,
        user: str = "",
        workspace: str = "workspace",
    ) -> None:
        self.templates_path = os.path.normpath(str(templates_path))
        self.fs = fs or LocalFileSystem()
        self.user = user
        self.workspace = workspace

    def _user_template_path(self, template_id: str) -> str | None:
        for ext in TEMPLATE_EXTENSIONS:
            candidate = os.path.join(self.templates_path, f"{template_id}{ext}")
            if self.fs.path_exists(candidate):
                return candidate
        return None

    def get_custom_templates(self) -> list[str]:
        """Ids of the user templates on disk."""
        if not self.fs.path_exists(self.templates_path):
            return []
        names = {
            os.path.splitext(entry.name)[0]
            for entry in self.fs.read_directory(self.templates_path)
            if not entry.is_dir and entry.name.endswith(TEMPLATE_EXTENSIONS)
        }
        return sorted(names)

    def generate(self, template_id: str, date: datetime, note_name: str | None = None) -> str:
        """Content for a new note named *note_name* created from *template_id*.

        Raises :class:`TemplateNotFoundError` when neither a user template
        nor a built-in has that id.
        """
        if template_id == "quick":
            title = re.sub(r"\.(txt|md)$", "", note_name, flags=re.IGNORECASE) if note_name else "Note"
            return f"# {title}\n\n"

        frontmatter = generate_frontmatter(date, note_name)
        template_path = self._user_template_path(template_id)
        if template_path is not None:
            content = render_placeholders(
                self.fs.read_file(template_path), date, note_name or "", self.user, self.workspace
            )
            log.debug("Using user template %s", template_path)
            return content if content.lstrip().startswith("---") else frontmatter + content

        if template_id in BUILT_IN_TEMPLATES:
            return frontmatter + BUILT_IN_TEMPLATES[template_id]
        raise TemplateNotFoundError(template_id)
