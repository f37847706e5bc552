"""Generate templates from a plain-language description with a text model.

The model is any ``complete(prompt) -> str`` callable; the generator owns a
small cache keyed by the SHA-256 of the description.
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from noted.errors import TemplateParseError
from noted.templates.types import VARIABLE_TYPES, Template, TemplateVariable

log = logging.getLogger(__name__)

CACHE_TTL = 3600.0

_BUILT_IN_VARIABLES = (
    "{filename}, {date}, {time}, {year}, {month}, {day}, {weekday}, {month_name}, {user}, {workspace}"
)

_RESPONSE_FORMAT = """Output format (JSON):
{
  "name": "template-name",
  "description": "what the template is for",
  "category": "Documentation, Planning, Development, ...",
  "tags": ["tag1", "tag2"],
  "variables": [
    {"name": "custom_var", "type": "string|number|enum|date|boolean",
     "required": true, "prompt": "question for the user", "default": "optional"}
  ],
  "content": "template text with YAML frontmatter and {variables}"
}

Return ONLY valid JSON, no other text."""

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?", re.IGNORECASE)


@dataclass
class _CacheEntry:
    template: Template
    stored_at: float


def hash_content(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def increment_version(version: str) -> str:
    """Bump the minor part: ``1.0.0`` -> ``1.1.0``; anything else -> ``1.0.0``."""
    parts = version.split(".")
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        return "1.0.0"
    major, minor, patch = (int(p) for p in parts)
    return f"{major}.{minor + 1}.{patch}"


def template_id_from_name(name: str) -> str:
    return re.sub(r"[^a-z0-9_-]", "", re.sub(r"\s+", "-", name.lower()))


def parse_variables(raw: Any) -> list[TemplateVariable]:
    """Keep well-formed variable definitions, drop the rest."""
    if not isinstance(raw, list):
        return []
    variables = []
    for item in raw:
        if not isinstance(item, dict) or not item.get("name") or item.get("type") not in VARIABLE_TYPES:
            continue
        variable = TemplateVariable.from_dict(item)
        variable.prompt = variable.prompt or f"Enter value for {variable.name}"
        variables.append(variable)
    return variables


class TemplateGenerator:
    def __init__(
        self,
        complete: Callable[[str], str],
        *,
        author: str = "user",
        cache_ttl: float = CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.complete = complete
        self.author = author
        self.cache_ttl = cache_ttl
        self._clock = clock
        self._cache: dict[str, _CacheEntry] = {}

    # ------------------------------------------------------------------
    # Prompts
    # ------------------------------------------------------------------

    @staticmethod
    def build_generation_prompt(description: str) -> str:
        return (
            "You write note templates for a plain-text notes tool.\n\n"
            f'The user wants: "{description}"\n\n'
            "Produce a template with YAML frontmatter, markdown section headings, "
            "and {variable} placeholders where the user fills in details.\n\n"
            f"Built-in variables: {_BUILT_IN_VARIABLES}\n"
            "You may declare extra variables in the response.\n\n"
            "Use a lowercase-hyphenated template name.\n\n"
            f"{_RESPONSE_FORMAT}"
        )

    @staticmethod
    def build_enhancement_prompt(template: Template) -> str:
        return (
            "Improve this note template without changing its purpose.\n\n"
            f"Name: {template.name}\n"
            f"Description: {template.description}\n"
            f"Category: {template.category}\n"
            f"Tags: {', '.join(template.tags)}\n\n"
            f"Content:\n{template.content}\n\n"
            "Suggest missing sections, clearer structure and useful variables. "
            "Keep the existing variables unless they need fixing.\n\n"
            f"{_RESPONSE_FORMAT}"
        )

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def parse_template_response(self, response: str, description: str, category: str | None = None) -> Template:
        cleaned = _FENCE_RE.sub("", response).replace("```", "").strip()
        try:
            parsed = json.loads(cleaned)
        except json.JSONDecodeError as exc:
            log.error("Template response is not JSON: %s", exc)
            raise TemplateParseError(f"Failed to parse template response: {exc}") from exc
        if not isinstance(parsed, dict) or not parsed.get("name") or not parsed.get("content"):
            raise TemplateParseError("Template response missing required fields (name, content)")

        now = datetime.now(timezone.utc).isoformat()
        ai_generation = parsed.get("ai_generation")
        return Template(
            id=template_id_from_name(str(parsed["name"])),
            name=str(parsed["name"]),
            content=str(parsed["content"]),
            description=parsed.get("description") or description,
            category=category or parsed.get("category") or "Custom",
            tags=list(parsed["tags"]) if isinstance(parsed.get("tags"), list) else [],
            version="1.0.0",
            author=self.author,
            variables=parse_variables(parsed.get("variables")),
            ai_generation={
                "enabled": ai_generation.get("enabled") is not False,
                "sections": ai_generation.get("sections") or [],
                "hints": ai_generation.get("hints") or [],
            }
            if isinstance(ai_generation, dict)
            else None,
            created=now,
            modified=now,
            usage_count=0,
        )

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def generate_from_description(self, description: str, category: str | None = None) -> Template:
        key = hash_content(description)
        entry = self._cache.get(key)
        if entry is not None and self._clock() - entry.stored_at < self.cache_ttl:
            log.debug("Template cache hit for %s", key[:12])
            return entry.template

        template = self.parse_template_response(
            self.complete(self.build_generation_prompt(description)), description, category
        )
        self._cache[key] = _CacheEntry(template, self._clock())
        log.info("Generated template %s", template.id)
        return template

    def enhance_template(self, template: Template) -> Template:
        """Ask the model for an improved version; identity fields are kept."""
        enhanced = self.parse_template_response(
            self.complete(self.build_enhancement_prompt(template)), template.description, template.category
        )
        enhanced.id = template.id
        enhanced.version = increment_version(template.version)
        enhanced.created = template.created
        enhanced.usage_count = template.usage_count
        return enhanced

    def clear_cache(self) -> None:
        self._cache.clear()

    def clear_description_cache(self, description: str) -> None:
        self._cache.pop(hash_content(description), None)
