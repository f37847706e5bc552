"""Template and bundle records, loaded from / dumped to plain JSON dicts."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

VARIABLE_TYPES = ("string", "number", "enum", "date", "boolean")


@dataclass
class TemplateVariable:
    name: str
    type: str = "string"
    required: bool = False
    default: Any = None
    prompt: str | None = None
    #: allowed values of an ``enum`` variable
    values: list[str] | None = None
    description: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TemplateVariable":
        return cls(
            name=data["name"],
            type=data.get("type", "string"),
            required=data.get("required") is True,
            default=data.get("default"),
            prompt=data.get("prompt"),
            values=list(data["values"]) if isinstance(data.get("values"), list) else None,
            description=data.get("description"),
        )


@dataclass
class Template:
    id: str
    name: str
    content: str
    description: str = ""
    category: str = "Custom"
    tags: list[str] = field(default_factory=list)
    version: str = "1.0.0"
    author: str | None = None
    variables: list[TemplateVariable] = field(default_factory=list)
    ai_generation: dict[str, Any] | None = None
    created: str | None = None
    modified: str | None = None
    usage_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class BundleNote:
    #: may contain ``{variables}``
    name: str
    template: str
    folder: str = ""
    description: str | None = None
    #: names of other bundle notes to link to
    links: list[str] = field(default_factory=list)


@dataclass
class PostCreateActions:
    open_notes: list[str] = field(default_factory=list)
    message: str | None = None


@dataclass
class TemplateBundle:
    id: str
    name: str
    description: str = ""
    version: str = "1.0.0"
    author: str | None = None
    variables: list[TemplateVariable] = field(default_factory=list)
    notes: list[BundleNote] = field(default_factory=list)
    post_create: PostCreateActions | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TemplateBundle":
        post_create = data.get("post_create")
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            description=data.get("description", ""),
            version=data.get("version", "1.0.0"),
            author=data.get("author"),
            variables=[TemplateVariable.from_dict(v) for v in data.get("variables", [])],
            notes=[
                BundleNote(
                    name=n["name"],
                    template=n["template"],
                    folder=n.get("folder", ""),
                    description=n.get("description"),
                    links=list(n.get("links") or []),
                )
                for n in data.get("notes", [])
            ],
            post_create=PostCreateActions(
                open_notes=list(post_create.get("open_notes") or []),
                message=post_create.get("message"),
            )
            if isinstance(post_create, dict)
            else None,
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        if self.post_create is None:
            del data["post_create"]
        return data
