"""Exception taxonomy for noted.

Read-path lookups never raise for missing things; they return ``None`` or an
empty collection.  The exceptions below are for caller mistakes and for
explicitly requested objects (bundles, templates) that do not exist.
"""

from __future__ import annotations


class NotedError(Exception):
    """Base class for every error raised by noted."""


class ValidationError(NotedError):
    """Invalid tag name, rename/merge request, regex or variable value."""


class ConfigurationError(NotedError):
    """Raised when configuration values are missing or malformed."""


class NotFoundError(NotedError):
    """An explicitly requested object does not exist."""


class BundleNotFoundError(NotFoundError):
    def __init__(self, bundle_id: str) -> None:
        super().__init__(f"Bundle not found: {bundle_id}")
        self.bundle_id = bundle_id


class TemplateNotFoundError(NotFoundError):
    def __init__(self, template_id: str) -> None:
        super().__init__(f"Template not found: {template_id}")
        self.template_id = template_id


class TemplateParseError(NotedError):
    """A generated template response could not be turned into a Template."""
