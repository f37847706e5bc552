from noted.templates.bundles import BundleResult, BundleService
from noted.templates.generator import TemplateGenerator
from noted.templates.render import BUILT_IN_TEMPLATES, TemplateStore, render_placeholders
from noted.templates.types import BundleNote, PostCreateActions, Template, TemplateBundle, TemplateVariable

__all__ = [
    "BUILT_IN_TEMPLATES",
    "BundleNote",
    "BundleResult",
    "BundleService",
    "PostCreateActions",
    "Template",
    "TemplateBundle",
    "TemplateGenerator",
    "TemplateStore",
    "TemplateVariable",
    "render_placeholders",
]
