"""Placeholder resolution module.

Provides the placeholder grammar, text modifiers and template execution.
"""

from storymode.resolution.placeholder_resolver import (
    PlaceholderError,
    PlaceholderResolver,
    ResolverOptions,
    TOKEN_PATTERN,
)
from storymode.resolution.template_engine import (
    Template,
    TemplateEngine,
    get_default_templates,
)
from storymode.resolution.text_modifiers import (
    MODIFIERS,
    apply_modifier,
    apply_modifiers,
    pluralize,
    singularize,
)

__all__ = [
    "PlaceholderError",
    "PlaceholderResolver",
    "ResolverOptions",
    "TOKEN_PATTERN",
    "Template",
    "TemplateEngine",
    "get_default_templates",
    "MODIFIERS",
    "apply_modifier",
    "apply_modifiers",
    "pluralize",
    "singularize",
]
