"""Placeholder template renderer."""

import re
from typing import Any, Optional

from .presenter import object_get, stringify

PLACEHOLDER_PATTERN = re.compile(r"{{\s*([\w.]+)\s*}}")


class TemplateRenderer:
    """
    Renders ``{{name}}`` and ``{{parent.child}}`` placeholders against a context.

    Unknown properties render as an empty string; rendering never raises for
    missing values.
    """

    def __init__(self, pattern: re.Pattern = PLACEHOLDER_PATTERN):
        self.pattern = pattern

    def lookup(self, context: Any, path: str, locale: Optional[str] = None) -> Any:
        value = context
        for name in path.split("."):
            value = object_get(value, name, locale)
            if value is None:
                return None
        return value

    def render(self, template: Any, context: Any, locale: Optional[str] = None) -> str:
        if template is None:
            return ""

        return self.pattern.sub(
            lambda match: stringify(self.lookup(context, match.group(1), locale)),
            str(template),
        )

    def render_value(self, template: Any, context: Any, locale: Optional[str] = None) -> Any:
        """Like render, but a template made of one placeholder keeps the value's type."""
        if not isinstance(template, str):
            return template

        match = self.pattern.fullmatch(template.strip())
        if match:
            return self.lookup(context, match.group(1), locale)

        return self.render(template, context, locale)


def is_truthy(rendered: Any) -> bool:
    """Whether a rendered condition passes."""
    if rendered is None:
        return False
    if isinstance(rendered, str):
        return rendered.strip().lower() not in ("", "0", "false")
    return bool(rendered)
