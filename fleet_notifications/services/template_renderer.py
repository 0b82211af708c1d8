"""Template rendering for notification subjects and bodies."""

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from ..models import NotificationTemplate

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([A-Za-z0-9_.\-]+)\s*\}\}")


@dataclass(frozen=True)
class RenderedTemplate:
    subject: str
    body: str


def _format_value(value: Any) -> str:
    # Only scalars are substituted; anything else renders empty
    if value is None or isinstance(value, (dict, list, tuple, set)):
        return ""
    return str(value)


def render_template(template: str | None, data: Mapping[str, Any] | None) -> str:
    """
    Replace ``{{key}}`` / ``{{ key }}`` tokens with values from ``data``.

    Missing keys render as an empty string, so rendering cannot fail
    because of incomplete data.
    """
    if not template:
        return ""

    values = data or {}
    return PLACEHOLDER_PATTERN.sub(
        lambda match: _format_value(values.get(match.group(1))),
        template,
    )


class TemplateRenderer:
    """Renders a NotificationTemplate against a data context."""

    def render(
        self,
        template: NotificationTemplate,
        data: Mapping[str, Any] | None = None,
    ) -> RenderedTemplate:
        return RenderedTemplate(
            subject=render_template(template.subject_template, data),
            body=render_template(template.body_template, data),
        )
