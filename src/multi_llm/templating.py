"""Placeholder substitution for chain step templates."""

from __future__ import annotations

import re
from typing import Mapping

from multi_llm.errors import TemplateError

# Anything between double braces is a placeholder; the name is the stripped inner text.
PLACEHOLDER_RE = re.compile(r"\{\{([^{}]*)\}\}")


def find_placeholders(template: str) -> list[str]:
    """
    Returns placeholder names in order of first appearance.
    An empty placeholder such as {{ }} is reported as "".
    """
    return list(dict.fromkeys(m.group(1).strip() for m in PLACEHOLDER_RE.finditer(template)))


def render_template(template: str, completed: Mapping[str, str]) -> str:
    """
    Replaces every {{name}} with completed[name] in a single pass.
    A name without a completed output raises TemplateError; placeholder
    syntax never reaches a rendered prompt.
    """
    for name in find_placeholders(template):
        if not name:
            raise TemplateError("template contains an empty placeholder", placeholder=name)
        if name not in completed:
            raise TemplateError(
                f"template references {name!r}, which has no completed output "
                f"(available: {list(completed)})",
                placeholder=name,
            )
    return PLACEHOLDER_RE.sub(lambda m: completed[m.group(1).strip()], template)
