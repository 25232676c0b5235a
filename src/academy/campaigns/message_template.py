"""Replace {placeholder} tokens in campaign message templates."""

from __future__ import annotations

import re
from collections.abc import Mapping


def render(template: str, variables: Mapping[str, object]) -> str:
    """Replace every ``{key}`` for each key in ``variables`` with ``str(value)``.

    Substitution is a single pass, so a value containing another
    placeholder is never expanded. Unknown placeholders are left as-is.
    """
    if not variables:
        return template

    pattern = re.compile("|".join(re.escape("{" + key + "}") for key in variables))

    def replacer(match: re.Match) -> str:
        return str(variables[match.group(0)[1:-1]])

    return pattern.sub(replacer, template)
