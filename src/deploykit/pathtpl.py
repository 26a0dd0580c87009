import re
from typing import Any, Mapping, Optional

_placeholder = re.compile(r"\{(.*?)\}")


def render(template: str, variables: Optional[Mapping[str, Any]] = None) -> str:
    """Fill ``{name}`` and ``{name:default}`` placeholders from *variables*.

    A placeholder whose variable is missing (or ``None``) falls back to its
    default, and without a default keeps the bare placeholder name.

    Example:
        >>> render("plugins.{category:core}.{target}", {"target": "Echo"})
        'plugins.core.Echo'
    """
    variables = variables or {}

    def repl(m: "re.Match[str]") -> str:
        name, _, default = m.group(1).partition(":")
        name = name.strip()
        value = variables.get(name)
        if value is not None:
            return str(value)
        default = default.strip()
        return default if default else name

    return _placeholder.sub(repl, template)
