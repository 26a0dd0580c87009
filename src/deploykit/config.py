"""Runtime settings.

Sources are deep merged in order, ``${ENV:NAME}`` placeholders are
interpolated, and ``DEPLOYKIT_*`` environment variables are applied last.

Example:
    >>> settings = load_settings(DictSource({"orchestrator": "node"}), use_env=False)
    >>> settings.orchestrator
    'node'
"""

import os
import re
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .config_sources import DictSource, EnvSource, TreeSource
from .constants import (
    DEFAULT_EXPOSE_LIMIT, DEFAULT_EXPOSE_PREFIX, DEFAULT_EXPOSE_QUOTE, DEFAULT_ORCHESTRATOR,
    DEFAULT_TEMPLATE_TYPE, ENV_PREFIX,
)
from .exceptions import ConfigurationError


@dataclass(frozen=True)
class Settings:
    """Immutable runtime settings.

    Attributes:
        template_type: Template source suffix resolved under ``template:manager:``.
        template_path: Directory of the ``file`` template source.
        orchestrator: Default backend suffix resolved under ``pipeline:stack:manager:``.
        env_prefix: Prefix of exposed output variables.
        env_action: ``EXPOSE`` or ``None`` enables output exposure.
        env_limit: Maximum length of an exposed value.
        env_quote: Replacement for double quotes in exposed values.
        dependencies: Extra container descriptors.
    """
    template_type: str = DEFAULT_TEMPLATE_TYPE
    template_path: str = "templates"
    orchestrator: str = DEFAULT_ORCHESTRATOR
    env_prefix: str = DEFAULT_EXPOSE_PREFIX
    env_action: Optional[str] = None
    env_limit: int = DEFAULT_EXPOSE_LIMIT
    env_quote: str = DEFAULT_EXPOSE_QUOTE
    dependencies: List[Any] = field(default_factory=list)

    @classmethod
    def from_tree(cls, tree: Mapping[str, Any]) -> "Settings":
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in tree.items() if k in known and v is not None}
        if "env_limit" in values:
            try:
                values["env_limit"] = int(values["env_limit"])
            except (TypeError, ValueError):
                raise ConfigurationError(f"env_limit must be an integer, got {values['env_limit']!r}")
        if "dependencies" in values and isinstance(values["dependencies"], Mapping):
            values["dependencies"] = [dict(v, key=k) for k, v in values["dependencies"].items()]
        return cls(**values)


def deep_merge(a: Any, b: Any) -> Any:
    """Merge *b* over *a*; nested mappings merge, everything else is replaced."""
    if isinstance(a, Mapping) and isinstance(b, Mapping):
        out = dict(a)
        for k, v in b.items():
            out[k] = deep_merge(out[k], v) if k in out else v
        return out
    return b


_env_pat = re.compile(r"\$\{ENV:([A-Za-z_][A-Za-z0-9_]*)\}")


def interpolate(node: Any, environ: Optional[Mapping[str, str]] = None) -> Any:
    """Replace ``${ENV:NAME}`` placeholders in every string of *node*.

    Raises:
        ConfigurationError: If a referenced variable is not set.
    """
    environ = os.environ if environ is None else environ

    def repl(m: "re.Match[str]") -> str:
        v = environ.get(m.group(1))
        if v is None:
            raise ConfigurationError(f"Missing ENV var {m.group(1)}")
        return v

    if isinstance(node, Mapping):
        return {k: interpolate(v, environ) for k, v in node.items()}
    if isinstance(node, list):
        return [interpolate(x, environ) for x in node]
    if isinstance(node, str):
        return _env_pat.sub(repl, node)
    return node


def resolve_tree(sources: Tuple[TreeSource, ...], environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    acc: Dict[str, Any] = {}
    for s in sources:
        acc = deep_merge(acc, s.get_tree())
    return interpolate(acc, environ)


def load_settings(*sources: Any, use_env: bool = True, environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build :class:`Settings` from tree sources and the environment.

    Args:
        *sources: :class:`TreeSource` instances or plain mappings, lowest
            precedence first.
        use_env: Apply ``DEPLOYKIT_*`` variables over the file sources.
        environ: Environment to read instead of ``os.environ``.
    """
    chain: List[TreeSource] = [s if isinstance(s, TreeSource) else DictSource(s) for s in sources]
    if use_env:
        chain.append(EnvSource(ENV_PREFIX, environ))
    return Settings.from_tree(resolve_tree(tuple(chain), environ))
