"""Tree-shaped configuration sources.

Settings and templates are both nested mappings read from memory, JSON or
YAML. :func:`source_for` picks the right reader from a file extension.
"""

import json
import os
from typing import Any, Mapping, Optional

from .constants import ENV_PREFIX
from .exceptions import ConfigurationError


class TreeSource:
    """Base class for tree-structured configuration sources.

    Subclasses must implement :meth:`get_tree` to return a nested mapping.
    """

    def get_tree(self) -> Mapping[str, Any]:
        raise NotImplementedError


class DictSource(TreeSource):
    """Tree source backed by an in-memory mapping.

    Example:
        >>> DictSource({"orchestrator": "node"}).get_tree()["orchestrator"]
        'node'
    """

    def __init__(self, data: Mapping[str, Any]):
        self._data = data

    def get_tree(self) -> Mapping[str, Any]:
        return self._data


class JsonTreeSource(TreeSource):
    """Reads a JSON file.

    Raises:
        ConfigurationError: If the file cannot be read or parsed.
    """

    def __init__(self, path: str):
        self.path = path

    def get_tree(self) -> Mapping[str, Any]:
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except Exception as e:
            raise ConfigurationError(f"Failed to load JSON config {self.path}: {e}")
        return _as_tree(data, self.path)


class YamlTreeSource(TreeSource):
    """Reads a YAML file.

    Requires ``PyYAML`` (``pip install deploykit[yaml]``).

    Raises:
        ConfigurationError: If PyYAML is not installed, or if the file
            cannot be read or parsed.
    """

    def __init__(self, path: str):
        self.path = path

    def get_tree(self) -> Mapping[str, Any]:
        try:
            import yaml
        except Exception:
            raise ConfigurationError("PyYAML not installed")
        try:
            with open(self.path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except Exception as e:
            raise ConfigurationError(f"Failed to load YAML config {self.path}: {e}")
        return _as_tree(data, self.path)


class EnvSource(TreeSource):
    """Collects ``<prefix>NAME`` environment variables as ``{"name": value}``."""

    def __init__(self, prefix: str = ENV_PREFIX, environ: Optional[Mapping[str, str]] = None):
        self.prefix = prefix
        self._environ = environ

    def get_tree(self) -> Mapping[str, Any]:
        environ = os.environ if self._environ is None else self._environ
        return {
            k[len(self.prefix):].lower(): v
            for k, v in environ.items()
            if k.startswith(self.prefix) and len(k) > len(self.prefix)
        }


YAML_SUFFIXES = (".yaml", ".yml")
JSON_SUFFIXES = (".json",)


def source_for(path: str) -> TreeSource:
    """Return the reader matching the extension of *path*."""
    suffix = os.path.splitext(path)[1].lower()
    if suffix in YAML_SUFFIXES:
        return YamlTreeSource(path)
    if suffix in JSON_SUFFIXES:
        return JsonTreeSource(path)
    raise ConfigurationError(f"Unsupported config format: {path}")


def _as_tree(data: Any, path: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"Config root must be a mapping in {path}, got {type(data).__name__}")
    return data
