"""Template storage.

:class:`TemplateManager` is what the orchestrator resolves under
``template:manager``. It forwards every call to the concrete source
registered under ``template:manager:<type>``: :class:`FileTemplateSource`
or :class:`MemoryTemplateSource` out of the box.
"""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Union

from .config_sources import JSON_SUFFIXES, YAML_SUFFIXES, source_for
from .constants import DEFAULT_TEMPLATE_TYPE, KEY_TEMPLATE_MANAGER
from .exceptions import ConfigurationError, TemplateLoadError
from .models import Template

_logger = logging.getLogger(__name__)

TemplateContent = Union[Template, Mapping[str, Any]]


def _content(template: TemplateContent) -> Dict[str, Any]:
    if isinstance(template, Template):
        data = dict(template.extra)
        data.update({
            "name": template.name,
            "description": template.description,
            "version": template.version,
            "engine": template.engine,
        })
        stack = template.stack
        data["stack"] = {
            **stack.extra,
            "name": stack.name,
            "project": stack.project,
            "orchestrator": stack.orchestrator,
            "workspace": stack.workspace,
            "components": [_component(c) for c in stack.components],
            "output": [_variable(v) for v in stack.output],
        }
        return {k: v for k, v in data.items() if v is not None}
    return dict(template)


def parse_template(name: Optional[str], data: Any) -> Template:
    """Build a :class:`Template` from raw content.

    Raises:
        TemplateLoadError: If the content is not a valid template.
    """
    if isinstance(data, Template):
        return data
    try:
        return Template.from_dict(data, name=name)
    except (ConfigurationError, TypeError, ValueError) as e:
        raise TemplateLoadError(name, f"Invalid template {name}: {e}") from e


def _variable(meta: Any) -> Dict[str, Any]:
    data = {k: getattr(meta, k) for k in ("name", "type", "value", "default", "format", "description")}
    data.update(meta.extra)
    return {k: v for k, v in data.items() if v is not None}


def _component(spec: Any) -> Dict[str, Any]:
    data: Dict[str, Any] = {"name": spec.name, **spec.extra}
    for key in ("description", "engine", "orchestrator"):
        if getattr(spec, key) is not None:
            data[key] = getattr(spec, key)
    for key in ("input", "setup", "output", "dependency"):
        items = getattr(spec, key)
        if items:
            data[key] = [_variable(v) for v in items]
    return data


class TemplateSource:
    """Storage contract for templates."""

    def load(self, name: str, flow: Optional[str] = None) -> Template:
        raise NotImplementedError

    def save(self, name: str, content: TemplateContent) -> bool:
        raise NotImplementedError

    def delete(self, name: str) -> bool:
        raise NotImplementedError

    def list(self) -> List[str]:
        raise NotImplementedError


class MemoryTemplateSource(TemplateSource):
    """Dictionary backed source, handy for tests and embedded use."""

    def __init__(self, templates: Optional[Mapping[str, TemplateContent]] = None):
        self._templates: Dict[str, Dict[str, Any]] = {k: _content(v) for k, v in (templates or {}).items()}

    def load(self, name: str, flow: Optional[str] = None) -> Template:
        if name not in self._templates:
            raise TemplateLoadError(name, f"Template {name} not found")
        return parse_template(name, self._templates[name])

    def save(self, name: str, content: TemplateContent) -> bool:
        self._templates[name] = _content(content)
        return True

    def delete(self, name: str) -> bool:
        if self._templates.pop(name, None) is None:
            raise TemplateLoadError(name, f"Template {name} not found")
        return True

    def list(self) -> List[str]:
        return sorted(self._templates)


class FileTemplateSource(TemplateSource):
    """Templates stored as ``<name>.json`` (or ``.yaml`` / ``.yml``) files.

    Args:
        path: Directory holding the templates.
    """

    def __init__(self, path: str = "templates"):
        self.path = path

    def _find(self, name: str) -> Optional[str]:
        for suffix in JSON_SUFFIXES + YAML_SUFFIXES:
            candidate = os.path.join(self.path, f"{name}{suffix}")
            if os.path.isfile(candidate):
                return candidate
        return None

    def load(self, name: str, flow: Optional[str] = None) -> Template:
        """Read and parse a template.

        Raises:
            TemplateLoadError: If the file is missing or cannot be parsed.
        """
        file = self._find(name)
        if file is None:
            raise TemplateLoadError(name, f"Template file not found: {os.path.join(self.path, name + '.json')}")
        try:
            tree = source_for(file).get_tree()
        except ConfigurationError as e:
            raise TemplateLoadError(name, f"Invalid template {name}: {e}") from e
        return parse_template(name, tree)

    def save(self, name: str, content: TemplateContent) -> bool:
        """Write the template as JSON, replacing the file atomically."""
        data = _content(content)
        data["name"] = name
        data["lastModified"] = datetime.now(timezone.utc).isoformat()
        data.setdefault("version", "1.0.0")

        os.makedirs(self.path, exist_ok=True)
        target = os.path.join(self.path, f"{name}.json")
        tmp = f"{target}.tmp"
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, default=str)
            os.replace(tmp, target)
        except (OSError, TypeError, ValueError) as e:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise TemplateLoadError(name, f"Failed to save template {name}: {e}") from e
        return True

    def delete(self, name: str) -> bool:
        file = self._find(name)
        if file is None:
            raise TemplateLoadError(name, f"Template {name} not found")
        os.unlink(file)
        return True

    def list(self) -> List[str]:
        if not os.path.isdir(self.path):
            raise TemplateLoadError(None, f"Template directory not found: {self.path}")
        names = set()
        for entry in os.listdir(self.path):
            stem, suffix = os.path.splitext(entry)
            if suffix.lower() in JSON_SUFFIXES + YAML_SUFFIXES:
                names.add(stem)
        return sorted(names)


class TemplateManager(TemplateSource):
    """Forwards to the source registered under ``template:manager:<type>``.

    Args:
        container: The container holding the concrete sources.
        type: Source suffix, ``file`` by default.
    """

    def __init__(self, container: Any, type: str = DEFAULT_TEMPLATE_TYPE, logger: Any = None):
        self.container = container
        self.type = type
        self.logger = logger or _logger

    @property
    def source(self) -> TemplateSource:
        return self.container.resolve(f"{KEY_TEMPLATE_MANAGER}:{self.type}")

    def load(self, name: str, flow: Optional[str] = None) -> Template:
        self.logger.debug("Loading template %s", name, extra={"flow": flow, "src": "Template:load", "data": {"type": self.type}})
        return self.source.load(name, flow=flow)

    def save(self, name: str, content: TemplateContent) -> bool:
        return self.source.save(name, content)

    def delete(self, name: str) -> bool:
        return self.source.delete(name)

    def list(self) -> List[str]:
        return self.source.list()
