"""Data model shared by the orchestrator, bridges and controllers.

Templates arrive as JSON or YAML mappings; every model offers a
``from_dict`` constructor that accepts those shapes and keeps unknown keys in
an ``extra`` mapping instead of rejecting them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence, Union

from .exceptions import ConfigurationError

if TYPE_CHECKING:
    from .container import Container


def _now() -> datetime:
    return datetime.now(timezone.utc)


class VarType(str, Enum):
    VALUE = "value"
    ENVIRONMENT = "environment"
    SECRET = "secret"
    PROTECTED = "protected"
    REFERENCE = "reference"

    @classmethod
    def parse(cls, raw: Any) -> "VarType":
        """Unknown or missing types resolve as literal values."""
        try:
            return cls(raw)
        except ValueError:
            return cls.VALUE


@dataclass
class VariableMetadata:
    """One declarative value of a component.

    Attributes:
        name: Name under which the resolved value is published.
        type: Where the value comes from; ``None`` means "not declared".
        value: The literal, or the lookup key for non-literal types.
        default: Used when the lookup yields nothing.
        format: Informational value format (``string``, ``number``...).
        description: Human readable description.
    """
    name: Optional[str] = None
    type: Optional[str] = None
    value: Any = None
    default: Any = None
    format: Optional[str] = None
    description: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Union["VariableMetadata", Mapping[str, Any], str], name: Optional[str] = None) -> "VariableMetadata":
        if isinstance(data, VariableMetadata):
            return data
        if isinstance(data, str):
            return cls(name=name, value=data)
        values = dict(data)
        meta = cls(
            name=values.pop("name", name),
            type=values.pop("type", None),
            value=values.pop("value", None),
            default=values.pop("default", None),
            format=values.pop("format", None),
            description=values.pop("description", None),
        )
        meta.extra = values
        return meta

    @property
    def var_type(self) -> VarType:
        return VarType.parse(self.type)

    @property
    def lookup_key(self) -> Optional[str]:
        return self.value if self.value not in (None, "") else self.name


MetadataInput = Union[Sequence[Any], Mapping[str, Any], None]


def metadata_list(raw: MetadataInput) -> List[VariableMetadata]:
    """Normalise a list, or a ``name -> definition`` mapping, of variable definitions."""
    if not raw:
        return []
    if isinstance(raw, Mapping):
        return [VariableMetadata.from_dict(v, name=str(k)) for k, v in raw.items()]
    return [VariableMetadata.from_dict(v) for v in raw]


@dataclass
class ComponentSpec:
    """One pipeline step: the controller key plus its variable metadata."""
    name: str
    input: List[VariableMetadata] = field(default_factory=list)
    setup: List[VariableMetadata] = field(default_factory=list)
    output: List[VariableMetadata] = field(default_factory=list)
    dependency: List[VariableMetadata] = field(default_factory=list)
    description: Optional[str] = None
    engine: Optional[str] = None
    orchestrator: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Union["ComponentSpec", Mapping[str, Any]]) -> "ComponentSpec":
        if isinstance(data, ComponentSpec):
            return data
        values = dict(data)
        name = values.pop("name", None)
        if not name:
            raise ConfigurationError("Component entry without a name")
        return cls(
            name=str(name),
            input=metadata_list(values.pop("input", None)),
            setup=metadata_list(values.pop("setup", None)),
            output=metadata_list(values.pop("output", None)),
            dependency=metadata_list(values.pop("dependency", None)),
            description=values.pop("description", None),
            engine=values.pop("engine", None),
            orchestrator=values.pop("orchestrator", None),
            extra=values,
        )

    def definitions(self, key: str) -> List[VariableMetadata]:
        return list(getattr(self, key, None) or [])


@dataclass
class StackSettings:
    """Backend selection and the ordered component list of one template."""
    name: Optional[str] = None
    project: Optional[str] = None
    orchestrator: Optional[str] = None
    workspace: Dict[str, Any] = field(default_factory=dict)
    components: List[ComponentSpec] = field(default_factory=list)
    output: List[VariableMetadata] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "StackSettings":
        values = dict(data or {})
        return cls(
            name=values.pop("name", None),
            project=values.pop("project", None),
            orchestrator=values.pop("orchestrator", None),
            workspace=dict(values.pop("workspace", None) or {}),
            components=[ComponentSpec.from_dict(c) for c in values.pop("components", None) or []],
            output=metadata_list(values.pop("output", None)),
            extra=values,
        )

    def merged(self, **overrides: Any) -> "StackSettings":
        """Copy with every non-``None`` override applied."""
        data = dict(self.__dict__)
        data.update({k: v for k, v in overrides.items() if v is not None})
        return StackSettings(**data)


@dataclass
class Template:
    """A declarative pipeline definition."""
    name: str
    description: Optional[str] = None
    version: Optional[str] = None
    engine: Optional[str] = None
    stack: StackSettings = field(default_factory=StackSettings)
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], name: Optional[str] = None) -> "Template":
        values = dict(data)
        stack = values.pop("stack", None)
        if stack is None and "components" in values:
            stack = {"components": values.pop("components")}
            for k in ("orchestrator", "project"):
                if k in values:
                    stack[k] = values.pop(k)
        return cls(
            name=values.pop("name", None) or name or "",
            description=values.pop("description", None),
            version=values.pop("version", None),
            engine=values.pop("engine", None),
            stack=StackSettings.from_dict(stack),
            extra=values,
        )

    @property
    def components(self) -> List[ComponentSpec]:
        return self.stack.components


@dataclass
class PipelineArgs:
    template: Optional[str] = None
    project: Optional[str] = None
    stack: Optional[str] = None
    id: Optional[str] = None
    action: Optional[str] = None

    def flow_id(self) -> str:
        return self.id or f"{self.project or ''}-{self.stack or ''}"


@dataclass(frozen=True)
class PipelineContext:
    """Identity of one run, handed to every controller action."""
    id: str
    args: PipelineArgs
    template: Optional[Template]
    container: "Container"
    stack: Any = None


@dataclass
class Result:
    """Outcome of one action call."""
    success: bool = True
    message: str = ""
    timestamp: datetime = field(default_factory=_now)
    duration: Optional[float] = None
    output: Optional[Dict[str, Any]] = None
    error: Optional[BaseException] = None
    results: List[Optional["Result"]] = field(default_factory=list)
    warns: Dict[str, Any] = field(default_factory=dict)
    action: Optional[str] = None
    flow: Optional[str] = None
    template_name: Optional[str] = None
    stack_name: Optional[str] = None
    project_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "success": self.success,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }
        for name in ("duration", "output", "action", "flow", "template_name", "stack_name", "project_name"):
            value = getattr(self, name)
            if value is not None:
                out[name] = value
        if self.warns:
            out["warns"] = dict(self.warns)
        if self.error is not None:
            out["error"] = f"{self.error.__class__.__name__}: {self.error}"
        if self.results:
            out["results"] = [r.to_dict() if r is not None else None for r in self.results]
        return out


@dataclass
class ComponentMetadata:
    """Self-description a controller returns from ``metadata()``."""
    description: Optional[str] = None
    orchestrator: Optional[str] = None
    engine: Optional[str] = None
    input: List[VariableMetadata] = field(default_factory=list)
    setup: List[VariableMetadata] = field(default_factory=list)
    output: List[VariableMetadata] = field(default_factory=list)
    dependency: List[VariableMetadata] = field(default_factory=list)
