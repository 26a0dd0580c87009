"""Dependency descriptors and auto-registration rules.

A :class:`Dependency` is the declarative description of one registrable
thing. Descriptors arrive either as instances or as plain mappings (JSON or
YAML configuration), so :func:`to_list` normalises both shapes.
"""

import copy
import re
import uuid
from dataclasses import dataclass, field, fields, replace
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from .constants import LIFETIME_SINGLETON, LIFETIME_TRANSIENT
from .exceptions import ConfigurationError

TYPE_VALUE = "value"
TYPE_CLASS = "class"
TYPE_FUNCTION = "function"
TYPE_METHOD = "method"
TYPE_ACTION = "action"
TYPE_ALIAS = "alias"
TYPE_REF = "ref"
TYPE_OBJECT = "object"
TYPE_INSTANCE = "instance"
TYPE_AUTO = "auto"

DEPENDENCY_TYPES = frozenset({
    TYPE_VALUE, TYPE_CLASS, TYPE_FUNCTION, TYPE_METHOD, TYPE_ACTION,
    TYPE_ALIAS, TYPE_REF, TYPE_OBJECT, TYPE_INSTANCE, TYPE_AUTO,
})
LIFETIMES = frozenset({LIFETIME_SINGLETON, LIFETIME_TRANSIENT})


@dataclass
class Dependency:
    """One registrable entry of the container.

    Attributes:
        key: Registration key. Derived from ``target`` when omitted.
        target: Class, callable, literal value, alias target or import string.
        type: Registration strategy, one of :data:`DEPENDENCY_TYPES`.
        lifetime: ``singleton`` or ``transient``.
        args: Static positional constructor arguments.
        dependencies: Nested descriptors injected as one mapping.
        path: Package that holds ``target`` when it is a string.
        file: Module path (dotted or ``.py`` file) that holds ``target``.
        template: Path template rendered into ``file``.
        regex: Pattern tested against missing keys (``auto`` only).
        as_type: Type given to descriptors synthesized by an ``auto`` rule.
        predicate: Callable alternative to ``regex``.
        factory: Maps a missing key to the synthesized target.
        category: Free-form grouping label.
    """
    key: Optional[str] = None
    target: Any = None
    type: Optional[str] = None
    lifetime: str = LIFETIME_TRANSIENT
    args: List[Any] = field(default_factory=list)
    dependencies: Optional[List["Dependency"]] = None
    path: Optional[str] = None
    file: Optional[str] = None
    template: Optional[str] = None
    regex: Optional[str] = None
    as_type: Optional[str] = None
    predicate: Optional[Callable[[str], bool]] = None
    factory: Optional[Callable[[str], Any]] = None
    category: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], key: Optional[str] = None) -> "Dependency":
        known = {f.name for f in fields(cls)}
        values = dict(data)
        if "as" in values:
            values["as_type"] = values.pop("as")
        unknown = set(values) - known
        if unknown:
            raise ConfigurationError(f"Unknown dependency fields {sorted(unknown)} for '{key or values.get('key')}'")
        if key is not None:
            values["key"] = key
        if values.get("dependencies") is not None:
            values["dependencies"] = to_list(values["dependencies"])
        if values.get("args") is None:
            values["args"] = []
        return cls(**values)

    def copy(self, **changes: Any) -> "Dependency":
        return replace(copy.copy(self), **changes)

    @property
    def is_reference(self) -> bool:
        """A nested entry with neither target nor type only names an existing key."""
        return self.target is None and self.type is None


DependencyLike = Union[Dependency, Mapping[str, Any]]
DependencyInput = Union[Iterable[DependencyLike], Mapping[str, DependencyLike]]


def _coerce(item: DependencyLike, key: Optional[str] = None) -> Dependency:
    if isinstance(item, Dependency):
        return item if key is None else item.copy(key=key)
    if isinstance(item, Mapping):
        return Dependency.from_dict(item, key=key)
    raise ConfigurationError(f"Invalid dependency descriptor: {item!r}")


def to_list(dependencies: DependencyInput) -> List[Dependency]:
    """Normalise a list or a ``key -> descriptor`` mapping into descriptors."""
    if isinstance(dependencies, Dependency):
        return [dependencies]
    if isinstance(dependencies, Mapping):
        if all(isinstance(v, (Mapping, Dependency)) for v in dependencies.values()):
            return [_coerce(v, key=str(k)) for k, v in dependencies.items()]
        return [_coerce(dependencies)]
    return [_coerce(d) for d in dependencies]


def derive_key(dependency: Dependency) -> str:
    if dependency.key:
        return dependency.key
    target = dependency.target
    if isinstance(target, str):
        return target
    name = getattr(target, "__name__", None)
    if callable(target) and name:
        return name
    if dependency.type == TYPE_AUTO:
        return "auto-" + uuid.uuid4().hex[:9]
    raise ConfigurationError(f"Unable to determine dependency key for target {target!r}")


@dataclass(frozen=True)
class AutoRule:
    """A lazy plugin-discovery rule evaluated when a key is missing.

    Attributes:
        key: Key of the ``auto`` descriptor that created the rule.
        predicate: Decides whether the rule applies to a missing key.
        template: Descriptor copied for every synthesized registration.
    """
    key: str
    predicate: Callable[[str], bool]
    template: Dependency

    @classmethod
    def from_dependency(cls, dependency: Dependency) -> "AutoRule":
        if dependency.predicate is not None:
            predicate = dependency.predicate
        else:
            pattern = re.compile(dependency.regex or ".*")
            predicate = lambda k, p=pattern: p.search(k) is not None
        return cls(key=derive_key(dependency), predicate=predicate, template=dependency)

    def matches(self, key: str) -> bool:
        return bool(self.predicate(key))

    def synthesize(self, key: str) -> Dependency:
        tpl = self.template
        target = tpl.factory(key) if tpl.factory is not None else key
        return tpl.copy(
            key=key,
            target=target,
            type=tpl.as_type or TYPE_CLASS,
            lifetime=tpl.lifetime or LIFETIME_TRANSIENT,
            regex=None,
            predicate=None,
            factory=None,
            as_type=None,
        )


def describe(dependency: Dependency) -> Dict[str, Any]:
    """Serializable summary of a descriptor, used by :meth:`Container.config`."""
    target = dependency.target
    if not isinstance(target, (str, int, float, bool, type(None))):
        target = getattr(target, "__qualname__", None) or type(target).__name__
    return {
        "key": dependency.key,
        "type": dependency.type,
        "lifetime": dependency.lifetime,
        "target": target,
        "category": dependency.category,
    }
