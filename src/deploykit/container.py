"""The dependency container.

:class:`Container` turns string keys into fully constructed objects. It
supports literal values, lazily built classes and factories, aliases, eager
objects, and ``auto`` rules that register plugins the first time an unknown
key matching them is requested.

Registration is first-wins: registering a key that already exists is a
no-op. Bootstrap relies on this to apply caller overrides before defaults.
"""

import contextvars
import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from .constants import KEY_CONTAINER, LIFETIME_SINGLETON, LIFETIME_TRANSIENT, LOGGER
from .descriptor import (
    DEPENDENCY_TYPES, LIFETIMES, TYPE_ACTION, TYPE_ALIAS, TYPE_AUTO, TYPE_CLASS, TYPE_FUNCTION,
    TYPE_INSTANCE, TYPE_METHOD, TYPE_OBJECT, TYPE_REF, TYPE_VALUE,
    AutoRule, Dependency, DependencyInput, derive_key, describe, to_list,
)
from .exceptions import CircularDependencyError, ConfigurationError, ResolutionError
from .factory import Provider, ProviderFactory, ProviderMetadata
from .loader import load_target
from .pathtpl import render
from .scope import LifetimeCaches

_resolve_chain: contextvars.ContextVar[Tuple[str, ...]] = contextvars.ContextVar("deploykit_resolve_chain", default=())


class Container:
    """Lazily resolving object-graph builder.

    Args:
        logger: Optional logger; defaults to the ``deploykit`` logger.
        container_id: Optional identifier used in log records.

    Example:
        >>> c = Container()
        >>> c.register({"greeting": {"type": "value", "target": "hello"}})
        >>> c.resolve("greeting")
        'hello'
    """

    def __init__(self, logger: Any = None, container_id: Optional[str] = None) -> None:
        self._factory = ProviderFactory()
        self._caches = LifetimeCaches()
        self._store: List[Dependency] = []
        self._rules: "OrderedDict[str, AutoRule]" = OrderedDict()
        self._lock = threading.RLock()
        self.logger = logger or LOGGER
        self.container_id = container_id or f"c{time.time_ns():x}"
        self._created_at = time.time()
        self._resolve_count = 0
        self._cache_hit_count = 0
        self._auto_count = 0
        self._factory.bind(ProviderMetadata(KEY_CONTAINER, TYPE_VALUE, cacheable=False), lambda: self)

    # -- registration ---------------------------------------------------------

    @property
    def config(self) -> List[Dict[str, Any]]:
        """Snapshot of every tracked registration, in registration order."""
        with self._lock:
            return [describe(d) for d in self._store]

    def register(self, dependencies: DependencyInput) -> None:
        """Register descriptors given as a list or as a ``key -> descriptor`` mapping.

        Keys that are already registered are skipped.

        Raises:
            ConfigurationError: For invalid types, lifetimes or targets.
            ModuleLoadError: When a string target cannot be imported.
        """
        with self._lock:
            for dependency in to_list(dependencies):
                self._enroll(dependency)

    def register_rule(
        self,
        predicate: Callable[[str], bool],
        template: Optional[Union[Dependency, Mapping[str, Any]]] = None,
        factory: Optional[Callable[[str], Any]] = None,
        key: Optional[str] = None,
    ) -> str:
        """Register an auto rule from a predicate instead of a regex.

        Returns:
            The key under which the rule was stored.
        """
        base = to_list(template)[0] if template is not None else Dependency()
        rule_dep = base.copy(key=key or base.key, type=TYPE_AUTO, predicate=predicate, factory=factory or base.factory)
        with self._lock:
            rule_key = derive_key(rule_dep)
            self._enroll(rule_dep.copy(key=rule_key))
            return rule_key

    def _is_registered(self, key: str) -> bool:
        return self._factory.has(key) or key in self._rules

    def _enroll(self, dependency: Dependency) -> None:
        key = derive_key(dependency)
        if dependency.key != key:
            dependency = dependency.copy(key=key)

        if self._is_registered(key):
            self.logger.debug("Skipping already registered dependency: %s", key, extra={"src": "Container:register"})
            return

        dep_type = dependency.type or TYPE_CLASS
        if dep_type not in DEPENDENCY_TYPES:
            raise ConfigurationError(f"Unsupported dependency type '{dep_type}' for '{key}'")
        if dependency.lifetime not in LIFETIMES:
            raise ConfigurationError(f"Unknown lifetime '{dependency.lifetime}' for '{key}'")
        if dependency.type != dep_type:
            dependency = dependency.copy(type=dep_type)

        if dep_type == TYPE_AUTO:
            self._rules[key] = AutoRule.from_dependency(dependency)
            self._store.append(dependency)
            return

        if dependency.template and not dependency.file:
            dependency = dependency.copy(file=render(dependency.template, self._template_vars(dependency)))

        for nested in dependency.dependencies or ():
            if not nested.is_reference:
                self._enroll(nested)

        self._bind(dependency, dep_type)
        self._store.append(dependency)

    @staticmethod
    def _template_vars(dependency: Dependency) -> Dict[str, Any]:
        return {
            "key": dependency.key,
            "target": dependency.target if isinstance(dependency.target, str) else getattr(dependency.target, "__name__", None),
            "type": dependency.type,
            "lifetime": dependency.lifetime,
            "path": dependency.path,
            "category": dependency.category,
        }

    def _bind(self, dependency: Dependency, dep_type: str) -> None:
        key = dependency.key
        target = dependency.target

        if dep_type == TYPE_VALUE:
            self._factory.bind(ProviderMetadata(key, dep_type, cacheable=False), lambda: target)

        elif dep_type in (TYPE_FUNCTION, TYPE_METHOD):
            fn = self._load_callable(dependency)
            self._factory.bind(ProviderMetadata(key, dep_type, cacheable=False), lambda: fn)

        elif dep_type in (TYPE_ALIAS, TYPE_REF):
            if not isinstance(target, str) or not target:
                raise ConfigurationError(f"Alias '{key}' needs a target key")
            self._factory.bind(
                ProviderMetadata(key, dep_type, cacheable=False, alias_of=target),
                lambda: self._resolve_internal(target, origin=key),
            )

        elif dep_type in (TYPE_CLASS, TYPE_ACTION):
            build = self._make_builder(self._load_callable(dependency), dependency)
            self._factory.bind(ProviderMetadata(key, dep_type, lifetime=dependency.lifetime), build)

        elif dep_type in (TYPE_OBJECT, TYPE_INSTANCE):
            build = self._make_builder(self._load_callable(dependency), dependency)
            instance = build()
            self._factory.bind(ProviderMetadata(key, dep_type, cacheable=False), lambda: instance)

    def _load_callable(self, dependency: Dependency) -> Callable[..., Any]:
        target = dependency.target
        if isinstance(target, str):
            target = load_target(target, dependency.path, dependency.file)
        if not callable(target):
            raise ConfigurationError(f"Invalid {dependency.type} target for dependency: {dependency.key}")
        return target

    def _make_builder(self, fn: Callable[..., Any], dependency: Dependency) -> Provider:
        key = dependency.key
        args = list(dependency.args or ())
        nested = list(dependency.dependencies or ())

        def build() -> Any:
            call_args = list(args)
            if nested:
                call_args.append(self._build_dependencies(nested, origin=key))
            return fn(*call_args)

        return build

    def _build_dependencies(self, nested: Iterable[Dependency], origin: str) -> Dict[str, Any]:
        injected: Dict[str, Any] = {}
        for dep in nested:
            prop = derive_key(dep)
            target_key = dep.target if dep.type in (TYPE_REF, TYPE_ALIAS) and isinstance(dep.target, str) else prop
            injected[prop] = self._resolve_internal(target_key, origin=origin)
        return injected

    # -- resolution -----------------------------------------------------------

    def has(self, key: str) -> bool:
        return self._factory.has(key)

    def resolve(self, key: str) -> Any:
        """Return the instance for *key*, constructing it on first use.

        Singletons are constructed once and reused; transients are built on
        every call. An unknown key is offered to the auto rules, in
        registration order, before failing.

        Raises:
            ResolutionError: If the key is unknown and no rule matches.
            CircularDependencyError: If resolving the key re-enters itself.
        """
        return self._resolve_internal(key, origin=None)

    def _resolve_internal(self, key: str, origin: Optional[str]) -> Any:
        chain = _resolve_chain.get()
        if key in chain:
            raise CircularDependencyError(chain, key)

        try:
            provider = self._factory.get(key, origin)
        except ResolutionError:
            if not self._auto_register(key):
                raise
            provider = self._factory.get(key, origin)

        meta = self._factory.metadata(key)
        singleton = meta is not None and meta.cacheable and meta.lifetime == LIFETIME_SINGLETON
        cache = self._caches.for_lifetime(LIFETIME_SINGLETON if singleton else LIFETIME_TRANSIENT)
        if singleton and cache.contains(key):
            self._cache_hit_count += 1
            return cache.get(key)

        token = _resolve_chain.set(chain + (key,))
        try:
            if singleton:
                with self._lock:
                    if cache.contains(key):
                        self._cache_hit_count += 1
                        return cache.get(key)
                    instance = provider()
                    cache.put(key, instance)
            else:
                instance = provider()
        finally:
            _resolve_chain.reset(token)

        self._resolve_count += 1
        return instance

    def _auto_register(self, key: str) -> bool:
        with self._lock:
            if self._factory.has(key):
                return True
            for rule in list(self._rules.values()):
                if not rule.matches(key):
                    continue
                try:
                    self._enroll(rule.synthesize(key))
                except Exception as e:
                    self.logger.warning(
                        "Auto-registration failed for %s: %s", key, e,
                        extra={"src": "Container:auto", "data": {"rule": rule.key}},
                    )
                    continue
                if self._factory.has(key):
                    self._auto_count += 1
                    self.logger.info("Auto-registered dependency: %s", key, extra={"src": "Container:auto", "data": {"rule": rule.key}})
                    return True
            return False

    def ensure(self, key: str) -> None:
        """Make *key* resolvable without constructing it.

        Raises:
            ResolutionError: If the key is unknown and no rule matches.
        """
        if not self._factory.has(key) and not self._auto_register(key):
            raise ResolutionError(key)

    def get(self, key: Union[str, Dependency, Mapping[str, Any]]) -> Optional[Any]:
        """Best-effort variant of :meth:`resolve`.

        Accepts an inline descriptor, which is registered and then resolved.
        Any failure yields ``None``.
        """
        try:
            if isinstance(key, (Dependency, Mapping)):
                dependency = to_list(key)[0]
                self.register([dependency])
                key = derive_key(dependency)
            return self.resolve(key)
        except Exception as e:
            self.logger.debug("Optional dependency %s unavailable: %s", key, e, extra={"src": "Container:get"})
            return None

    def unregister(self, keys: Union[str, Iterable[str]]) -> None:
        """Remove registrations, cached instances and auto rules for *keys*.

        Unknown keys are logged and ignored.
        """
        if isinstance(keys, str):
            keys = [keys]
        with self._lock:
            for key in keys:
                removed = self._factory.unbind(key)
                rule = self._rules.pop(key, None)
                if not removed and rule is None:
                    self.logger.warning("Cannot unregister non-existent dependency: %s", key, extra={"src": "Container:unregister"})
                    continue
                self._caches.evict(key)
                self._store = [d for d in self._store if d.key != key]
                self.logger.info("Unregistered dependency: %s", key, extra={"src": "Container:unregister"})

    # -- lifecycle ------------------------------------------------------------

    def stats(self) -> Dict[str, Any]:
        resolves = self._resolve_count
        hits = self._cache_hit_count
        total = resolves + hits
        return {
            "container_id": self.container_id,
            "uptime_seconds": time.time() - self._created_at,
            "total_resolves": resolves,
            "cache_hits": hits,
            "cache_hit_rate": (hits / total) if total > 0 else 0.0,
            "auto_registrations": self._auto_count,
            "registered": len(self._factory),
            "rules": len(self._rules),
        }

    def shutdown(self) -> None:
        """Drop cached singletons, calling ``close()`` on those that have one."""
        with self._lock:
            self._caches.clear()
