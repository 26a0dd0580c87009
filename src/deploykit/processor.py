"""Variable resolution.

A component declares its inputs and outputs as lists of
:class:`~deploykit.models.VariableMetadata`. :class:`VariableProcessor` turns
those declarations into concrete values, reading literals, the process
environment, a secret resolver, or the values accumulated by earlier
components in the same run.
"""

import inspect
import logging
import os
from typing import Any, Dict, Mapping, Optional, Sequence

from .constants import KEY_SECRET
from .models import VariableMetadata, VarType

_logger = logging.getLogger(__name__)

DEFAULT_NAME = "default"


class EnvSecretResolver:
    """Secret resolver backed by the process environment.

    Args:
        prefix: Prepended to every lookup key.
    """

    def __init__(self, prefix: str = "") -> None:
        self.prefix = prefix

    def resolve(self, key: str, flow: Optional[str] = None) -> Optional[str]:
        return os.environ.get(f"{self.prefix}{key}")


class VariableProcessor:
    """Resolves variable declarations into values.

    Args:
        container: Container used to find the secret resolver lazily.
        secrets: Explicit secret resolver; wins over the container entry.
        logger: Optional logger.
    """

    def __init__(self, container: Any = None, secrets: Any = None, logger: Any = None) -> None:
        self.container = container
        self._secrets = secrets
        self.logger = logger or _logger

    @property
    def secrets(self) -> Any:
        if self._secrets is None and self.container is not None:
            self._secrets = self.container.get(KEY_SECRET)
        return self._secrets

    async def process(
        self,
        definitions: Optional[Sequence[Any]],
        scope: Optional[Mapping[str, Any]] = None,
        flow: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Resolve *definitions* into a ``name -> value`` mapping.

        Later definitions with the same name overwrite earlier ones.
        """
        result: Dict[str, Any] = {}
        for index, raw in enumerate(definitions or ()):
            await self.transform(raw, scope or {}, result, flow, index)
        return result

    async def map(
        self,
        definitions: Optional[Sequence[Any]],
        scope: Optional[Mapping[str, Any]] = None,
        flow: Optional[str] = None,
    ) -> Dict[str, Dict[str, Any]]:
        """Resolve output declarations, keeping duplicates apart.

        Definitions without a type are read from *scope* under their own
        name. A name seen twice keeps its first value in ``items`` and
        records the newer one in ``warns``.

        Returns:
            ``{"items": {...}, "warns": {...}}``
        """
        items: Dict[str, Any] = {}
        warns: Dict[str, Any] = {}
        scope = scope or {}
        for index, raw in enumerate(definitions or ()):
            meta = self._normalise(raw, index)
            if not meta.type:
                meta.type = VarType.REFERENCE.value
            name = meta.name or DEFAULT_NAME
            value = await self.resolve(meta, scope, flow)
            if name in items:
                warns[name] = value
                self.logger.debug("Duplicate output %s", name, extra={"flow": flow, "src": "Processor:map"})
            else:
                items[name] = value
        return {"items": items, "warns": warns}

    async def transform(
        self,
        definition: Any,
        scope: Mapping[str, Any],
        result: Dict[str, Any],
        flow: Optional[str] = None,
        index: int = 0,
    ) -> Dict[str, Any]:
        """Resolve a single definition into *result* and return it."""
        meta = self._normalise(definition, index)
        result[meta.name or DEFAULT_NAME] = await self.resolve(meta, scope, flow)
        return result

    async def resolve(self, meta: VariableMetadata, scope: Mapping[str, Any], flow: Optional[str] = None) -> Any:
        key = meta.lookup_key
        kind = meta.var_type
        if kind is VarType.ENVIRONMENT:
            value = os.environ.get(key) if key else None
        elif kind in (VarType.SECRET, VarType.PROTECTED):
            value = await self._secret(key, flow)
        elif kind is VarType.REFERENCE:
            value = scope.get(key) if key else None
        else:
            value = meta.value
        return meta.default if value is None else value

    async def _secret(self, key: Optional[str], flow: Optional[str]) -> Any:
        resolver = self.secrets
        if resolver is None or not key:
            return None
        try:
            fn = getattr(resolver, "resolve", resolver)
            value = fn(key, flow=flow)
            if inspect.isawaitable(value):
                value = await value
            return value
        except Exception as e:
            self.logger.error(
                "Secret lookup failed for %s: %s", key, e,
                extra={"flow": flow, "src": "Processor:secret", "data": {"key": key}},
            )
            return None

    @staticmethod
    def _normalise(definition: Any, index: int) -> VariableMetadata:
        if isinstance(definition, str):
            return VariableMetadata(name=str(index), value=definition)
        meta = VariableMetadata.from_dict(definition)
        if isinstance(definition, VariableMetadata):
            meta = VariableMetadata(**meta.__dict__)
        return meta
