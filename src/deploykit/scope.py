"""Instance caches per lifetime.

``singleton`` instances are stored once per container; ``transient``
instances are never stored.
"""

import logging
from typing import Any, Dict, Optional

from .constants import LIFETIME_SINGLETON, LIFETIME_TRANSIENT
from .exceptions import ConfigurationError

_logger = logging.getLogger(__name__)


class InstanceCache:
    def __init__(self) -> None:
        self._instances: Dict[str, Any] = {}

    def get(self, key: str) -> Optional[Any]:
        return self._instances.get(key)

    def contains(self, key: str) -> bool:
        return key in self._instances

    def put(self, key: str, value: Any) -> None:
        self._instances[key] = value

    def evict(self, key: str) -> None:
        self._instances.pop(key, None)

    def items(self):
        return list(self._instances.items())


class _NoCache(InstanceCache):
    def __init__(self) -> None:
        pass

    def get(self, key: str) -> Optional[Any]:
        return None

    def contains(self, key: str) -> bool:
        return False

    def put(self, key: str, value: Any) -> None:
        return

    def evict(self, key: str) -> None:
        return

    def items(self):
        return []


class LifetimeCaches:
    """Selects the cache an instance lives in according to its lifetime."""

    def __init__(self) -> None:
        self._singleton = InstanceCache()
        self._no_cache = _NoCache()

    def for_lifetime(self, lifetime: str) -> InstanceCache:
        if lifetime == LIFETIME_SINGLETON:
            return self._singleton
        if lifetime == LIFETIME_TRANSIENT:
            return self._no_cache
        raise ConfigurationError(f"Unknown lifetime: '{lifetime}'")

    def evict(self, key: str) -> None:
        self._singleton.evict(key)

    def clear(self) -> None:
        for key, obj in self._singleton.items():
            close = getattr(obj, "close", None)
            if callable(close):
                try:
                    close()
                except Exception as e:
                    _logger.warning("Close of singleton %s failed: %s", key, e)
            self._singleton.evict(key)
