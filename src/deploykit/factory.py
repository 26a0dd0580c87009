"""Provider records and the low-level key-to-provider registry.

This module defines :class:`ProviderMetadata` (the immutable record kept for
every registered key) and :class:`ProviderFactory` (the registry that maps a
key to the zero-argument callable producing its instance).
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from .constants import LIFETIME_TRANSIENT
from .exceptions import ResolutionError

Provider = Callable[[], Any]


@dataclass(frozen=True)
class ProviderMetadata:
    """Immutable record for a registered provider.

    Attributes:
        key: The registration key.
        type: The descriptor type that produced the provider.
        lifetime: ``singleton`` or ``transient``.
        cacheable: Whether resolved instances may be cached at all. Values,
            functions, eager objects and aliases never are.
        alias_of: Target key when the provider is an alias.
    """
    key: str
    type: str
    lifetime: str = LIFETIME_TRANSIENT
    cacheable: bool = True
    alias_of: Optional[str] = None


class ProviderFactory:
    """Simple key-to-provider registry.

    Providers are zero-argument callables that return the instance for their
    key. Metadata travels alongside so caches know how long an instance lives.
    """

    def __init__(self) -> None:
        self._providers: Dict[str, Provider] = {}
        self._metadata: Dict[str, ProviderMetadata] = {}

    def bind(self, metadata: ProviderMetadata, provider: Provider) -> None:
        """Bind a provider callable to ``metadata.key``, replacing any previous binding."""
        self._providers[metadata.key] = provider
        self._metadata[metadata.key] = metadata

    def unbind(self, key: str) -> bool:
        """Remove the binding for *key*.

        Returns:
            ``True`` if a binding existed.
        """
        self._metadata.pop(key, None)
        return self._providers.pop(key, None) is not None

    def has(self, key: str) -> bool:
        return key in self._providers

    def metadata(self, key: str) -> Optional[ProviderMetadata]:
        return self._metadata.get(key)

    def get(self, key: str, origin: Optional[str] = None) -> Provider:
        """Retrieve the provider for *key*.

        Raises:
            ResolutionError: If no provider is bound to *key*.
        """
        if key not in self._providers:
            raise ResolutionError(key, origin)
        return self._providers[key]

    def __len__(self) -> int:
        return len(self._providers)
