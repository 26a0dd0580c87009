"""Exception hierarchy for deploykit.

All library exceptions inherit from :class:`DeployKitError`, so a caller can
catch any deploykit failure with a single ``except DeployKitError`` clause.
"""

from typing import Any, Iterable, Optional


class DeployKitError(Exception):
    """Base exception for all deploykit errors."""

    pass


class ConfigurationError(DeployKitError):
    """Raised for wiring problems: bad descriptors, missing container entries, invalid settings."""

    def __init__(self, msg: str):
        super().__init__(msg)


class ResolutionError(DeployKitError):
    """Raised when the container cannot resolve a key.

    Attributes:
        key: The key that was requested.
        origin: The key whose construction requested it, if any.
    """

    def __init__(self, key: Any, origin: Any | None = None, msg: Optional[str] = None):
        origin_name = str(origin) if origin else "init"
        super().__init__(msg or f"Dependency '{key}' is not registered (required by: '{origin_name}')")
        self.key = key
        self.origin = origin


class CircularDependencyError(ResolutionError):
    """Raised when resolving a key re-enters its own resolution chain.

    Attributes:
        chain: The keys being resolved when the cycle was found, outermost first.
    """

    def __init__(self, chain: Iterable[Any], key: Any):
        self.chain = tuple(chain) + (key,)
        path = " -> ".join(str(k) for k in self.chain)
        super().__init__(key, self.chain[-2] if len(self.chain) > 1 else None, f"Circular dependency detected: {path}")


class ModuleLoadError(DeployKitError):
    """Raised when a string target cannot be imported.

    Attributes:
        path: The module path (or file) that failed to load.
        cause: The underlying import error.
    """

    def __init__(self, path: str, cause: Exception | None = None):
        detail = f": {cause.__class__.__name__}: {cause}" if cause else ""
        super().__init__(f"Failed to load module '{path}'{detail}")
        self.path = path
        self.cause = cause


class ComponentExecutionError(DeployKitError):
    """Raised when a controller action fails during a pipeline pass.

    Attributes:
        component: Name of the component whose action failed.
        action: The action being executed.
        cause: The original exception.
    """

    def __init__(self, component: str, action: Any, cause: Exception):
        action_name = getattr(action, "value", action)
        super().__init__(f"Component '{component}' failed on '{action_name}': {cause}")
        self.component = component
        self.action = action
        self.cause = cause


class TemplateLoadError(DeployKitError):
    """Raised when a template is missing or cannot be parsed.

    Attributes:
        template: The template name.
    """

    def __init__(self, template: Optional[str], msg: str):
        super().__init__(msg)
        self.template = template


class StackBackendError(DeployKitError):
    """Raised when a provisioning backend fails outside component execution.

    Attributes:
        stack: Name of the stack being operated on.
        cause: The original exception, if any.
    """

    def __init__(self, stack: Optional[str], msg: str, cause: Exception | None = None):
        super().__init__(msg)
        self.stack = stack
        self.cause = cause
