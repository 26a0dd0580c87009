import logging
from typing import Any, Dict, Mapping, Optional, Union

from .config import Settings, load_settings
from .constants import (
    KEY_ENV_EXPOSER, KEY_LOGGER, KEY_PIPELINE_MANAGER, KEY_PROCESSOR, KEY_SECRET, KEY_STACK_MANAGER,
    KEY_TEMPLATE_MANAGER, LIFETIME_SINGLETON,
)
from .container import Container
from .controller import register_controllers
from .descriptor import TYPE_ACTION, TYPE_VALUE, DependencyInput, to_list
from .environment import EnvExposer
from .pipeline import PipelineManager
from .processor import EnvSecretResolver, VariableProcessor
from .stack import NodeStackBridge, StackManager
from .template import FileTemplateSource, MemoryTemplateSource, TemplateManager

_CONTAINER_DEP = [{"key": "container"}]


def _normalize_override(key: str, v: Any) -> Dict[str, Any]:
    if callable(v):
        return {"key": key, "type": TYPE_ACTION, "lifetime": LIFETIME_SINGLETON, "target": lambda f=v: f()}
    return {"key": key, "type": TYPE_VALUE, "target": v}


def _singleton(key: str, build) -> Dict[str, Any]:
    return {
        "key": key,
        "type": TYPE_ACTION,
        "lifetime": LIFETIME_SINGLETON,
        "target": build,
        "dependencies": _CONTAINER_DEP,
    }


def default_dependencies(settings: Settings, templates: Optional[Mapping[str, Any]] = None) -> list:
    """Descriptors for the built-in collaborators, keyed by their well-known names."""
    return [
        _singleton(KEY_PROCESSOR, lambda dep: VariableProcessor(dep["container"])),
        {"key": KEY_SECRET, "target": EnvSecretResolver, "type": "class", "lifetime": LIFETIME_SINGLETON},
        _singleton(KEY_TEMPLATE_MANAGER, lambda dep: TemplateManager(dep["container"], type=settings.template_type)),
        {"key": f"{KEY_TEMPLATE_MANAGER}:file", "type": TYPE_ACTION, "lifetime": LIFETIME_SINGLETON,
         "target": lambda: FileTemplateSource(settings.template_path)},
        {"key": f"{KEY_TEMPLATE_MANAGER}:memory", "type": TYPE_VALUE, "target": MemoryTemplateSource(templates)},
        _singleton(KEY_STACK_MANAGER, lambda dep: StackManager(dep["container"], default_orchestrator=settings.orchestrator)),
        {"key": f"{KEY_STACK_MANAGER}:node", "target": NodeStackBridge, "type": "class", "lifetime": LIFETIME_SINGLETON},
        {"key": KEY_ENV_EXPOSER, "type": TYPE_ACTION, "lifetime": LIFETIME_SINGLETON,
         "target": lambda: EnvExposer(settings.env_prefix, settings.env_limit, settings.env_quote)},
        _singleton(KEY_PIPELINE_MANAGER, lambda dep: _pipeline(dep["container"], settings)),
    ]


def _pipeline(container: Container, settings: Settings) -> PipelineManager:
    return PipelineManager(container, default_orchestrator=settings.orchestrator, env_action=settings.env_action)


def init(
    settings: Optional[Union[Settings, Mapping[str, Any]]] = None,
    *,
    dependencies: Optional[DependencyInput] = None,
    controllers: Optional[Mapping[str, Any]] = None,
    templates: Optional[Mapping[str, Any]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    logger: Optional[logging.Logger] = None,
    container_id: Optional[str] = None,
) -> Container:
    """Build a container wired with the pipeline and its collaborators.

    Registration is first-wins, so entries are applied in precedence order:
    *overrides*, the logger, configured and explicit *dependencies*,
    *controllers*, and finally the built-in defaults.

    Args:
        settings: :class:`Settings`, or a mapping merged over the
            ``DEPLOYKIT_*`` environment by :func:`load_settings`.
        dependencies: Extra descriptors.
        controllers: ``component name -> controller class`` mapping.
        templates: Seed for the ``memory`` template source.
        overrides: ``key -> instance or zero-argument factory`` replacements.
        logger: Logger registered under ``logger``.
        container_id: Identifier shown in container stats.

    Returns:
        The configured :class:`Container`.
    """
    if not isinstance(settings, Settings):
        settings = load_settings(settings or {})

    container = Container(logger=logger, container_id=container_id)

    if overrides:
        container.register([_normalize_override(k, v) for k, v in overrides.items()])
    if logger is not None:
        container.register([{"key": KEY_LOGGER, "type": TYPE_VALUE, "target": logger}])
    if settings.dependencies:
        container.register(to_list(settings.dependencies))
    if dependencies:
        container.register(dependencies)
    if controllers:
        register_controllers(container, controllers)
    container.register(default_dependencies(settings, templates))
    return container


def pipeline(container: Container):
    """The ``pipeline:manager`` entry of *container*."""
    return container.resolve(KEY_PIPELINE_MANAGER)
