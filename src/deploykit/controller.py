"""Component controllers.

A controller is the object registered under a component's name. The
orchestrator calls :meth:`BaseController.configure` with the component's
declaration and then the handler named after the current action.
"""

import logging
from typing import Any, Dict, Mapping, Optional

from .constants import KEY_LOGGER, LIFETIME_TRANSIENT
from .descriptor import TYPE_CLASS
from .models import ComponentMetadata, ComponentSpec, PipelineContext, Result

_logger = logging.getLogger(__name__)


class BaseController:
    """Base class for component controllers.

    Subclasses override the handlers they support. Only :meth:`deploy` is
    mandatory; the remaining handlers do nothing by default.

    Args:
        dependency: Injected dependencies when the controller is registered
            with nested ``dependencies``; a ``logger`` entry replaces the
            module logger.
    """

    def __init__(self, dependency: Optional[Mapping[str, Any]] = None) -> None:
        self.dependency: Dict[str, Any] = dict(dependency or {})
        self.logger = self.dependency.get(KEY_LOGGER) or _logger
        self.spec: Optional[ComponentSpec] = None

    def configure(self, spec: ComponentSpec) -> "BaseController":
        self.spec = spec
        return self

    async def setup(self, input: Optional[Dict[str, Any]], pipeline: PipelineContext) -> Optional[Result]:
        """Publish the resolved setup variables as this component's output."""
        if not self.spec or not self.spec.setup:
            return None
        return Result(success=True, action="setup", flow=pipeline.id, output=dict(input or {}))

    async def deploy(self, input: Optional[Dict[str, Any]], pipeline: PipelineContext) -> Optional[Result]:
        raise NotImplementedError

    async def undeploy(self, input: Optional[Dict[str, Any]], pipeline: PipelineContext) -> Optional[Result]:
        return None

    async def validate(self, input: Optional[Dict[str, Any]], pipeline: PipelineContext) -> Optional[Result]:
        return None

    async def status(self, input: Optional[Dict[str, Any]], pipeline: PipelineContext) -> Optional[Result]:
        return None

    async def out(self, input: Optional[Dict[str, Any]], pipeline: PipelineContext) -> Optional[Result]:
        """Publish the mapped output items, carrying duplicates as warns."""
        data = input or {}
        return Result(
            success=True,
            action="out",
            flow=pipeline.id,
            output=dict(data.get("items") or {}),
            warns=dict(data.get("warns") or {}),
        )

    def metadata(self) -> ComponentMetadata:
        spec = self.spec
        if spec is None:
            return ComponentMetadata(description=self.__class__.__doc__)
        return ComponentMetadata(
            description=spec.description,
            orchestrator=spec.orchestrator,
            engine=spec.engine,
            input=list(spec.input),
            setup=list(spec.setup),
            output=list(spec.output),
            dependency=list(spec.dependency),
        )


def register_controllers(container: Any, controllers: Mapping[str, Any], lifetime: str = LIFETIME_TRANSIENT) -> None:
    """Register controller classes under their component names.

    Values may be classes, ``"pkg.mod:Class"`` strings, or full descriptor
    mappings.
    """
    descriptors: Dict[str, Any] = {}
    for name, target in controllers.items():
        if isinstance(target, Mapping):
            descriptors[name] = dict(target)
        else:
            descriptors[name] = {"target": target, "type": TYPE_CLASS, "lifetime": lifetime}
    container.register(descriptors)
    _logger.debug("Registered controllers: %s", ", ".join(controllers), extra={"src": "Controller:register"})
