"""Provisioning backend bridges.

The orchestrator never talks to a provisioning engine directly. It hands a
:class:`StackBridge` three callbacks (``init``, ``program`` and ``end``) and
the bridge decides when to run them relative to its own lifecycle.
"""

import inspect
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .constants import DEFAULT_ORCHESTRATOR, KEY_PROCESSOR, KEY_STACK_MANAGER
from .exceptions import DeployKitError, StackBackendError
from .log import current_flow
from .models import ComponentSpec, Result, StackSettings

_logger = logging.getLogger(__name__)

PassCallback = Callable[[], Awaitable[Optional[Result]]]


class StackBridge:
    """Contract every provisioning backend satisfies.

    Each method receives the stack settings plus the pass callbacks and
    returns one :class:`~deploykit.models.Result`.
    """

    async def deploy(self, settings: StackSettings, *, init: Optional[PassCallback] = None,
                     program: Optional[PassCallback] = None, end: Optional[PassCallback] = None) -> Result:
        raise NotImplementedError

    async def undeploy(self, settings: StackSettings, *, init: Optional[PassCallback] = None,
                       program: Optional[PassCallback] = None, end: Optional[PassCallback] = None) -> Result:
        raise NotImplementedError

    async def validate(self, settings: StackSettings, *, init: Optional[PassCallback] = None,
                       program: Optional[PassCallback] = None, end: Optional[PassCallback] = None) -> Result:
        raise NotImplementedError

    async def status(self, settings: StackSettings, *, init: Optional[PassCallback] = None,
                     program: Optional[PassCallback] = None, end: Optional[PassCallback] = None) -> Result:
        raise NotImplementedError


async def _call(callback: Optional[PassCallback]) -> Optional[Result]:
    if callback is None:
        return None
    res = callback()
    if inspect.isawaitable(res):
        res = await res
    return res


def _warns(*results: Optional[Result]) -> Dict[str, Any]:
    merged: Dict[str, Any] = {}
    for res in results:
        if res is not None and res.warns:
            merged.update(res.warns)
    return merged


def _succeeded(results: List[Optional[Result]]) -> bool:
    return all(r.success for r in results if r is not None)


class NodeStackBridge(StackBridge):
    """In-process backend: runs the callbacks itself and provisions nothing."""

    def __init__(self, logger: Any = None) -> None:
        self.logger = logger or _logger

    async def deploy(self, settings, *, init=None, program=None, end=None) -> Result:
        start = time.perf_counter()
        passes = [await _call(init), await _call(program), await _call(end)]
        final = passes[2]
        warns = _warns(*passes)
        if warns:
            self.logger.warning(
                "Stack %s produced duplicate outputs: %s", settings.name, ", ".join(warns),
                extra={"src": "Stack:node:deploy", "data": {"stack": settings.name, "project": settings.project, "issues": warns}},
            )
        return Result(
            success=_succeeded(passes),
            message=f"Stack {settings.name or ''} deployed.",
            duration=time.perf_counter() - start,
            output=dict(final.output or {}) if final is not None else {},
            warns=warns,
            results=passes,
            action="deploy",
            stack_name=settings.name,
            project_name=settings.project,
        )

    async def _direct(self, action: str, settings: StackSettings, program: Optional[PassCallback]) -> Result:
        start = time.perf_counter()
        res = await _call(program)
        return Result(
            success=res.success if res is not None else True,
            message=f"Stack {settings.name or ''} {action} completed.",
            duration=time.perf_counter() - start,
            output=dict(res.output or {}) if res is not None else {},
            warns=_warns(res),
            results=[res],
            action=action,
            stack_name=settings.name,
            project_name=settings.project,
        )

    async def undeploy(self, settings, *, init=None, program=None, end=None) -> Result:
        return await self._direct("undeploy", settings, program)

    async def validate(self, settings, *, init=None, program=None, end=None) -> Result:
        return await self._direct("validate", settings, program)

    async def status(self, settings, *, init=None, program=None, end=None) -> Result:
        return await self._direct("status", settings, program)


class StackManager(StackBridge):
    """Front bridge that selects the backend by ``settings.orchestrator``.

    The backend is resolved from the container under
    ``pipeline:stack:manager:<orchestrator>``. Unexpected backend exceptions
    are raised as :class:`~deploykit.exceptions.StackBackendError`; library
    errors raised by the callbacks pass through unchanged.

    Args:
        container: The container holding backends and the variable processor.
        settings: Defaults merged under every call's settings.
        logger: Optional logger.
    """

    def __init__(self, container: Any, settings: Optional[StackSettings] = None,
                 default_orchestrator: str = DEFAULT_ORCHESTRATOR, logger: Any = None) -> None:
        self.container = container
        self.settings = settings or StackSettings()
        self.default_orchestrator = default_orchestrator
        self.logger = logger or _logger

    @property
    def processor(self) -> Any:
        return self.container.resolve(KEY_PROCESSOR)

    def configure(self, settings: Optional[StackSettings]) -> StackSettings:
        """Merge *settings* over the defaults; ``workspace`` mappings merge key by key."""
        if settings is None:
            return self.settings
        merged = self.settings.merged(**settings.__dict__)
        merged.workspace = {**self.settings.workspace, **settings.workspace}
        return merged

    def backend(self, orchestrator: Optional[str]) -> StackBridge:
        return self.container.resolve(f"{KEY_STACK_MANAGER}:{orchestrator or self.default_orchestrator}")

    async def _execute(self, action: str, settings: Optional[StackSettings], callbacks: Dict[str, Any]) -> Result:
        settings = self.configure(settings)
        backend = self.backend(settings.orchestrator)
        try:
            return await getattr(backend, action)(settings, **callbacks)
        except DeployKitError:
            raise
        except Exception as e:
            self.logger.error(
                "Stack %s %s failed: %s", settings.name, action, e,
                extra={"src": f"Stack:{action}", "data": {"stack": settings.name, "project": settings.project}},
            )
            raise StackBackendError(settings.name, f"Stack {settings.name or ''} {action} failed: {e}", e) from e

    async def deploy(self, settings, *, init=None, program=None, end=None) -> Result:
        end = self._with_stack_output(self.configure(settings), end)
        return await self._execute("deploy", settings, {"init": init, "program": program, "end": end})

    async def undeploy(self, settings, *, init=None, program=None, end=None) -> Result:
        return await self._execute("undeploy", settings, {"init": init, "program": program, "end": end})

    async def validate(self, settings, *, init=None, program=None, end=None) -> Result:
        return await self._execute("validate", settings, {"init": init, "program": program, "end": end})

    async def status(self, settings, *, init=None, program=None, end=None) -> Result:
        return await self._execute("status", settings, {"init": init, "program": program, "end": end})

    async def transform_input(self, component: ComponentSpec, output: Dict[str, Any],
                              key: str = "input", flow: Optional[str] = None) -> Dict[str, Any]:
        """Resolve a component's ``key`` definitions against the accumulated output."""
        return await self.processor.process(component.definitions(key), output, flow)

    async def transform_output(self, component: ComponentSpec, output: Dict[str, Any],
                               key: str = "output", flow: Optional[str] = None) -> Dict[str, Dict[str, Any]]:
        """Map a component's output definitions into ``{"items", "warns"}``."""
        return await self.processor.map(component.definitions(key), output, flow)

    def _with_stack_output(self, settings: StackSettings, end: Optional[PassCallback]) -> Optional[PassCallback]:
        """Wrap *end* so the stack's own ``output`` definitions are mapped too.

        Stack items are resolved against the ``end`` pass output and sit
        beneath it: a component output wins over a stack item of the same name.
        """
        if not settings.output:
            return end

        async def output() -> Result:
            res = await _call(end)
            items = dict(res.output or {}) if res is not None else {}
            flow = current_flow()
            mapped = await self.processor.map(settings.output, items, flow)
            merged = {**mapped["items"], **items}
            warns = {**mapped["warns"], **_warns(res)}
            self.logger.debug(
                "Stack %s output processed", settings.name,
                extra={"flow": flow, "src": "Stack:output", "data": {
                    "stack": settings.name, "project": settings.project, "keys": sorted(merged),
                }},
            )
            return Result(
                success=res.success if res is not None else True,
                message=f"Stack {settings.name or ''} output processed.",
                output=merged,
                warns=warns,
                results=[res],
                action="out",
                flow=flow,
            )

        return output
