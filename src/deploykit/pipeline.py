"""The pipeline orchestrator.

:class:`PipelineManager` loads a template, resolves each component's
controller from the container and hands three passes to the stack bridge:

* ``init``: every component's ``setup`` action;
* ``program``: every component's ``deploy`` action (or ``undeploy``,
  ``validate``, ``status`` for the other entry points);
* ``end``: every component's ``out`` action, reading from what ``program``
  produced.

Within a pass components run strictly in declared order and each one sees
the outputs of the components before it.
"""

import inspect
import os
import time
from dataclasses import fields
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from .actions import Action
from .constants import (
    DEFAULT_ORCHESTRATOR, ENV_ACTION, KEY_ENV_EXPOSER, KEY_STACK_MANAGER, KEY_TEMPLATE_MANAGER,
)
from .exceptions import ComponentExecutionError, ConfigurationError, StackBackendError, TemplateLoadError
from .log import flow_scope, get_logger
from .models import ComponentSpec, PipelineArgs, PipelineContext, Result, StackSettings, Template
from .template import parse_template

Transform = Callable[[ComponentSpec, Dict[str, Any]], Union[Any, Awaitable[Any]]]

EXPOSE = "EXPOSE"


class PipelineState(str, Enum):
    IDLE = "idle"
    LOADING_TEMPLATE = "loading_template"
    SETUP = "setup"
    PROCESSING = "processing"
    FINALIZING = "finalizing"
    COMPLETE = "complete"
    FAILED = "failed"


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class PipelineManager:
    """Runs templates against the configured stack bridge.

    Args:
        container: Container holding controllers and collaborators.
        default_orchestrator: Backend used by ``undeploy`` without a template.
        env_action: Overrides ``DEPLOYKIT_ENV_ACTION``; only ``EXPOSE`` keeps exposure on.
        logger: Optional logger; defaults to the container's ``logger`` entry.
    """

    def __init__(self, container: Any, default_orchestrator: str = DEFAULT_ORCHESTRATOR,
                 env_action: Optional[str] = None, logger: Any = None):
        self.container = container
        self.default_orchestrator = default_orchestrator
        self.env_action = env_action
        self.logger = logger or get_logger(container)
        self.states: Dict[str, PipelineState] = {}

    def state(self, flow: str) -> PipelineState:
        """Current state of the run identified by *flow*."""
        return self.states.get(flow, PipelineState.IDLE)

    # -- entry points ---------------------------------------------------------

    async def deploy(self, args: Union[PipelineArgs, Mapping[str, Any]]) -> Result:
        """Run the setup, deploy and output passes of a template.

        Raises:
            TemplateLoadError: If no template is named or it cannot be loaded.
            ResolutionError: If a component or collaborator is not registered.
        """
        args = self._args(args, Action.DEPLOY)
        flow = args.flow_id()
        start = time.perf_counter()
        with flow_scope(flow):
            stack = self.container.resolve(KEY_STACK_MANAGER)
            template = await self._load(args, flow, required=True)
            pipeline = PipelineContext(id=flow, args=args, template=template, container=self.container, stack=stack)
            components = template.components
            self.preflight(components)
            settings = self._settings(args, template)
            self.logger.debug(
                "Deploying template %s", template.name,
                extra={"flow": flow, "src": "Pipeline:deploy:init", "data": {
                    "template": template.name, "project": settings.project, "stack": settings.name,
                    "orchestrator": settings.orchestrator, "components": len(components),
                }},
            )

            deployed: Dict[str, Any] = {}

            async def init() -> Result:
                self.states[flow] = PipelineState.SETUP
                return await self.process(
                    components, Action.SETUP, pipeline,
                    lambda c, o: stack.transform_input(c, o, key=Action.SETUP.input_key, flow=flow),
                )

            async def program() -> Result:
                self.states[flow] = PipelineState.PROCESSING
                res = await self.process(
                    components, Action.DEPLOY, pipeline,
                    lambda c, o: stack.transform_input(c, o, key=Action.DEPLOY.input_key, flow=flow),
                )
                deployed.update(res.output or {})
                return res

            async def end() -> Result:
                self.states[flow] = PipelineState.FINALIZING
                return await self.process(
                    components, Action.OUT, pipeline,
                    lambda c, o: stack.transform_output(c, o, key=Action.OUT.input_key, flow=flow),
                    scope=deployed,
                )

            try:
                stack_result = await stack.deploy(settings, init=init, program=program, end=end)
            except (ComponentExecutionError, StackBackendError) as e:
                return self._failed(Action.DEPLOY, args, template, settings, e, start)

            output = dict(deployed)
            output.update(stack_result.output or {})
            self.expose(output, flow)

            self.states[flow] = PipelineState.COMPLETE if stack_result.success else PipelineState.FAILED
            verb = "deployed successfully" if stack_result.success else "deployed with failures"
            self.logger.debug(
                "Deployment of %s finished", template.name,
                extra={"flow": flow, "src": "Pipeline:deploy:end", "data": {"success": stack_result.success}},
            )
            return Result(
                success=stack_result.success,
                message=f"Pipeline {template.name} {verb}.",
                duration=time.perf_counter() - start,
                output=output,
                results=[stack_result],
                warns=dict(stack_result.warns),
                action=Action.DEPLOY.value,
                flow=flow,
                template_name=template.name,
                stack_name=settings.name,
                project_name=settings.project,
            )

    async def undeploy(self, args: Union[PipelineArgs, Mapping[str, Any]]) -> Result:
        """Tear a stack down; the template is optional."""
        return await self._single_pass(Action.UNDEPLOY, args, template_required=False)

    async def validate(self, args: Union[PipelineArgs, Mapping[str, Any]]) -> Result:
        return await self._single_pass(Action.VALIDATE, args, template_required=True)

    async def status(self, args: Union[PipelineArgs, Mapping[str, Any]]) -> Result:
        return await self._single_pass(Action.STATUS, args, template_required=True)

    # -- core -----------------------------------------------------------------

    async def process(
        self,
        components: List[ComponentSpec],
        action: Action,
        pipeline: PipelineContext,
        transform: Transform,
        scope: Optional[Mapping[str, Any]] = None,
    ) -> Result:
        """Run *action* on every component, in order.

        Each component's input is built by ``transform(component, scope)``
        where ``scope`` holds *scope* plus every output produced so far in
        this pass. The first failure aborts the remaining components; there
        is no retry or rollback.

        Raises:
            ResolutionError: If a controller cannot be resolved.
            ComponentExecutionError: If a controller action raises.
        """
        results: List[Optional[Result]] = []
        accumulated: Dict[str, Any] = dict(scope or {})
        output: Dict[str, Any] = {}
        warns: Dict[str, Any] = {}

        for component in components:
            controller = self.container.resolve(component.name)
            configure = getattr(controller, "configure", None)
            if callable(configure):
                configure(component)
            data = await _maybe_await(transform(component, accumulated))
            try:
                res = await action.invoke(controller, data, pipeline)
            except ComponentExecutionError:
                raise
            except Exception as e:
                self.logger.error(
                    "Component %s failed on %s: %s", component.name, action.value, e,
                    extra={"flow": pipeline.id, "src": f"Pipeline:{action.value}", "data": {"component": component.name}},
                )
                raise ComponentExecutionError(component.name, action, e) from e
            results.append(res)
            if res is not None and res.output:
                output.update(res.output)
                accumulated.update(res.output)
            if res is not None and res.warns:
                warns.update(res.warns)

        return Result(
            success=all(r.success for r in results if r is not None),
            message=f"{action.value} pass completed for {len(components)} components.",
            output=output,
            results=results,
            warns=warns,
            action=action.value,
            flow=pipeline.id,
        )

    def preflight(self, components: List[ComponentSpec]) -> None:
        """Fail before anything runs when a component name is not registered."""
        for component in components:
            self.container.ensure(component.name)

    def expose(self, output: Mapping[str, Any], flow: Optional[str]) -> None:
        """Publish *output* through the ``env:exposer`` entry; never raises."""
        action = self.env_action if self.env_action is not None else os.environ.get(ENV_ACTION)
        if not output or (action is not None and action != EXPOSE):
            return
        try:
            exposer = self.container.get(KEY_ENV_EXPOSER)
            if exposer is not None:
                exposer.expose(output, flow=flow)
        except Exception as e:
            self.logger.warning(
                "It was not possible to expose the environment variables: %s", e,
                extra={"flow": flow, "src": "Pipeline:deploy:expose", "data": {"keys": sorted(output)}},
            )

    # -- helpers --------------------------------------------------------------

    async def _single_pass(self, action: Action, args: Union[PipelineArgs, Mapping[str, Any]], template_required: bool) -> Result:
        args = self._args(args, action)
        flow = args.flow_id()
        start = time.perf_counter()
        with flow_scope(flow):
            stack = self.container.resolve(KEY_STACK_MANAGER)
            template = await self._load(args, flow, required=template_required)
            if template is not None:
                settings = self._settings(args, template)
                components = template.components
            else:
                settings = StackSettings(name=args.stack, project=args.project, orchestrator=self.default_orchestrator)
                components = []
            pipeline = PipelineContext(id=flow, args=args, template=template, container=self.container, stack=stack)
            self.preflight(components)

            async def program() -> Result:
                self.states[flow] = PipelineState.PROCESSING
                return await self.process(
                    components, action, pipeline,
                    lambda c, o: stack.transform_input(c, o, key=action.input_key, flow=flow),
                )

            try:
                stack_result = await getattr(stack, action.value)(settings, program=program)
            except (ComponentExecutionError, StackBackendError) as e:
                return self._failed(action, args, template, settings, e, start)

            self.states[flow] = PipelineState.COMPLETE if stack_result.success else PipelineState.FAILED
            name = template.name if template is not None else args.template
            return Result(
                success=stack_result.success,
                message=stack_result.message or f"Pipeline {name or ''} {action.value} completed.",
                duration=time.perf_counter() - start,
                output=dict(stack_result.output or {}),
                results=[stack_result],
                warns=dict(stack_result.warns),
                action=action.value,
                flow=flow,
                template_name=name,
                stack_name=settings.name,
                project_name=settings.project,
            )

    async def _load(self, args: PipelineArgs, flow: str, required: bool) -> Optional[Template]:
        self.states[flow] = PipelineState.LOADING_TEMPLATE
        if not args.template:
            if required:
                raise TemplateLoadError(None, "A valid template name was not provided")
            return None
        source = self.container.resolve(KEY_TEMPLATE_MANAGER)
        template = await _maybe_await(source.load(args.template, flow=flow))
        return parse_template(args.template, template)

    @staticmethod
    def _args(args: Union[PipelineArgs, Mapping[str, Any]], action: Action) -> PipelineArgs:
        if not isinstance(args, PipelineArgs):
            values = dict(args)
            unknown = sorted(set(values) - {f.name for f in fields(PipelineArgs)})
            if unknown:
                raise ConfigurationError(f"Unknown pipeline arguments: {', '.join(unknown)}")
            args = PipelineArgs(**values)
        if args.action is None:
            args.action = action.value
        return args

    @staticmethod
    def _settings(args: PipelineArgs, template: Template) -> StackSettings:
        base = StackSettings(name=args.stack, project=args.project)
        return base.merged(**template.stack.__dict__)

    def _failed(self, action: Action, args: PipelineArgs, template: Optional[Template],
                settings: StackSettings, error: Exception, start: float) -> Result:
        flow = args.flow_id()
        self.states[flow] = PipelineState.FAILED
        self.logger.error(
            "Pipeline %s failed: %s", action.value, error,
            extra={"flow": flow, "src": f"Pipeline:{action.value}", "data": {"error": error.__class__.__name__}},
        )
        return Result(
            success=False,
            message=str(error),
            duration=time.perf_counter() - start,
            error=error,
            action=action.value,
            flow=flow,
            template_name=template.name if template is not None else args.template,
            stack_name=settings.name,
            project_name=settings.project,
        )
