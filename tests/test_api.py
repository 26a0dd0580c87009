import logging

import pytest

from deploykit import (
    BaseController,
    Container,
    NodeStackBridge,
    PipelineManager,
    Result,
    Settings,
    StackManager,
    TemplateManager,
    VariableProcessor,
    init,
    pipeline,
    register_controllers,
)
from deploykit.processor import EnvSecretResolver


class Hello(BaseController):
    async def deploy(self, input, pipeline):
        return Result(output={"hello": self.dependency.get("greeting")})


class CustomProcessor(VariableProcessor):
    pass


def test_init_wires_builtin_collaborators():
    c = init(Settings())

    assert isinstance(c, Container)
    assert isinstance(pipeline(c), PipelineManager)
    assert pipeline(c) is pipeline(c)
    assert isinstance(c.resolve("ProcessorService"), VariableProcessor)
    assert isinstance(c.resolve("SecretManager"), EnvSecretResolver)
    assert isinstance(c.resolve("template:manager"), TemplateManager)
    assert isinstance(c.resolve("pipeline:stack:manager"), StackManager)
    assert isinstance(c.resolve("pipeline:stack:manager:node"), NodeStackBridge)
    assert c.resolve("template:manager:file").path == "templates"


def test_overrides_win_over_defaults():
    custom = CustomProcessor()
    c = init(Settings(), overrides={"ProcessorService": custom, "SecretManager": lambda: "factory-made"})
    assert c.resolve("ProcessorService") is custom
    assert c.resolve("SecretManager") == "factory-made"


def test_configured_dependencies_are_registered():
    c = init(Settings(dependencies=[{"key": "region", "type": "value", "target": "eu"}]))
    assert c.resolve("region") == "eu"


def test_mapping_settings_go_through_loader(monkeypatch):
    monkeypatch.setenv("DEPLOYKIT_ORCHESTRATOR", "from-env")
    c = init({"template_type": "memory"})
    assert c.resolve("template:manager").type == "memory"
    assert c.resolve("pipeline:stack:manager").default_orchestrator == "from-env"


def test_logger_is_registered_and_used():
    custom = logging.getLogger("deploykit.test.custom")
    c = init(Settings(), logger=custom)
    assert c.resolve("logger") is custom
    assert c.logger is custom
    assert pipeline(c).logger is custom


@pytest.mark.asyncio
async def test_controllers_with_injected_dependencies():
    c = init(
        Settings(template_type="memory"),
        dependencies=[{"key": "greeting", "type": "value", "target": "hi"}],
        templates={"hello": {"components": [{"name": "Hello"}]}},
        overrides={"env:exposer": None},
    )
    register_controllers(c, {"Hello": {"target": Hello, "dependencies": [{"key": "greeting"}]}})

    res = await pipeline(c).deploy({"template": "hello"})

    assert res.output == {"hello": "hi"}
