import pytest

from deploykit import Action, BaseController, ComponentSpec, Result, Template
from deploykit.exceptions import ConfigurationError
from deploykit.models import PipelineArgs, VarType


def test_template_accepts_top_level_components():
    tpl = Template.from_dict({"components": [{"name": "Echo"}], "orchestrator": "node"}, name="echo")
    assert tpl.name == "echo"
    assert tpl.stack.orchestrator == "node"
    assert [c.name for c in tpl.components] == ["Echo"]


def test_template_with_stack_section_keeps_extra_keys():
    tpl = Template.from_dict({
        "name": "full",
        "owner": "ops",
        "stack": {"orchestrator": "node", "components": [{"name": "A", "region": "eu"}]},
    })
    assert tpl.extra == {"owner": "ops"}
    assert tpl.components[0].extra == {"region": "eu"}


def test_component_input_may_be_a_mapping():
    spec = ComponentSpec.from_dict({"name": "A", "input": {"x": {"type": "value", "value": 1}, "y": "literal"}})
    assert [(m.name, m.value) for m in spec.input] == [("x", 1), ("y", "literal")]


def test_component_without_name_is_rejected():
    with pytest.raises(ConfigurationError):
        ComponentSpec.from_dict({"input": []})


def test_unknown_var_type_is_value():
    assert VarType.parse("bogus") is VarType.VALUE
    assert VarType.parse(None) is VarType.VALUE


def test_flow_id_defaults_to_project_and_stack():
    assert PipelineArgs(project="p", stack="s").flow_id() == "p-s"
    assert PipelineArgs(id="explicit", project="p").flow_id() == "explicit"


def test_result_to_dict_renders_error_and_nested_results():
    inner = Result(success=True, output={"a": 1})
    res = Result(success=False, message="boom", error=RuntimeError("x"), results=[inner, None])
    data = res.to_dict()
    assert data["error"] == "RuntimeError: x"
    assert data["results"][0]["output"] == {"a": 1}
    assert data["results"][1] is None


# --- Actions ---

class OnlyDeploy:
    def deploy(self, data, pipeline):
        return Result(output={"sync": data})


@pytest.mark.asyncio
async def test_missing_handler_is_a_noop():
    assert await Action.VALIDATE.invoke(OnlyDeploy(), {}, None) is None


@pytest.mark.asyncio
async def test_sync_handler_is_accepted():
    res = await Action.DEPLOY.invoke(OnlyDeploy(), 1, None)
    assert res.output == {"sync": 1}


def test_action_input_keys():
    assert Action.SETUP.input_key == "setup"
    assert Action.OUT.input_key == "output"
    assert Action.UNDEPLOY.input_key == "input"


def test_base_controller_metadata_reflects_spec():
    class Ctl(BaseController):
        async def deploy(self, input, pipeline):
            return None

    ctl = Ctl().configure(ComponentSpec.from_dict({
        "name": "Ctl", "description": "demo", "engine": "v2", "orchestrator": "node", "output": [{"name": "o"}],
    }))
    meta = ctl.metadata()
    assert meta.description == "demo"
    assert (meta.engine, meta.orchestrator) == ("v2", "node")
    assert ctl.spec.extra == {}
    assert [m.name for m in meta.output] == ["o"]
