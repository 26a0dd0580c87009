import json
import os

import pytest

from deploykit import Container, FileTemplateSource, MemoryTemplateSource, Template, TemplateManager
from deploykit.exceptions import TemplateLoadError


def test_file_source_save_load_list_delete(tmp_path):
    source = FileTemplateSource(str(tmp_path / "templates"))
    tpl = Template.from_dict({
        "stack": {"orchestrator": "node", "components": [{"name": "Echo", "input": [{"name": "msg", "value": "hi"}]}]},
    })

    assert source.save("echo", tpl) is True
    assert not os.path.exists(tmp_path / "templates" / "echo.json.tmp")

    loaded = source.load("echo")
    assert loaded.name == "echo"
    assert loaded.version == "1.0.0"
    assert loaded.stack.orchestrator == "node"
    assert loaded.components[0].input[0].value == "hi"
    assert "lastModified" in loaded.extra
    assert source.list() == ["echo"]

    assert source.delete("echo") is True
    assert source.list() == []


def test_file_source_reads_yaml(tmp_path):
    (tmp_path / "web.yaml").write_text(
        "name: web\n"
        "stack:\n"
        "  components:\n"
        "    - name: Echo\n"
        "      output:\n"
        "        - name: url\n"
    )
    tpl = FileTemplateSource(str(tmp_path)).load("web")
    assert [c.name for c in tpl.components] == ["Echo"]
    assert tpl.components[0].output[0].name == "url"


def test_file_source_missing_and_invalid(tmp_path):
    source = FileTemplateSource(str(tmp_path))
    with pytest.raises(TemplateLoadError) as exc:
        source.load("absent")
    assert exc.value.template == "absent"

    (tmp_path / "broken.json").write_text("{not json")
    with pytest.raises(TemplateLoadError):
        source.load("broken")

    (tmp_path / "nameless.json").write_text(json.dumps({"components": [{"input": []}]}))
    with pytest.raises(TemplateLoadError):
        source.load("nameless")


def test_file_source_list_requires_directory(tmp_path):
    with pytest.raises(TemplateLoadError):
        FileTemplateSource(str(tmp_path / "nowhere")).list()


def test_memory_source():
    source = MemoryTemplateSource({"a": {"components": [{"name": "Echo"}]}})
    assert source.load("a").components[0].name == "Echo"
    source.save("b", {"components": []})
    assert source.list() == ["a", "b"]
    source.delete("a")
    with pytest.raises(TemplateLoadError):
        source.load("a")


def test_manager_delegates_to_typed_source():
    c = Container()
    memory = MemoryTemplateSource({"t": {"components": []}})
    c.register([{"key": "template:manager:memory", "type": "value", "target": memory}])
    manager = TemplateManager(c, type="memory")

    assert manager.load("t").name == "t"
    manager.save("u", {"components": []})
    assert manager.list() == ["t", "u"]
    assert manager.delete("u") is True


@pytest.mark.parametrize("content", [
    {"components": [{"input": []}]},
    {"components": ["not-a-component"]},
])
def test_invalid_content_is_template_error_for_every_source(tmp_path, content):
    directory = tmp_path / "templates"
    directory.mkdir()
    (directory / "bad.json").write_text(json.dumps(content))

    for source in (MemoryTemplateSource({"bad": content}), FileTemplateSource(str(directory))):
        with pytest.raises(TemplateLoadError) as exc:
            source.load("bad")
        assert exc.value.template == "bad"


def test_component_engine_and_orchestrator_survive_save(tmp_path):
    source = FileTemplateSource(str(tmp_path))
    source.save("t", Template.from_dict({"components": [{"name": "A", "engine": "v2", "orchestrator": "node"}]}, name="t"))
    component = source.load("t").components[0]
    assert (component.engine, component.orchestrator) == ("v2", "node")
