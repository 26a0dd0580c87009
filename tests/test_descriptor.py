import pytest

from deploykit.descriptor import AutoRule, Dependency, derive_key, to_list
from deploykit.exceptions import ConfigurationError, ModuleLoadError
from deploykit.loader import load_target
from deploykit.pathtpl import render


class Plugin:
    pass


def test_to_list_accepts_list_mapping_and_single_descriptor():
    as_list = to_list([{"key": "a", "target": Plugin}, Dependency(key="b", target=Plugin)])
    as_map = to_list({"a": {"target": Plugin}, "b": Dependency(target=Plugin)})
    single = to_list({"key": "a", "target": Plugin})

    assert [d.key for d in as_list] == ["a", "b"]
    assert [d.key for d in as_map] == ["a", "b"]
    assert [d.key for d in single] == ["a"]


def test_from_dict_maps_as_and_nested_dependencies():
    dep = Dependency.from_dict({"type": "auto", "as": "value", "dependencies": [{"key": "x"}]})
    assert dep.as_type == "value"
    assert dep.dependencies[0].key == "x"
    assert dep.dependencies[0].is_reference


def test_from_dict_rejects_unknown_fields():
    with pytest.raises(ConfigurationError):
        Dependency.from_dict({"key": "a", "targte": Plugin})


def test_derive_key():
    assert derive_key(Dependency(key="k")) == "k"
    assert derive_key(Dependency(target="pkg.Thing")) == "pkg.Thing"
    assert derive_key(Dependency(target=Plugin)) == "Plugin"
    assert derive_key(Dependency(type="auto")).startswith("auto-")
    with pytest.raises(ConfigurationError):
        derive_key(Dependency(target=42))


def test_regex_rule_uses_search_semantics():
    rule = AutoRule.from_dependency(Dependency(key="r", type="auto", regex="widget"))
    assert rule.matches("my-widget:x")
    assert not rule.matches("gadget")


def test_rule_without_regex_matches_everything():
    rule = AutoRule.from_dependency(Dependency(key="r", type="auto"))
    assert rule.matches("anything")


def test_synthesize_copies_template():
    rule = AutoRule.from_dependency(Dependency(key="r", type="auto", regex="^c:", path="plugins", lifetime="singleton"))
    dep = rule.synthesize("c:one")
    assert (dep.key, dep.target, dep.type, dep.lifetime, dep.path) == ("c:one", "c:one", "class", "singleton", "plugins")
    assert dep.regex is None


# --- Path templates ---

def test_render_fills_values_and_defaults():
    assert render("plugins.{category:core}.{target}", {"target": "Echo"}) == "plugins.core.Echo"
    assert render("{missing}/x", {}) == "missing/x"
    assert render("{ key }", {"key": "v"}) == "v"


# --- Loader ---

def test_load_target_from_directory_path(tmp_path):
    (tmp_path / "Echo.py").write_text("class Echo:\n    pass\n")
    assert load_target("Echo", path=str(tmp_path)).__name__ == "Echo"


def test_load_target_falls_back_to_all(tmp_path):
    (tmp_path / "plugin_mod.py").write_text("__all__ = ['Thing']\nclass Thing:\n    pass\n")
    assert load_target("plugin_mod", file=str(tmp_path / "plugin_mod.py")).__name__ == "Thing"


def test_load_target_requires_a_location():
    with pytest.raises(ModuleLoadError):
        load_target("Thing")


def test_load_target_missing_attribute(tmp_path):
    (tmp_path / "empty_mod.py").write_text("x = 1\n")
    with pytest.raises(ModuleLoadError):
        load_target("Nothing", file=str(tmp_path / "empty_mod.py"))
