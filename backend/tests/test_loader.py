import pytest
import yaml
from configflow.config_loader import ConfigLoader, parse_config
from configflow.engine import RuleEngine
from configflow.models import RawConfig


def _module(module_id, keys, rules=None):
    return {
        "id": module_id,
        "name": module_id.title(),
        "initial": "idle",
        "groups": [
            {
                "id": 1,
                "name": "Main",
                "options": [
                    {"id": i, "key": key, "name": key.upper(), "editable": True, "included": i == 0}
                    for i, key in enumerate(keys)
                ],
            }
        ],
        "rules": rules or [],
        "states": {"idle": {"START": "running"}},
    }


def test_config_loader(tmp_path):
    pack1 = tmp_path / "pack1.yaml"
    pack1.write_text(yaml.dump({
        "modules": [_module("decoder", ["h264", "av1"], [{"option_key": "av1", "requires": ["h264"]}])]
    }))
    pack2 = tmp_path / "pack2.yaml"
    pack2.write_text(yaml.dump({"modules": [_module("audio", ["aac"])]}))

    loader = ConfigLoader(str(tmp_path))
    nodes, edges, rules = loader.load_all()

    kinds = [n.kind for n in nodes]
    assert kinds.count("container") == 1
    assert kinds.count("module") == 2
    assert kinds.count("group") == 2
    assert kinds.count("option") == 3
    assert [m.id for m in rules.modules] == ["decoder", "audio"]
    assert rules.modules[0].rules[0].subject_key == "av1"

    overlays = [e for e in edges if e.rel == "requires"]
    assert len(overlays) == 1
    by_id = {n.id: n for n in nodes}
    assert by_id[overlays[0].source].option_key == "h264"
    assert by_id[overlays[0].target].option_key == "av1"


def test_duplicate_module_id(tmp_path):
    (tmp_path / "pack1.yaml").write_text(yaml.dump({"modules": [_module("decoder", ["h264"])]}))
    (tmp_path / "pack2.yaml").write_text(yaml.dump({"modules": [_module("decoder", ["av1"])]}))

    loader = ConfigLoader(str(tmp_path))
    with pytest.raises(ValueError, match="Duplicate module ID"):
        loader.load_all()


def test_duplicate_option_key(tmp_path):
    (tmp_path / "pack.yaml").write_text(yaml.dump({"modules": [_module("decoder", ["h264", "h264"])]}))

    loader = ConfigLoader(str(tmp_path))
    with pytest.raises(ValueError, match="Duplicate option key in module decoder: h264"):
        loader.load_all()


def test_empty_pack_is_skipped(tmp_path):
    (tmp_path / "empty.yaml").write_text("")
    nodes, edges, rules = ConfigLoader(str(tmp_path)).load_all()

    assert [n.kind for n in nodes] == ["container"]
    assert edges == []
    assert rules.modules == []


def test_reload_resets_state(tmp_path):
    (tmp_path / "pack.yaml").write_text(yaml.dump({"modules": [_module("decoder", ["h264"])]}))
    loader = ConfigLoader(str(tmp_path))
    loader.load_all()
    nodes, _, _ = loader.load_all()

    assert len(loader.modules) == 1
    assert len(nodes) == 4


def test_parsed_graph_has_one_parent_per_node():
    config = RawConfig.model_validate({
        "modules": [_module("decoder", ["h264", "av1", "vp9"], [{"option_key": "vp9", "requires": ["h264", "av1"]}])]
    })
    nodes, edges = parse_config(config)
    engine = RuleEngine(nodes, edges, config.rule_table())

    for node in nodes:
        if node.kind == "container":
            assert engine.parent_of(node.id) is None
        else:
            assert engine.parent_of(node.id) is not None
    assert all(n.id.startswith("node_") for n in nodes)

    option = next(n for n in nodes if n.option_key == "h264")
    assert option.properties["included"] is True
    assert option.description == "Included"
