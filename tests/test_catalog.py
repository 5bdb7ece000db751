import pytest
from pydantic import ValidationError

from nodeflow.engine.catalog import NodeType, is_trigger_type, node_catalog
from nodeflow.engine.exceptions import UnknownNodeTypeError
from nodeflow.engine.registry import operation_registry


def test_every_node_type_is_catalogued_and_runnable():
    assert len(node_catalog) == len(NodeType)
    for node_type in NodeType:
        entry = node_catalog.get(node_type.value)
        assert entry.type is node_type
        assert operation_registry.get(node_type.value)


def test_lookup_unknown_type():
    assert node_catalog.lookup("bogus") is None
    assert "bogus" not in node_catalog
    with pytest.raises(UnknownNodeTypeError):
        node_catalog.get("bogus")


def test_categories():
    triggers = node_catalog.by_category("trigger")

    assert [entry.type for entry in triggers] == [NodeType.MANUAL_TRIGGER]
    assert all(is_trigger_type(entry.type.value) for entry in triggers)
    assert not any(is_trigger_type(entry.type.value) for entry in node_catalog.by_category("action"))


def test_condition_declares_true_and_false_ports():
    entry = node_catalog.get("action-condition")

    assert [port.name for port in entry.outputs] == ["true", "false"]
    assert entry.inputs[0].required is True


def test_default_config_only_includes_declared_defaults():
    assert node_catalog.get("action-http").default_config() == {"method": "GET", "headers": "{}"}
    assert node_catalog.get("action-code").default_config() == {}


def test_entries_are_immutable():
    entry = node_catalog.get("trigger-manual")
    with pytest.raises(ValidationError):
        entry.label = "Renamed"


def test_entries_serialize_with_camel_case_keys():
    payload = node_catalog.get("action-http").model_dump(by_alias=True, mode="json")

    assert payload["type"] == "action-http"
    assert "configFields" in payload
    assert payload["configFields"][0]["defaultValue"] == "GET"
    assert payload["configFields"][0]["options"][1] == {"label": "POST", "value": "POST"}
