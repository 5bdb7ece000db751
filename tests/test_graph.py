import pytest

from nodeflow.engine.catalog import NodeType
from nodeflow.engine.exceptions import GraphValidationError, UnknownNodeTypeError
from nodeflow.engine.graph import CanvasData, Position, WorkflowGraph


@pytest.fixture
def graph():
    return WorkflowGraph()


def test_add_node_uses_catalog_label(graph):
    node = graph.add_node(NodeType.SET_VARIABLE, Position(x=10, y=20))

    assert node.id.startswith("node-")
    assert node.type == "action-set-variable"
    assert node.label == "Set Variable"
    assert node.config == {}
    assert graph.nodes == [node]


def test_add_node_rejects_unknown_type(graph):
    with pytest.raises(UnknownNodeTypeError):
        graph.add_node("bogus")


def test_self_loop_is_rejected(graph):
    node = graph.add_node(NodeType.CODE)

    with pytest.raises(GraphValidationError, match="itself"):
        graph.add_connection(node.id, node.id)


def test_connection_endpoints_must_exist(graph):
    node = graph.add_node(NodeType.MANUAL_TRIGGER)

    with pytest.raises(GraphValidationError, match="not found"):
        graph.add_connection(node.id, "missing")


def test_duplicate_connection_returns_existing(graph):
    a = graph.add_node(NodeType.MANUAL_TRIGGER)
    b = graph.add_node(NodeType.CODE)

    first = graph.add_connection(a.id, b.id)
    second = graph.add_connection(a.id, b.id, source_output="output")

    assert second is first
    assert len(graph.connections) == 1


def test_remove_node_drops_its_connections(graph):
    a = graph.add_node(NodeType.MANUAL_TRIGGER)
    b = graph.add_node(NodeType.CODE)
    c = graph.add_node(NodeType.CODE)
    graph.add_connection(a.id, b.id)
    keep = graph.add_connection(a.id, c.id)
    graph.add_connection(b.id, c.id)

    graph.remove_node(b.id)

    assert [node.id for node in graph.nodes] == [a.id, c.id]
    assert graph.connections == [keep]


def test_update_and_move_node(graph):
    node = graph.add_node(NodeType.CODE)

    graph.update_node(node.id, label="Double", config={"code": "return input * 2"})
    moved = graph.move_node(node.id, 5, 7)

    assert moved.label == "Double"
    assert moved.config == {"code": "return input * 2"}
    assert moved.position == Position(x=5, y=7)
    with pytest.raises(GraphValidationError):
        graph.update_node("missing", label="x")


def test_remove_unknown_connection(graph):
    with pytest.raises(GraphValidationError):
        graph.remove_connection("conn-missing")


def test_canvas_round_trips_camel_case():
    document = {
        "nodes": [
            {"id": "a", "type": "trigger-manual", "position": {"x": 1, "y": 2}, "config": {}},
            {"id": "b", "type": "bogus", "position": {"x": 3, "y": 4}, "config": {"k": [1]}},
        ],
        "connections": [
            {"id": "c1", "sourceId": "a", "targetId": "b", "sourceOutput": "output"}
        ],
        "viewport": {"x": 0, "y": 0, "zoom": 1.5},
    }

    canvas = CanvasData.model_validate(document)
    dumped = canvas.model_dump(by_alias=True, exclude_none=True)

    assert canvas.connections[0].source_id == "a"
    assert dumped["connections"][0] == {
        "id": "c1",
        "sourceId": "a",
        "targetId": "b",
        "sourceOutput": "output",
    }
    assert dumped["nodes"][1]["type"] == "bogus"
    assert dumped["viewport"]["zoom"] == 1.5
