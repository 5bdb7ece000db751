import pytest
from fastapi.testclient import TestClient

from nodeflow.main import app
from nodeflow.workflows.sample import SAMPLE_NAME


@pytest.fixture(scope="module")
def client():
    with TestClient(app) as test_client:
        yield test_client


def create_workflow(client, name="API workflow"):
    resp = client.post("/workflows", json={"name": name})
    assert resp.status_code == 201
    return resp.json()["id"]


def add_node(client, workflow_id, node_type, config=None):
    payload = {"type": node_type}
    if config is not None:
        payload["config"] = config
    resp = client.post(f"/workflows/{workflow_id}/nodes", json=payload)
    assert resp.status_code == 201
    return resp.json()["id"]


def connect(client, workflow_id, source_id, target_id):
    return client.post(
        f"/workflows/{workflow_id}/connections",
        json={"sourceId": source_id, "targetId": target_id},
    )


def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_catalog_endpoints(client):
    listing = client.get("/nodes")
    assert listing.status_code == 200
    assert [entry["type"] for entry in listing.json()] == [
        "trigger-manual",
        "action-http",
        "action-set-variable",
        "action-condition",
        "action-code",
    ]

    assert client.get("/nodes/action-code").json()["label"] == "Code"
    assert client.get("/nodes/bogus").status_code == 404


def test_build_and_execute_workflow(client):
    workflow_id = create_workflow(client)
    trigger_id = add_node(client, workflow_id, "trigger-manual")
    set_id = add_node(
        client,
        workflow_id,
        "action-set-variable",
        {"variableName": "v", "value": '{"x": 1}'},
    )
    code_id = add_node(client, workflow_id, "action-code", {"code": "return variables.v.x + 1"})
    assert connect(client, workflow_id, trigger_id, set_id).status_code == 201
    assert connect(client, workflow_id, set_id, code_id).status_code == 201

    run = client.post(f"/workflows/{workflow_id}/execute")
    assert run.status_code == 200
    body = run.json()
    assert body["status"] == "completed"
    assert body["workflowId"] == workflow_id
    assert [r["nodeId"] for r in body["results"]] == [trigger_id, set_id, code_id]
    assert body["results"][-1]["output"] == 2

    stored = client.get(f"/executions/{body['id']}")
    assert stored.status_code == 200
    assert stored.json()["results"] == body["results"]

    history = client.get(f"/workflows/{workflow_id}/executions").json()
    assert [e["id"] for e in history] == [body["id"]]


def test_new_nodes_get_catalog_defaults(client):
    workflow_id = create_workflow(client)
    node_id = add_node(client, workflow_id, "action-http")

    canvas = client.get(f"/workflows/{workflow_id}").json()["canvasData"]
    assert canvas["nodes"][0]["id"] == node_id
    assert canvas["nodes"][0]["config"] == {"method": "GET", "headers": "{}"}
    assert canvas["nodes"][0]["label"] == "HTTP Request"


def test_graph_edit_errors(client):
    workflow_id = create_workflow(client)
    node_id = add_node(client, workflow_id, "action-code", {"code": "return 1"})

    self_loop = connect(client, workflow_id, node_id, node_id)
    assert self_loop.status_code == 400

    dangling = connect(client, workflow_id, node_id, "missing")
    assert dangling.status_code == 400

    unknown = client.post(f"/workflows/{workflow_id}/nodes", json={"type": "bogus"})
    assert unknown.status_code == 400

    assert client.delete(f"/workflows/{workflow_id}/nodes/missing").status_code == 404


def test_remove_node_removes_connections(client):
    workflow_id = create_workflow(client)
    trigger_id = add_node(client, workflow_id, "trigger-manual")
    code_id = add_node(client, workflow_id, "action-code", {"code": "return 1"})
    connect(client, workflow_id, trigger_id, code_id)

    assert client.delete(f"/workflows/{workflow_id}/nodes/{code_id}").status_code == 204

    canvas = client.get(f"/workflows/{workflow_id}").json()["canvasData"]
    assert [n["id"] for n in canvas["nodes"]] == [trigger_id]
    assert canvas["connections"] == []


def test_execute_without_trigger_is_rejected(client):
    workflow_id = create_workflow(client)
    add_node(client, workflow_id, "action-code", {"code": "return 1"})

    resp = client.post(f"/workflows/{workflow_id}/execute")
    assert resp.status_code == 400
    assert resp.json()["detail"] == "No trigger node found in workflow"


def test_adhoc_execution_reports_node_failure(client):
    canvas = {
        "nodes": [
            {"id": "t", "type": "trigger-manual", "position": {"x": 0, "y": 0}, "config": {}},
            {"id": "boom", "type": "action-code", "position": {"x": 0, "y": 0}, "config": {"code": "return 1 / 0"}},
            {"id": "after", "type": "action-code", "position": {"x": 0, "y": 0}, "config": {"code": "return 2"}},
        ],
        "connections": [
            {"id": "c1", "sourceId": "t", "targetId": "boom"},
            {"id": "c2", "sourceId": "boom", "targetId": "after"},
        ],
    }

    resp = client.post("/execute", json=canvas)
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "failed"
    assert body["workflowId"] is None
    assert [r["nodeId"] for r in body["results"]] == ["t", "boom", "t"]
    assert body["results"][-1]["error"] == "Code execution failed: division by zero"
    assert body["errorMessage"] == "Code execution failed: division by zero"


def test_sample_workflow_is_seeded_and_runs(client):
    workflows = client.get("/workflows").json()
    sample = next(wf for wf in workflows if wf["name"] == SAMPLE_NAME)

    body = client.post(f"/workflows/{sample['id']}/execute").json()

    assert body["status"] == "completed"
    assert body["results"][-1]["output"] == {"discount": 12.0, "currency": "EUR"}


def test_stream_execution_over_websocket(client):
    workflow_id = create_workflow(client)
    trigger_id = add_node(client, workflow_id, "trigger-manual")
    code_id = add_node(client, workflow_id, "action-code", {"code": "return 'done'"})
    connect(client, workflow_id, trigger_id, code_id)

    events = []
    with client.websocket_connect(f"/workflows/{workflow_id}/execute/stream") as websocket:
        while True:
            event = websocket.receive_json()
            events.append(event)
            if event["type"] == "status":
                break

    assert [e["type"] for e in events] == [
        "node_started",
        "node_completed",
        "node_started",
        "node_completed",
        "status",
    ]
    assert events[0]["nodeId"] == trigger_id
    assert events[3]["data"]["output"] == "done"
    assert events[-1]["data"] == "completed"
    assert client.get(f"/executions/{events[-1]['executionId']}").status_code == 200


def test_update_and_delete_workflow(client):
    workflow_id = create_workflow(client, name="temp")

    renamed = client.put(f"/workflows/{workflow_id}", json={"name": "renamed"})
    assert renamed.json()["name"] == "renamed"

    canvas = {"nodes": [], "connections": [], "viewport": {"x": 10, "y": 20, "zoom": 2}}
    saved = client.put(f"/workflows/{workflow_id}/canvas", json=canvas)
    assert saved.json()["canvasData"]["viewport"] == {"x": 10.0, "y": 20.0, "zoom": 2.0}

    assert client.delete(f"/workflows/{workflow_id}").status_code == 204
    assert client.get(f"/workflows/{workflow_id}").status_code == 404
    assert client.post(f"/workflows/{workflow_id}/execute").status_code == 404
