from datetime import datetime, timezone

import pytest

from nodeflow.engine.exceptions import WorkflowNotFoundError
from nodeflow.engine.executor import NodeExecutionResult, RunStatus, WorkflowExecution
from nodeflow.engine.graph import CanvasData, NodeConnection, WorkflowNode
from nodeflow.engine.persistence import SQLitePersistence


@pytest.fixture
def store(tmp_path):
    return SQLitePersistence(tmp_path / "store.db")


def sample_canvas() -> CanvasData:
    return CanvasData(
        nodes=[
            WorkflowNode(id="t", type="trigger-manual", config={"buttonLabel": "Go"}),
            WorkflowNode(id="c", type="action-code", config={"code": "return 1"}, label="One"),
        ],
        connections=[NodeConnection(id="t->c", source_id="t", target_id="c")],
    )


def test_create_and_get_workflow(store):
    created = store.create_workflow("My First Workflow")
    loaded = store.get_workflow(created.id)

    assert loaded.name == "My First Workflow"
    assert loaded.canvas_data == CanvasData()
    assert loaded.canvas_data.viewport.zoom == 1.0
    assert loaded.created_at == created.created_at


def test_save_canvas_round_trips(store):
    workflow = store.create_workflow("wf")
    store.save_canvas(workflow.id, sample_canvas())

    loaded = store.get_workflow(workflow.id)

    assert loaded.canvas_data == sample_canvas()
    assert loaded.updated_at >= workflow.updated_at


def test_update_workflow_keeps_unspecified_fields(store):
    workflow = store.create_workflow("before", description="keep me")
    store.save_canvas(workflow.id, sample_canvas())

    updated = store.update_workflow(workflow.id, name="after")

    assert updated.name == "after"
    assert updated.description == "keep me"
    assert len(store.get_workflow(workflow.id).canvas_data.nodes) == 2


def test_list_orders_by_most_recent_update(store):
    first = store.create_workflow("first")
    second = store.create_workflow("second")
    store.update_workflow(first.id, name="first, edited")

    assert [wf.id for wf in store.list_workflows()] == [first.id, second.id]


def test_missing_workflow_raises(store):
    with pytest.raises(WorkflowNotFoundError):
        store.get_workflow("missing")
    with pytest.raises(WorkflowNotFoundError):
        store.delete_workflow("missing")


def test_executions_are_recorded_and_deleted_with_workflow(store):
    workflow = store.create_workflow("wf")
    now = datetime.now(timezone.utc)
    execution = WorkflowExecution(
        id="run-1",
        workflow_id=workflow.id,
        status=RunStatus.FAILED,
        started_at=now,
        completed_at=now,
        results=[
            NodeExecutionResult(node_id="t", output={"triggered": True}, timestamp=now),
            NodeExecutionResult(
                node_id="c",
                output=None,
                error="Code execution failed: boom",
                error_type="EvaluationError",
                timestamp=now,
            ),
        ],
        error_message="Code execution failed: boom",
    )
    store.record_execution(execution)

    loaded = store.get_execution("run-1")
    assert loaded == execution
    assert [e.id for e in store.list_executions(workflow_id=workflow.id)] == ["run-1"]

    store.delete_workflow(workflow.id)
    with pytest.raises(WorkflowNotFoundError):
        store.get_execution("run-1")
