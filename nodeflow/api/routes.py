from __future__ import annotations

"""FastAPI routes for the node catalog, workflow documents, graph edits, and runs."""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect, status
from pydantic import Field

from nodeflow.engine.catalog import NodeCatalogEntry, node_catalog
from nodeflow.engine.exceptions import (
    GraphValidationError,
    NoTriggerError,
    UnknownNodeTypeError,
    WorkflowNotFoundError,
)
from nodeflow.engine.executor import NodeExecutionResult, WorkflowExecution, WorkflowExecutor
from nodeflow.engine.graph import (
    CamelModel,
    CanvasData,
    NodeConnection,
    Position,
    WorkflowGraph,
    WorkflowNode,
)
from nodeflow.engine.persistence import SQLitePersistence, Workflow, persistence

logger = logging.getLogger(__name__)

router = APIRouter()


class WorkflowCreateRequest(CamelModel):
    name: str = "My First Workflow"
    description: str = ""


class WorkflowUpdateRequest(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    canvas_data: Optional[CanvasData] = None


class NodeCreateRequest(CamelModel):
    type: str
    position: Position = Field(default_factory=Position)
    label: Optional[str] = None
    config: Optional[Dict[str, Any]] = None


class NodeUpdateRequest(CamelModel):
    position: Optional[Position] = None
    label: Optional[str] = None
    config: Optional[Dict[str, Any]] = None


class ConnectionCreateRequest(CamelModel):
    source_id: str
    target_id: str
    source_output: Optional[str] = None
    target_input: Optional[str] = None


def _store() -> SQLitePersistence:
    if persistence is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Persistence is disabled"
        )
    return persistence


def _load_workflow(workflow_id: str) -> Workflow:
    try:
        return _store().get_workflow(workflow_id)
    except WorkflowNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


async def _run_canvas(canvas: CanvasData, workflow_id: Optional[str] = None) -> WorkflowExecution:
    executor = WorkflowExecutor(canvas.nodes, canvas.connections)
    try:
        await executor.execute()
    except NoTriggerError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        # The failing node's entry in the trace carries the error.
        logger.info("Run %s ended in failure: %s", executor.run_id, exc)

    record = executor.to_record(workflow_id=workflow_id)
    if persistence:
        persistence.record_execution(record)
    return record


# Catalog ---------------------------------------------------------------------


@router.get("/nodes", response_model=List[NodeCatalogEntry], tags=["catalog"])
def list_node_types() -> List[NodeCatalogEntry]:
    """List every node type the palette can offer."""
    return node_catalog.all()


@router.get("/nodes/{node_type}", response_model=NodeCatalogEntry, tags=["catalog"])
def get_node_type(node_type: str) -> NodeCatalogEntry:
    entry = node_catalog.lookup(node_type)
    if entry is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown node type: {node_type}"
        )
    return entry


# Workflow documents ----------------------------------------------------------


@router.post(
    "/workflows",
    response_model=Workflow,
    status_code=status.HTTP_201_CREATED,
    tags=["workflows"],
)
def create_workflow(payload: WorkflowCreateRequest) -> Workflow:
    return _store().create_workflow(payload.name, payload.description)


@router.get("/workflows", response_model=List[Workflow], tags=["workflows"])
def list_workflows() -> List[Workflow]:
    """List workflows, most recently updated first."""
    return _store().list_workflows()


@router.get("/workflows/{workflow_id}", response_model=Workflow, tags=["workflows"])
def get_workflow(workflow_id: str) -> Workflow:
    return _load_workflow(workflow_id)


@router.put("/workflows/{workflow_id}", response_model=Workflow, tags=["workflows"])
def update_workflow(workflow_id: str, payload: WorkflowUpdateRequest) -> Workflow:
    _load_workflow(workflow_id)
    return _store().update_workflow(
        workflow_id,
        name=payload.name,
        description=payload.description,
        canvas_data=payload.canvas_data,
    )


@router.put("/workflows/{workflow_id}/canvas", response_model=Workflow, tags=["workflows"])
def save_canvas(workflow_id: str, canvas: CanvasData) -> Workflow:
    """Replace the stored canvas verbatim."""
    _load_workflow(workflow_id)
    return _store().save_canvas(workflow_id, canvas)


@router.delete(
    "/workflows/{workflow_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["workflows"]
)
def delete_workflow(workflow_id: str) -> None:
    try:
        _store().delete_workflow(workflow_id)
    except WorkflowNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


# Graph edits -----------------------------------------------------------------


@router.post(
    "/workflows/{workflow_id}/nodes",
    response_model=WorkflowNode,
    status_code=status.HTTP_201_CREATED,
    tags=["graph"],
)
def add_node(workflow_id: str, payload: NodeCreateRequest) -> WorkflowNode:
    """Place a new node; config defaults to the catalog's field defaults."""
    workflow = _load_workflow(workflow_id)
    graph = WorkflowGraph(workflow.canvas_data)
    try:
        entry = node_catalog.get(payload.type)
        node = graph.add_node(
            entry.type,
            position=payload.position,
            label=payload.label,
            config=payload.config if payload.config is not None else entry.default_config(),
        )
    except UnknownNodeTypeError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    _store().save_canvas(workflow_id, graph.canvas)
    return node


@router.patch(
    "/workflows/{workflow_id}/nodes/{node_id}", response_model=WorkflowNode, tags=["graph"]
)
def update_node(workflow_id: str, node_id: str, payload: NodeUpdateRequest) -> WorkflowNode:
    workflow = _load_workflow(workflow_id)
    graph = WorkflowGraph(workflow.canvas_data)
    changes = {
        key: value
        for key, value in (
            ("position", payload.position),
            ("label", payload.label),
            ("config", payload.config),
        )
        if value is not None
    }
    try:
        node = graph.update_node(node_id, **changes)
    except GraphValidationError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    _store().save_canvas(workflow_id, graph.canvas)
    return node


@router.delete(
    "/workflows/{workflow_id}/nodes/{node_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["graph"],
)
def remove_node(workflow_id: str, node_id: str) -> None:
    """Remove a node together with every connection touching it."""
    workflow = _load_workflow(workflow_id)
    graph = WorkflowGraph(workflow.canvas_data)
    try:
        graph.remove_node(node_id)
    except GraphValidationError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    _store().save_canvas(workflow_id, graph.canvas)


@router.post(
    "/workflows/{workflow_id}/connections",
    response_model=NodeConnection,
    status_code=status.HTTP_201_CREATED,
    tags=["graph"],
)
def add_connection(workflow_id: str, payload: ConnectionCreateRequest) -> NodeConnection:
    workflow = _load_workflow(workflow_id)
    graph = WorkflowGraph(workflow.canvas_data)
    try:
        connection = graph.add_connection(
            payload.source_id,
            payload.target_id,
            source_output=payload.source_output,
            target_input=payload.target_input,
        )
    except GraphValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    _store().save_canvas(workflow_id, graph.canvas)
    return connection


@router.delete(
    "/workflows/{workflow_id}/connections/{connection_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["graph"],
)
def remove_connection(workflow_id: str, connection_id: str) -> None:
    workflow = _load_workflow(workflow_id)
    graph = WorkflowGraph(workflow.canvas_data)
    try:
        graph.remove_connection(connection_id)
    except GraphValidationError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    _store().save_canvas(workflow_id, graph.canvas)


# Execution -------------------------------------------------------------------


@router.post(
    "/workflows/{workflow_id}/execute", response_model=WorkflowExecution, tags=["execution"]
)
async def execute_workflow(workflow_id: str) -> WorkflowExecution:
    """Run the stored canvas once and return the trace."""
    workflow = _load_workflow(workflow_id)
    return await _run_canvas(workflow.canvas_data, workflow_id=workflow.id)


@router.post("/execute", response_model=WorkflowExecution, tags=["execution"])
async def execute_canvas(canvas: CanvasData) -> WorkflowExecution:
    """Run an unsaved canvas snapshot."""
    return await _run_canvas(canvas)


@router.get("/executions/{execution_id}", response_model=WorkflowExecution, tags=["execution"])
def get_execution(execution_id: str) -> WorkflowExecution:
    try:
        return _store().get_execution(execution_id)
    except WorkflowNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.get(
    "/workflows/{workflow_id}/executions",
    response_model=List[WorkflowExecution],
    tags=["execution"],
)
def list_executions(workflow_id: str, limit: int = 50) -> List[WorkflowExecution]:
    _load_workflow(workflow_id)
    return _store().list_executions(workflow_id=workflow_id, limit=limit)


@router.websocket("/workflows/{workflow_id}/execute/stream")
async def stream_execution(websocket: WebSocket, workflow_id: str) -> None:
    """WebSocket endpoint that runs a workflow and streams node events as they happen."""
    await websocket.accept()
    try:
        workflow = _store().get_workflow(workflow_id)
    except (WorkflowNotFoundError, HTTPException):
        await websocket.close(code=4404, reason="Workflow not found")
        return

    async def node_started(node_id: str) -> None:
        await websocket.send_json({"type": "node_started", "nodeId": node_id})

    async def node_completed(result: NodeExecutionResult) -> None:
        await websocket.send_json(
            {"type": "node_completed", "data": result.model_dump(mode="json", by_alias=True)}
        )

    executor = WorkflowExecutor(
        workflow.canvas_data.nodes,
        workflow.canvas_data.connections,
        on_node_started=node_started,
        on_node_completed=node_completed,
    )
    try:
        await executor.execute()
    except WebSocketDisconnect:
        logger.info("Client left while run %s was streaming", executor.run_id)
        return
    except Exception as exc:
        logger.info("Run %s ended in failure: %s", executor.run_id, exc)

    record = executor.to_record(workflow_id=workflow_id)
    if persistence:
        persistence.record_execution(record)
    await websocket.send_json(
        {
            "type": "status",
            "data": record.status.value,
            "error": record.error_message,
            "executionId": record.id,
        }
    )
    await websocket.close()
