from __future__ import annotations

"""Graph snapshot models and the editing operations the canvas performs on them."""

import logging
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .catalog import node_catalog
from .exceptions import GraphValidationError

logger = logging.getLogger(__name__)


class CamelModel(BaseModel):
    """Snake-case attributes, camelCase on the wire; both spellings accepted on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Position(CamelModel):
    x: float = 0.0
    y: float = 0.0


class Viewport(CamelModel):
    x: float = 0.0
    y: float = 0.0
    zoom: float = 1.0


class WorkflowNode(CamelModel):
    """
    A node placed on the canvas.

    ``type`` stays a plain string so stored documents round-trip verbatim; the
    executor rejects tags it cannot run.
    """

    id: str
    type: str
    position: Position = Field(default_factory=Position)
    config: Dict[str, Any] = Field(default_factory=dict)
    label: Optional[str] = None


class NodeConnection(CamelModel):
    id: str
    source_id: str
    target_id: str
    source_output: Optional[str] = None
    target_input: Optional[str] = None


class CanvasData(CamelModel):
    nodes: List[WorkflowNode] = Field(default_factory=list)
    connections: List[NodeConnection] = Field(default_factory=list)
    viewport: Viewport = Field(default_factory=Viewport)


class WorkflowGraph:
    """Mutating helpers over a canvas snapshot. Invariants are enforced at creation time."""

    def __init__(self, canvas: Optional[CanvasData] = None) -> None:
        self.canvas = canvas if canvas is not None else CanvasData()

    @property
    def nodes(self) -> List[WorkflowNode]:
        return self.canvas.nodes

    @property
    def connections(self) -> List[NodeConnection]:
        return self.canvas.connections

    def get_node(self, node_id: str) -> WorkflowNode:
        for node in self.canvas.nodes:
            if node.id == node_id:
                return node
        raise GraphValidationError(f"Node '{node_id}' not found in graph")

    def has_node(self, node_id: str) -> bool:
        return any(node.id == node_id for node in self.canvas.nodes)

    def add_node(
        self,
        node_type: str,
        position: Optional[Position] = None,
        label: Optional[str] = None,
        config: Optional[Dict[str, Any]] = None,
    ) -> WorkflowNode:
        entry = node_catalog.get(node_type)
        node = WorkflowNode(
            id=f"node-{uuid4()}",
            type=entry.type.value,
            position=position or Position(),
            config=dict(config or {}),
            label=label or entry.label,
        )
        self.canvas.nodes.append(node)
        logger.debug("Added node '%s' (%s)", node.id, node.type)
        return node

    def update_node(self, node_id: str, **changes: Any) -> WorkflowNode:
        for index, node in enumerate(self.canvas.nodes):
            if node.id == node_id:
                updated = node.model_copy(update=changes)
                self.canvas.nodes[index] = updated
                return updated
        raise GraphValidationError(f"Node '{node_id}' not found in graph")

    def move_node(self, node_id: str, x: float, y: float) -> WorkflowNode:
        return self.update_node(node_id, position=Position(x=x, y=y))

    def remove_node(self, node_id: str) -> None:
        self.get_node(node_id)
        self.canvas.nodes = [node for node in self.canvas.nodes if node.id != node_id]
        self.canvas.connections = [
            conn
            for conn in self.canvas.connections
            if conn.source_id != node_id and conn.target_id != node_id
        ]

    def add_connection(
        self,
        source_id: str,
        target_id: str,
        source_output: Optional[str] = None,
        target_input: Optional[str] = None,
    ) -> NodeConnection:
        if source_id == target_id:
            raise GraphValidationError("A node cannot be connected to itself")
        for endpoint in (source_id, target_id):
            if not self.has_node(endpoint):
                raise GraphValidationError(f"Node '{endpoint}' not found in graph")

        for conn in self.canvas.connections:
            if conn.source_id == source_id and conn.target_id == target_id:
                return conn

        connection = NodeConnection(
            id=f"conn-{uuid4()}",
            source_id=source_id,
            target_id=target_id,
            source_output=source_output,
            target_input=target_input,
        )
        self.canvas.connections.append(connection)
        return connection

    def remove_connection(self, connection_id: str) -> None:
        remaining = [conn for conn in self.canvas.connections if conn.id != connection_id]
        if len(remaining) == len(self.canvas.connections):
            raise GraphValidationError(f"Connection '{connection_id}' not found in graph")
        self.canvas.connections = remaining
