"""Workflow engine package exports."""

from .catalog import NodeType, node_catalog
from .context import EngineSettings, ExecutionContext
from .executor import NodeExecutionResult, RunStatus, WorkflowExecution, WorkflowExecutor
from .graph import CanvasData, NodeConnection, WorkflowGraph, WorkflowNode
from .registry import operation_registry

__all__ = [
    "NodeType",
    "node_catalog",
    "EngineSettings",
    "ExecutionContext",
    "NodeExecutionResult",
    "RunStatus",
    "WorkflowExecution",
    "WorkflowExecutor",
    "CanvasData",
    "NodeConnection",
    "WorkflowGraph",
    "WorkflowNode",
    "operation_registry",
]
