from __future__ import annotations

"""Graph executor: sequential depth-first traversal from every trigger node."""

import asyncio
import inspect
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from enum import Enum
from typing import Any, AsyncIterator, Callable, Dict, Iterable, List, Optional
from uuid import uuid4

import httpx
from pydantic import Field

from . import operations  # noqa: F401  registers the node operations
from .catalog import NodeType, is_trigger_type
from .context import EngineSettings, ExecutionContext
from .exceptions import NoTriggerError
from .graph import CamelModel, NodeConnection, WorkflowNode
from .registry import operation_registry

logger = logging.getLogger(__name__)


class RunStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class NodeExecutionResult(CamelModel):
    node_id: str
    output: Any = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    timestamp: datetime
    duration_ms: float = 0.0


class WorkflowExecution(CamelModel):
    """Summary of one finished (or in-flight) run, as stored and served by the API."""

    id: str
    workflow_id: Optional[str] = None
    status: RunStatus
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    results: List[NodeExecutionResult] = Field(default_factory=list)
    error_message: Optional[str] = None


NodeStartedCallback = Callable[[str], Any]
NodeCompletedCallback = Callable[[NodeExecutionResult], Any]


class WorkflowExecutor:
    """
    Runs a graph snapshot once.

    Triggers run in node-list order, each traversal finishing before the next
    starts. After a node succeeds, every node wired to it runs in turn, in
    connection-list order, with that node's output as its input. The first node
    failure is recorded in the trace and aborts the run.

    Callbacks may be plain functions or coroutine functions.
    """

    def __init__(
        self,
        nodes: Iterable[WorkflowNode],
        connections: Iterable[NodeConnection],
        on_node_started: Optional[NodeStartedCallback] = None,
        on_node_completed: Optional[NodeCompletedCallback] = None,
        settings: Optional[EngineSettings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.nodes: List[WorkflowNode] = list(nodes)
        self.connections: List[NodeConnection] = list(connections)
        self.on_node_started = on_node_started
        self.on_node_completed = on_node_completed
        self.settings = settings or EngineSettings()
        self._http_client = http_client

        self._nodes_by_id: Dict[str, WorkflowNode] = {}
        for node in self.nodes:
            self._nodes_by_id.setdefault(node.id, node)

        self.run_id = str(uuid4())
        self.status = RunStatus.IDLE
        self.error: Optional[str] = None
        self.started_at: Optional[datetime] = None
        self.finished_at: Optional[datetime] = None
        self.results: List[NodeExecutionResult] = []
        self.context: Optional[ExecutionContext] = None

    async def execute(self) -> List[NodeExecutionResult]:
        """Run every trigger's traversal and return the ordered trace."""
        if self.status is not RunStatus.IDLE:
            raise RuntimeError(f"Run '{self.run_id}' has already been started")

        self.status = RunStatus.RUNNING
        self.started_at = datetime.now(timezone.utc)

        triggers = [node for node in self.nodes if is_trigger_type(node.type)]
        if not triggers:
            error = NoTriggerError()
            self._finish(RunStatus.FAILED, error=str(error))
            raise error

        logger.info(
            "Run %s started: %d nodes, %d connections, %d trigger(s)",
            self.run_id,
            len(self.nodes),
            len(self.connections),
            len(triggers),
        )
        try:
            async with self._http_scope() as client:
                self.context = ExecutionContext(settings=self.settings, http_client=client)
                for trigger in triggers:
                    await self._execute_node(trigger, None)
        except Exception as exc:
            self._finish(RunStatus.FAILED, error=str(exc) or exc.__class__.__name__)
            raise

        self._finish(RunStatus.COMPLETED)
        return self.results

    async def _execute_node(self, node: WorkflowNode, input_value: Any) -> Any:
        await self._notify(self.on_node_started, node.id)
        logger.debug("Run %s: node '%s' (%s) started", self.run_id, node.id, node.type)

        if self.settings.node_delay_seconds:
            await asyncio.sleep(self.settings.node_delay_seconds)

        started = time.perf_counter()
        completed = False
        try:
            operation = operation_registry.get(node.type)
            output = await operation(node.config, input_value, self.context)

            result = NodeExecutionResult(
                node_id=node.id,
                output=output,
                timestamp=datetime.now(timezone.utc),
                duration_ms=(time.perf_counter() - started) * 1000,
            )
            self.results.append(result)
            self.context.record_result(node.id, output)
            completed = True
            await self._notify(self.on_node_completed, result)
            logger.debug("Run %s: node '%s' completed", self.run_id, node.id)

            for successor in self._next_nodes(node, output):
                await self._execute_node(successor, output)
        except Exception as exc:
            # A downstream failure also closes every node on the path back to the trigger.
            if completed:
                logger.debug("Node '%s' aborted by downstream failure: %s", node.id, exc)
            else:
                logger.exception("Node '%s' failed: %s", node.id, exc)
            result = NodeExecutionResult(
                node_id=node.id,
                output=None,
                error=str(exc) or exc.__class__.__name__,
                error_type=exc.__class__.__name__,
                timestamp=datetime.now(timezone.utc),
                duration_ms=(time.perf_counter() - started) * 1000,
            )
            self.results.append(result)
            await self._notify(self.on_node_completed, result)
            raise
        return output

    def _next_nodes(self, node: WorkflowNode, output: Any) -> List[WorkflowNode]:
        successors: List[WorkflowNode] = []
        for conn in self.connections:
            if conn.source_id != node.id:
                continue
            if (
                self.settings.conditional_branching
                and node.type == NodeType.CONDITION.value
                and not self._port_selected(conn, output)
            ):
                continue
            target = self._nodes_by_id.get(conn.target_id)
            if target is None:
                logger.debug("Skipping connection '%s' to missing node '%s'", conn.id, conn.target_id)
                continue
            successors.append(target)
        return successors

    @staticmethod
    def _port_selected(conn: NodeConnection, output: Any) -> bool:
        """Connections without a true/false port label always run."""
        if conn.source_output not in ("true", "false"):
            return True
        taken = "true" if isinstance(output, dict) and output.get("result") else "false"
        return conn.source_output == taken

    @asynccontextmanager
    async def _http_scope(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(timeout=self.settings.http_timeout_seconds) as client:
            yield client

    @staticmethod
    async def _notify(callback: Optional[Callable[[Any], Any]], payload: Any) -> None:
        if callback is None:
            return
        outcome = callback(payload)
        if inspect.isawaitable(outcome):
            await outcome

    def _finish(self, status: RunStatus, error: Optional[str] = None) -> None:
        self.status = status
        self.error = error
        self.finished_at = datetime.now(timezone.utc)
        if status is RunStatus.FAILED:
            logger.warning("Run %s failed after %d step(s): %s", self.run_id, len(self.results), error)
        else:
            logger.info("Run %s completed with %d step(s)", self.run_id, len(self.results))

    def to_record(self, workflow_id: Optional[str] = None) -> WorkflowExecution:
        return WorkflowExecution(
            id=self.run_id,
            workflow_id=workflow_id,
            status=self.status,
            started_at=self.started_at,
            completed_at=self.finished_at,
            results=list(self.results),
            error_message=self.error,
        )
