from __future__ import annotations

"""Registry mapping node type tags to their operations."""

import inspect
import logging
from threading import Lock
from typing import Any, Awaitable, Callable, Dict, Mapping

from .catalog import NodeType
from .context import ExecutionContext
from .exceptions import UnknownNodeTypeError

logger = logging.getLogger(__name__)

Operation = Callable[[Mapping[str, Any], Any, ExecutionContext], Awaitable[Any]]


class OperationRegistry:
    """Tracks one operation per node type. Operations register via decorator."""

    def __init__(self) -> None:
        self._operations: Dict[str, Operation] = {}
        self._lock = Lock()

    def register(self, node_type: NodeType) -> Callable[[Operation], Operation]:
        """
        Decorator used to register the operation for a node type.
        """

        def decorator(func: Operation) -> Operation:
            if not inspect.iscoroutinefunction(func):
                raise TypeError(f"Operation for '{node_type.value}' must be async")
            with self._lock:
                if node_type.value in self._operations:
                    raise ValueError(f"Operation for '{node_type.value}' already registered")
                self._operations[node_type.value] = func
            logger.info("Registered operation '%s' -> %s", node_type.value, func.__name__)
            return func

        return decorator

    def get(self, node_type: str) -> Operation:
        if node_type not in self._operations:
            raise UnknownNodeTypeError(node_type)
        return self._operations[node_type]

    def verify_complete(self) -> None:
        """Fail loudly if a node type was added without an operation."""
        missing = [t.value for t in NodeType if t.value not in self._operations]
        if missing:
            raise RuntimeError(f"No operation registered for node types: {', '.join(missing)}")


operation_registry = OperationRegistry()
