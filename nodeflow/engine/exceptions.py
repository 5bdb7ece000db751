"""Custom exceptions for the workflow engine."""


class WorkflowError(Exception):
    """Base class for every error raised by the engine."""


class ConfigError(WorkflowError):
    """A node is missing required configuration or carries an invalid value."""


class ParseError(ConfigError):
    """A JSON-encoded configuration field could not be parsed."""


class ExecutionError(WorkflowError):
    """A node failed while running."""


class EvaluationError(ExecutionError):
    """A condition expression or code body failed to evaluate."""


class NetworkError(ExecutionError):
    """The HTTP request node could not complete its request."""


class UnknownNodeTypeError(ExecutionError):
    """Raised when a node type tag has no registered operation or catalog entry."""

    def __init__(self, node_type: str) -> None:
        self.node_type = node_type
        super().__init__(f"Unknown node type: {node_type}")


class NoTriggerError(WorkflowError):
    """Raised when a graph has no trigger node to start from."""

    def __init__(self, message: str = "No trigger node found in workflow") -> None:
        super().__init__(message)


class GraphValidationError(WorkflowError):
    """A graph edit was rejected."""


class WorkflowNotFoundError(WorkflowError, KeyError):
    """Raised when a stored workflow or execution does not exist."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "Not found"
